from parksys_api.storage.base import ParkingStore
from parksys_api.storage.memory_store import InMemoryParkingStore
from parksys_api.storage.sql_store import SQLParkingStore

BACKENDS = {
    'sql': SQLParkingStore,
    'memory': InMemoryParkingStore,
}


def create_store(backend):
    try:
        store_class = BACKENDS[backend]
    except KeyError:
        raise ValueError(f"Unknown storage backend '{backend}'. Use one of: {', '.join(BACKENDS)}")
    return store_class()


__all__ = ['ParkingStore', 'InMemoryParkingStore', 'SQLParkingStore', 'create_store']
