"""
Storage backend interface.

The lifecycle services only talk to a ``ParkingStore``. Two implementations
exist: ``SQLParkingStore`` (Flask-SQLAlchemy) and ``InMemoryParkingStore``.
The backend is chosen once, when the app is created.

Every write that must succeed or fail together is wrapped in
``unit_of_work()``. Nested units join the outermost one.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from parksys_api.models import ParkingRate, ParkingRecord, ParkingSlot, User, Vehicle


class ParkingStore(ABC):
    name = 'abstract'

    # -- lifecycle ---------------------------------------------------------

    def create_schema(self):
        """Prepare the backend for use (tables, indexes)."""

    @abstractmethod
    @contextmanager
    def unit_of_work(self):
        """Commit every write made inside the block, or none of them."""

    @abstractmethod
    def update(self, entity, **changes):
        """Apply attribute changes to an entity owned by this store."""

    # -- slots -------------------------------------------------------------

    @abstractmethod
    def list_slots(self) -> List[ParkingSlot]:
        ...

    @abstractmethod
    def get_slot(self, slot_id: str) -> Optional[ParkingSlot]:
        ...

    @abstractmethod
    def find_available_slot(self, vehicle_type: str, exclude: Iterable[str] = ()) -> Optional[ParkingSlot]:
        """First available slot of the category, in slot sequence order."""

    @abstractmethod
    def occupy_slot(self, slot_id: str, vehicle_id: str) -> ParkingSlot:
        """Mark an available slot occupied.

        Raises SlotNotFoundError or SlotUnavailableError. Must behave as a
        compare-and-set: of two concurrent callers on the same slot only one
        may win.
        """

    @abstractmethod
    def release_slot(self, slot_id: str) -> ParkingSlot:
        ...

    @abstractmethod
    def add_slots(self, slots: List[ParkingSlot]) -> List[ParkingSlot]:
        ...

    @abstractmethod
    def max_slot_sequence(self) -> int:
        """Highest sequence ever issued, including slots removed since."""

    @abstractmethod
    def count_slots_by_type(self) -> Dict[str, int]:
        ...

    @abstractmethod
    def delete_available_slots(self, vehicle_type: str, limit: int) -> int:
        """Delete up to ``limit`` available slots, highest sequence first."""

    @abstractmethod
    def release_all_slots(self) -> int:
        ...

    # -- vehicles ----------------------------------------------------------

    @abstractmethod
    def add_vehicle(self, vehicle: Vehicle) -> Vehicle:
        """Insert a parked vehicle.

        Raises DuplicateActiveVehicleError when the registration is already
        parked, even if the earlier row was written by a concurrent caller.
        """

    @abstractmethod
    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        ...

    @abstractmethod
    def find_parked_vehicle(self, registration_number: str) -> Optional[Vehicle]:
        ...

    @abstractmethod
    def mark_vehicle_exited(self, vehicle_id: str, exit_time: datetime) -> Vehicle:
        """Move a parked vehicle to exited and clear its slot.

        Raises VehicleNotFoundError or VehicleNotParkedError. Must behave as a
        compare-and-set on the parked status: of two concurrent exits for the
        same vehicle only one may win.
        """

    @abstractmethod
    def list_vehicles(self, status: Optional[str] = None) -> List[Vehicle]:
        """Vehicles, newest entry first."""

    @abstractmethod
    def search_parked_vehicles(self, fragment: str) -> List[Vehicle]:
        """Parked vehicles whose registration contains ``fragment``, case-insensitively."""

    @abstractmethod
    def delete_vehicles(self, status: str) -> int:
        ...

    # -- records -----------------------------------------------------------

    @abstractmethod
    def add_record(self, record: ParkingRecord) -> ParkingRecord:
        ...

    @abstractmethod
    def list_records(self, offset: int = 0, limit: Optional[int] = None) -> List[ParkingRecord]:
        """Records, newest entry first."""

    @abstractmethod
    def count_records(self) -> int:
        ...

    @abstractmethod
    def records_between(self, start: datetime, end: datetime) -> List[ParkingRecord]:
        """Records whose entry time falls in [start, end)."""

    @abstractmethod
    def delete_all_records(self) -> int:
        ...

    # -- rates -------------------------------------------------------------

    @abstractmethod
    def list_rates(self) -> List[ParkingRate]:
        ...

    @abstractmethod
    def effective_rates(self, vehicle_type: str, at_time: datetime) -> List[ParkingRate]:
        """Rows in effect at ``at_time``, latest effective_from first."""

    @abstractmethod
    def close_open_rates(self, at_time: datetime) -> int:
        ...

    @abstractmethod
    def add_rates(self, rates: List[ParkingRate]) -> List[ParkingRate]:
        ...

    # -- users -------------------------------------------------------------

    @abstractmethod
    def add_user(self, user: User) -> User:
        ...

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    def find_user(self, username: str = None, email: str = None, phone_number: str = None) -> Optional[User]:
        """Match on any of the given identifiers."""

    @abstractmethod
    def list_users(self) -> List[User]:
        ...

    @abstractmethod
    def delete_user(self, user_id: str) -> bool:
        ...
