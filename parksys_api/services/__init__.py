from parksys_api.services.lifecycle import ParkingLifecycle
from parksys_api.services.notifications import NotificationDispatcher
from parksys_api.services.rate_table import RateTable
from parksys_api.services.reports import ReportAggregator
from parksys_api.services.slot_registry import SlotRegistry
from parksys_api.services.vehicle_ledger import VehicleLedger

__all__ = [
    'ParkingLifecycle',
    'NotificationDispatcher',
    'RateTable',
    'ReportAggregator',
    'SlotRegistry',
    'VehicleLedger',
]
