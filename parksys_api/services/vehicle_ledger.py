import logging
from datetime import datetime

from parksys_api.models import Vehicle
from parksys_api.models.base import generate_uuid
from parksys_api.models.enums import VehicleStatus
from parksys_api.utils.errors import (
    DuplicateActiveVehicleError,
    VehicleNotFoundError,
)

logger = logging.getLogger(__name__)


def normalize_registration(registration_number):
    return (registration_number or '').strip().upper()


def normalize_email(email):
    email = (email or '').strip().lower()
    return email or None


class VehicleLedger:
    """Every visit to the facility, one row per entry."""

    def __init__(self, store, clock=datetime.now):
        self.store = store
        self.clock = clock

    def get(self, vehicle_id):
        vehicle = self.store.get_vehicle(vehicle_id)
        if vehicle is None:
            raise VehicleNotFoundError()
        return vehicle

    def register_entry(self, registration_number, vehicle_type, owner_name=None,
                       phone_number=None, email=None, entry_time=None):
        registration_number = normalize_registration(registration_number)
        if self.store.find_parked_vehicle(registration_number) is not None:
            raise DuplicateActiveVehicleError(
                f"Vehicle {registration_number} is already parked in the facility"
            )

        now = entry_time or self.clock()
        vehicle = Vehicle(
            id=generate_uuid(),
            registration_number=registration_number,
            vehicle_type=vehicle_type,
            owner_name=(owner_name or '').strip() or None,
            phone_number=(phone_number or '').strip() or None,
            email=normalize_email(email),
            entry_time=now,
            exit_time=None,
            slot_id=None,
            status=VehicleStatus.PARKED.value,
            created_at=now,
        )
        return self.store.add_vehicle(vehicle)

    def assign_slot(self, vehicle, slot_id):
        return self.store.update(vehicle, slot_id=slot_id)

    def record_exit(self, vehicle_id, exit_time=None):
        """Mark a parked vehicle as exited.

        Only one of several concurrent calls for the same vehicle succeeds,
        the others raise VehicleNotParkedError.
        """
        return self.store.mark_vehicle_exited(vehicle_id, exit_time or self.clock())

    def list_active(self):
        return self.store.list_vehicles(VehicleStatus.PARKED.value)

    def list_all(self):
        return self.store.list_vehicles()

    def search(self, fragment):
        fragment = (fragment or '').strip()
        if not fragment:
            return []
        return self.store.search_parked_vehicles(fragment)
