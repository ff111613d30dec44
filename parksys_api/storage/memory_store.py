import logging
import threading
from contextlib import contextmanager

from parksys_api.models.enums import SlotStatus, VehicleStatus
from parksys_api.storage.base import ParkingStore
from parksys_api.utils.errors import (
    DuplicateActiveVehicleError,
    SlotNotFoundError,
    SlotUnavailableError,
    VehicleNotFoundError,
    VehicleNotParkedError,
)

logger = logging.getLogger(__name__)


class InMemoryParkingStore(ParkingStore):
    """Process-local store for demos and tests.

    A single re-entrant lock serialises every unit of work. Writes made inside
    a unit register an undo action; if the unit raises, the undo actions run
    in reverse order so no partial write survives.
    """

    name = 'memory'

    def __init__(self):
        self._lock = threading.RLock()
        self._journal = None
        self._depth = 0
        self._issued_sequence = 0
        self.slots = {}
        self.vehicles = {}
        self.records = {}
        self.rates = {}
        self.users = {}

    @contextmanager
    def unit_of_work(self):
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            self._journal = []
            self._depth = 1
            try:
                yield self
            except BaseException:
                undo_steps = self._journal
                self._journal = None
                for undo in reversed(undo_steps):
                    undo()
                logger.info("Rolled back %d in-memory write(s)", len(undo_steps))
                raise
            else:
                self._journal = None
            finally:
                self._depth = 0

    def _record(self, undo):
        if self._journal is not None:
            self._journal.append(undo)

    def _insert(self, table, entity):
        with self._lock:
            table[entity.id] = entity
            self._record(lambda: table.pop(entity.id, None))
            return entity

    def _remove(self, table, entity):
        del table[entity.id]
        self._record(lambda: table.__setitem__(entity.id, entity))

    def update(self, entity, **changes):
        with self._lock:
            previous = {key: getattr(entity, key) for key in changes}
            for key, value in changes.items():
                setattr(entity, key, value)

            def undo():
                for key, value in previous.items():
                    setattr(entity, key, value)

            self._record(undo)
            return entity

    # -- slots -------------------------------------------------------------

    def list_slots(self):
        with self._lock:
            return sorted(self.slots.values(), key=lambda s: s.sequence)

    def get_slot(self, slot_id):
        with self._lock:
            return self.slots.get(slot_id)

    def find_available_slot(self, vehicle_type, exclude=()):
        with self._lock:
            for slot in self.list_slots():
                if (slot.vehicle_type == vehicle_type
                        and slot.status == SlotStatus.AVAILABLE.value
                        and slot.id not in exclude):
                    return slot
            return None

    def occupy_slot(self, slot_id, vehicle_id):
        with self._lock:
            slot = self.slots.get(slot_id)
            if slot is None:
                raise SlotNotFoundError()
            if slot.status != SlotStatus.AVAILABLE.value:
                raise SlotUnavailableError(
                    f"Parking slot {slot.number} is not available (current status: {slot.status})"
                )
            return self.update(slot, status=SlotStatus.OCCUPIED.value, vehicle_id=vehicle_id)

    def release_slot(self, slot_id):
        with self._lock:
            slot = self.slots.get(slot_id)
            if slot is None:
                raise SlotNotFoundError()
            return self.update(slot, status=SlotStatus.AVAILABLE.value, vehicle_id=None)

    def add_slots(self, slots):
        with self._lock:
            for slot in slots:
                self._insert(self.slots, slot)
            previous = self._issued_sequence
            self._issued_sequence = max([previous] + [slot.sequence for slot in slots])
            self._record(lambda: setattr(self, '_issued_sequence', previous))
            return slots

    def max_slot_sequence(self):
        with self._lock:
            current = max((slot.sequence for slot in self.slots.values()), default=0)
            return max(current, self._issued_sequence)

    def count_slots_by_type(self):
        with self._lock:
            counts = {}
            for slot in self.slots.values():
                counts[slot.vehicle_type] = counts.get(slot.vehicle_type, 0) + 1
            return counts

    def delete_available_slots(self, vehicle_type, limit):
        with self._lock:
            candidates = [
                slot for slot in self.list_slots()
                if slot.vehicle_type == vehicle_type and slot.status == SlotStatus.AVAILABLE.value
            ]
            candidates.reverse()
            removed = candidates[:max(limit, 0)]
            for slot in removed:
                self._remove(self.slots, slot)
            return len(removed)

    def release_all_slots(self):
        with self._lock:
            for slot in self.slots.values():
                self.update(slot, status=SlotStatus.AVAILABLE.value, vehicle_id=None)
            return len(self.slots)

    # -- vehicles ----------------------------------------------------------

    def add_vehicle(self, vehicle):
        with self._lock:
            if (vehicle.status == VehicleStatus.PARKED.value
                    and self.find_parked_vehicle(vehicle.registration_number) is not None):
                raise DuplicateActiveVehicleError(
                    f"Vehicle {vehicle.registration_number} is already parked in the facility"
                )
            return self._insert(self.vehicles, vehicle)

    def get_vehicle(self, vehicle_id):
        with self._lock:
            return self.vehicles.get(vehicle_id)

    def find_parked_vehicle(self, registration_number):
        with self._lock:
            for vehicle in self.vehicles.values():
                if (vehicle.registration_number == registration_number
                        and vehicle.status == VehicleStatus.PARKED.value):
                    return vehicle
            return None

    def mark_vehicle_exited(self, vehicle_id, exit_time):
        with self._lock:
            vehicle = self.vehicles.get(vehicle_id)
            if vehicle is None:
                raise VehicleNotFoundError()
            if vehicle.status != VehicleStatus.PARKED.value:
                raise VehicleNotParkedError()
            return self.update(
                vehicle,
                status=VehicleStatus.EXITED.value,
                exit_time=exit_time,
                slot_id=None,
            )

    def list_vehicles(self, status=None):
        with self._lock:
            vehicles = [v for v in self.vehicles.values() if status is None or v.status == status]
            return sorted(vehicles, key=lambda v: v.entry_time, reverse=True)

    def search_parked_vehicles(self, fragment):
        needle = fragment.lower()
        return [
            vehicle for vehicle in self.list_vehicles(VehicleStatus.PARKED.value)
            if needle in vehicle.registration_number.lower()
        ]

    def delete_vehicles(self, status):
        with self._lock:
            doomed = [v for v in self.vehicles.values() if v.status == status]
            for vehicle in doomed:
                self._remove(self.vehicles, vehicle)
            return len(doomed)

    # -- records -----------------------------------------------------------

    def add_record(self, record):
        return self._insert(self.records, record)

    def list_records(self, offset=0, limit=None):
        with self._lock:
            ordered = sorted(self.records.values(), key=lambda r: r.entry_time, reverse=True)
        end = None if limit is None else offset + limit
        return ordered[offset:end]

    def count_records(self):
        with self._lock:
            return len(self.records)

    def records_between(self, start, end):
        with self._lock:
            return [r for r in self.records.values() if start <= r.entry_time < end]

    def delete_all_records(self):
        with self._lock:
            doomed = list(self.records.values())
            for record in doomed:
                self._remove(self.records, record)
            return len(doomed)

    # -- rates -------------------------------------------------------------

    def list_rates(self):
        with self._lock:
            return sorted(self.rates.values(), key=lambda r: r.effective_from)

    def effective_rates(self, vehicle_type, at_time):
        with self._lock:
            matches = [
                rate for rate in self.rates.values()
                if rate.vehicle_type == vehicle_type and rate.is_effective(at_time)
            ]
            return sorted(matches, key=lambda r: r.effective_from, reverse=True)

    def close_open_rates(self, at_time):
        with self._lock:
            open_rates = [r for r in self.rates.values() if r.effective_until is None]
            for rate in open_rates:
                self.update(rate, effective_until=at_time)
            return len(open_rates)

    def add_rates(self, rates):
        with self._lock:
            for rate in rates:
                self._insert(self.rates, rate)
            return rates

    # -- users -------------------------------------------------------------

    def add_user(self, user):
        return self._insert(self.users, user)

    def get_user(self, user_id):
        with self._lock:
            return self.users.get(user_id)

    def find_user(self, username=None, email=None, phone_number=None):
        with self._lock:
            for user in self.users.values():
                if username is not None and user.username == username:
                    return user
                if email is not None and user.email == email:
                    return user
                if phone_number is not None and user.phone_number == phone_number:
                    return user
            return None

    def list_users(self):
        with self._lock:
            return sorted(self.users.values(), key=lambda u: u.created_at, reverse=True)

    def delete_user(self, user_id):
        with self._lock:
            user = self.users.get(user_id)
            if user is None:
                return False
            self._remove(self.users, user)
            return True
