import logging
from datetime import datetime

from parksys_api.models import ParkingSlot
from parksys_api.models.base import generate_uuid
from parksys_api.models.enums import SLOT_PREFIXES, SlotStatus, VehicleType
from parksys_api.utils.errors import ValidationError

logger = logging.getLogger(__name__)

# Layout created on first start: 1-30 two wheeler, 31-50 four wheeler
INITIAL_LAYOUT = (
    (VehicleType.TWO_WHEELER.value, 30),
    (VehicleType.FOUR_WHEELER.value, 20),
)
INITIAL_PREFIX = 'A'


def _validate_counts(counts):
    for vehicle_type, count in counts.items():
        if vehicle_type not in VehicleType.values():
            raise ValidationError(f"Unknown vehicle type '{vehicle_type}'")
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise ValidationError(f"Slot count for {vehicle_type} must be a non-negative integer")


class SlotRegistry:
    def __init__(self, store, clock=datetime.now):
        self.store = store
        self.clock = clock

    def _build_slot(self, sequence, vehicle_type, prefix):
        x, y = ParkingSlot.position_for(sequence)
        return ParkingSlot(
            id=generate_uuid(),
            number=f"{prefix}{sequence:02d}",
            sequence=sequence,
            vehicle_type=vehicle_type,
            status=SlotStatus.AVAILABLE.value,
            position_x=x,
            position_y=y,
            vehicle_id=None,
            updated_at=self.clock(),
        )

    def list_slots(self):
        return self.store.list_slots()

    def get_slot(self, slot_id):
        return self.store.get_slot(slot_id)

    def find_available_slot(self, vehicle_type, exclude=()):
        return self.store.find_available_slot(vehicle_type, exclude)

    def occupy(self, slot_id, vehicle_id):
        slot = self.store.occupy_slot(slot_id, vehicle_id)
        logger.info("Slot %s occupied by vehicle %s", slot.number, vehicle_id)
        return slot

    def release(self, slot_id):
        slot = self.store.release_slot(slot_id)
        logger.info("Slot %s released", slot.number)
        return slot

    def seed_initial_slots(self):
        if self.store.list_slots():
            return []
        slots = []
        sequence = 1
        for vehicle_type, count in INITIAL_LAYOUT:
            for _ in range(count):
                slots.append(self._build_slot(sequence, vehicle_type, INITIAL_PREFIX))
                sequence += 1
        with self.store.unit_of_work():
            self.store.add_slots(slots)
        logger.info("Seeded %d parking slots", len(slots))
        return slots

    def add_slots(self, counts_by_category):
        """Append new slots after the highest existing sequence number.

        Existing slots are never renumbered or removed.
        """
        _validate_counts(counts_by_category)
        with self.store.unit_of_work():
            sequence = self.store.max_slot_sequence() + 1
            created = []
            for vehicle_type in VehicleType.values():
                for _ in range(counts_by_category.get(vehicle_type, 0)):
                    created.append(self._build_slot(sequence, vehicle_type, SLOT_PREFIXES[vehicle_type]))
                    sequence += 1
            if created:
                self.store.add_slots(created)

        if created:
            logger.info("Added %d new parking slots", len(created))
        return created

    def ensure_slot_counts(self, targets_by_category):
        """Add only the shortfall so each category reaches its target."""
        for required in (VehicleType.TWO_WHEELER.value, VehicleType.FOUR_WHEELER.value):
            if not targets_by_category.get(required):
                raise ValidationError("Two wheeler and four wheeler slots are required")
        _validate_counts(targets_by_category)

        with self.store.unit_of_work():
            current = self.store.count_slots_by_type()
            shortfall = {
                vehicle_type: max(0, targets_by_category.get(vehicle_type, 0) - current.get(vehicle_type, 0))
                for vehicle_type in VehicleType.values()
            }
            created = self.add_slots(shortfall)
        return shortfall, created

    def remove_available_slots(self, targets_by_category):
        """Trim each category down to its target using available slots only.

        Occupied slots stay, so the resulting count can remain above target.
        Categories without a target are left alone.
        """
        _validate_counts(targets_by_category)
        removed = {}
        with self.store.unit_of_work():
            current = self.store.count_slots_by_type()
            for vehicle_type, target in targets_by_category.items():
                excess = current.get(vehicle_type, 0) - target
                if excess > 0:
                    removed[vehicle_type] = self.store.delete_available_slots(vehicle_type, excess)

        logger.info("Removed %d available parking slots", sum(removed.values()))
        return removed

    def counts_by_category(self):
        counts = self.store.count_slots_by_type()
        return {vehicle_type: counts.get(vehicle_type, 0) for vehicle_type in VehicleType.values()}

    def occupancy(self):
        totals = {status.value: 0 for status in SlotStatus}
        slots = self.store.list_slots()
        for slot in slots:
            totals[slot.status] = totals.get(slot.status, 0) + 1
        return {
            'total': len(slots),
            'available': totals[SlotStatus.AVAILABLE.value],
            'occupied': totals[SlotStatus.OCCUPIED.value],
            'reserved': totals[SlotStatus.RESERVED.value],
            'maintenance': totals[SlotStatus.MAINTENANCE.value],
        }
