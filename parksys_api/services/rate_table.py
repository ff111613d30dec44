import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from parksys_api.models import ParkingRate
from parksys_api.models.base import generate_uuid
from parksys_api.models.enums import VehicleType
from parksys_api.utils.errors import ValidationError

logger = logging.getLogger(__name__)

# Hourly prices used when no rate row is in force for a category
DEFAULT_RATES = {
    VehicleType.TWO_WHEELER.value: Decimal('10'),
    VehicleType.FOUR_WHEELER.value: Decimal('20'),
    VehicleType.TRUCK.value: Decimal('50'),
    VehicleType.BUS.value: Decimal('75'),
}


def _to_money(value, field):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} must be a non-negative number")
    return amount


class RateTable:
    """Versioned hourly prices per vehicle category.

    Rows are never edited in place: an update closes the open rows and
    inserts new ones, so records billed earlier keep the rate they used.
    """

    def __init__(self, store, currency='INR', clock=datetime.now):
        self.store = store
        self.currency = currency
        self.clock = clock

    def _build_rate(self, vehicle_type, base_rate, additional_rate=None, effective_from=None):
        return ParkingRate(
            id=generate_uuid(),
            vehicle_type=vehicle_type,
            base_rate=base_rate,
            additional_rate=base_rate if additional_rate is None else additional_rate,
            currency=self.currency,
            effective_from=effective_from or self.clock(),
            effective_until=None,
        )

    def current_rate(self, vehicle_type, at_time=None):
        at_time = at_time or self.clock()
        rates = self.store.effective_rates(vehicle_type, at_time)
        if rates:
            return rates[0]

        if vehicle_type not in DEFAULT_RATES:
            raise ValidationError(f"Unknown vehicle type '{vehicle_type}'")
        # Transient row, never persisted
        return self._build_rate(vehicle_type, DEFAULT_RATES[vehicle_type], effective_from=at_time)

    def list_current_rates(self):
        now = self.clock()
        return [self.current_rate(vehicle_type, now) for vehicle_type in VehicleType.values()]

    def update_rates(self, new_rates):
        """Replace the rates in force.

        ``new_rates`` is a list of dicts with ``vehicle_type``, ``base_rate``
        and an optional ``additional_rate``.
        """
        if not new_rates:
            raise ValidationError("Rates array is required")

        seen = set()
        prepared = []
        for entry in new_rates:
            vehicle_type = entry.get('vehicle_type')
            if vehicle_type not in VehicleType.values():
                raise ValidationError(f"Unknown vehicle type '{vehicle_type}'")
            if vehicle_type in seen:
                raise ValidationError(f"Duplicate rate for {vehicle_type}")
            seen.add(vehicle_type)

            base_rate = _to_money(entry.get('base_rate'), 'baseRate')
            additional_rate = None
            if entry.get('additional_rate') is not None:
                additional_rate = _to_money(entry['additional_rate'], 'additionalRate')
            prepared.append((vehicle_type, base_rate, additional_rate))

        now = self.clock()
        with self.store.unit_of_work():
            closed = self.store.close_open_rates(now)
            rows = self.store.add_rates([
                self._build_rate(vehicle_type, base_rate, additional_rate, effective_from=now)
                for vehicle_type, base_rate, additional_rate in prepared
            ])

        logger.info("Parking rates updated: %d closed, %d inserted", closed, len(rows))
        return rows

    def seed_defaults(self):
        if self.store.list_rates():
            return []
        now = self.clock()
        with self.store.unit_of_work():
            rows = self.store.add_rates([
                self._build_rate(vehicle_type, base_rate, effective_from=now)
                for vehicle_type, base_rate in DEFAULT_RATES.items()
            ])
        logger.info("Seeded %d default parking rates", len(rows))
        return rows
