import logging
from datetime import datetime, time, timedelta
from decimal import Decimal

from parksys_api.models.enums import VehicleType

logger = logging.getLogger(__name__)

PEAK_HOURS = ['09:00-11:00', '14:00-16:00', '18:00-20:00']


def _camel(vehicle_type):
    head, *rest = vehicle_type.split('_')
    return head + ''.join(part.title() for part in rest)


def _day_bounds(day):
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def _average_stay(records):
    if not records:
        return 0
    return round(sum(record.duration_minutes for record in records) / len(records))


class ReportAggregator:
    """Read-only summaries computed from billing records and slot state."""

    def __init__(self, store, slots, currency='INR', clock=datetime.now):
        self.store = store
        self.slots = slots
        self.currency = currency
        self.clock = clock

    def daily_summary(self, day=None):
        day = day or self.clock().date()
        records = self.store.records_between(*_day_bounds(day))

        breakdown = {
            vehicle_type: {'count': 0, 'revenue': Decimal('0')}
            for vehicle_type in VehicleType.values()
        }
        total_revenue = Decimal('0')
        for record in records:
            amount = Decimal(record.amount)
            total_revenue += amount
            figures = breakdown.setdefault(record.vehicle_type, {'count': 0, 'revenue': Decimal('0')})
            figures['count'] += 1
            figures['revenue'] += amount

        occupancy = self.slots.occupancy()
        occupancy_rate = round(occupancy['occupied'] / occupancy['total'] * 100) if occupancy['total'] else 0

        summary = {
            'date': day.isoformat(),
            'currency': self.currency,
            'totalVehicles': len(records),
            'totalRevenue': float(total_revenue),
            'breakdown': {
                vehicle_type: {'count': figures['count'], 'revenue': float(figures['revenue'])}
                for vehicle_type, figures in breakdown.items()
            },
            'averageStayDuration': _average_stay(records),
            'peakHours': list(PEAK_HOURS),
            'currentAvailable': occupancy['available'],
            'currentOccupied': occupancy['occupied'],
            'currentOccupancyRate': occupancy_rate,
        }
        # Flat per-category fields read by the dashboard report cards
        for vehicle_type, figures in summary['breakdown'].items():
            summary[f"{_camel(vehicle_type)}Count"] = figures['count']
            summary[f"{_camel(vehicle_type)}Revenue"] = figures['revenue']

        logger.info("Daily report for %s: %d vehicles, revenue %s", day, len(records), total_revenue)
        return summary

    def dashboard_stats(self):
        occupancy = self.slots.occupancy()
        records = self.store.records_between(*_day_bounds(self.clock().date()))
        revenue = sum((Decimal(record.amount) for record in records), Decimal('0'))
        return {
            'totalSlots': occupancy['total'],
            'occupiedSlots': occupancy['occupied'],
            'availableSlots': occupancy['available'],
            'reservedSlots': occupancy['reserved'],
            'todayRevenue': float(revenue),
            'todayVehicles': len(records),
            'averageStayDuration': _average_stay(records),
            'peakHours': list(PEAK_HOURS),
        }
