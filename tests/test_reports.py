import unittest
from datetime import date

from parksys_api.storage import InMemoryParkingStore
from tests.helpers import FakeClock, build_domain


class TestReportAggregator(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.domain = build_domain(InMemoryParkingStore(), self.clock)
        self.domain['rates'].seed_defaults()
        self.domain['slots'].seed_initial_slots()
        self.lifecycle = self.domain['lifecycle']
        self.reports = self.domain['reports']

    def visit(self, registration, vehicle_type, minutes):
        vehicle = self.lifecycle.enter_vehicle(registration, vehicle_type, email='a@b.co')['vehicle']
        self.clock.advance(minutes=minutes)
        self.lifecycle.exit_vehicle(vehicle.id)

    def test_daily_summary(self):
        self.visit('KA01AA0001', 'two_wheeler', 30)    # 10.00
        self.visit('KA01AA0002', 'four_wheeler', 90)   # 40.00
        self.visit('KA01AA0003', 'four_wheeler', 60)   # 20.00
        self.lifecycle.enter_vehicle('KA01AA0004', 'two_wheeler', email='a@b.co')

        summary = self.reports.daily_summary()

        self.assertEqual(summary['date'], '2024-01-15')
        self.assertEqual(summary['totalVehicles'], 3)
        self.assertEqual(summary['totalRevenue'], 70.0)
        self.assertEqual(summary['breakdown']['four_wheeler'], {'count': 2, 'revenue': 60.0})
        self.assertEqual(summary['breakdown']['bus'], {'count': 0, 'revenue': 0.0})
        self.assertEqual((summary['fourWheelerCount'], summary['twoWheelerRevenue']), (2, 10.0))
        self.assertEqual(summary['averageStayDuration'], 60)
        self.assertEqual(summary['currentOccupied'], 1)
        self.assertEqual(summary['currentOccupancyRate'], 2)

    def test_other_days_are_excluded(self):
        self.visit('KA01AA0001', 'two_wheeler', 30)
        summary = self.reports.daily_summary(date(2024, 1, 14))
        self.assertEqual((summary['totalVehicles'], summary['totalRevenue'], summary['averageStayDuration']),
                         (0, 0.0, 0))

    def test_dashboard_stats(self):
        self.visit('KA01AA0001', 'two_wheeler', 125)
        self.lifecycle.enter_vehicle('KA01AA0002', 'four_wheeler', email='a@b.co')

        stats = self.reports.dashboard_stats()

        self.assertEqual(stats['totalSlots'], 50)
        self.assertEqual(stats['occupiedSlots'], 1)
        self.assertEqual(stats['availableSlots'], 49)
        self.assertEqual(stats['reservedSlots'], 0)
        self.assertEqual(stats['todayRevenue'], 30.0)
        self.assertEqual(stats['todayVehicles'], 1)
        self.assertEqual(stats['averageStayDuration'], 125)
        self.assertEqual(stats['peakHours'], ['09:00-11:00', '14:00-16:00', '18:00-20:00'])


if __name__ == '__main__':
    unittest.main()
