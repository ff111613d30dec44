import unittest

from parksys_api.models.enums import VehicleStatus
from parksys_api.services.vehicle_ledger import normalize_email, normalize_registration
from parksys_api.storage import InMemoryParkingStore
from parksys_api.utils.errors import (
    DuplicateActiveVehicleError,
    VehicleNotFoundError,
    VehicleNotParkedError,
)
from tests.helpers import FakeClock, build_domain


class TestNormalization(unittest.TestCase):
    def test_registration_is_trimmed_and_upper_cased(self):
        self.assertEqual(normalize_registration('  ka01ab1234 '), 'KA01AB1234')
        self.assertEqual(normalize_registration(None), '')

    def test_email(self):
        self.assertEqual(normalize_email(' Owner@Example.COM '), 'owner@example.com')
        self.assertIsNone(normalize_email('   '))


class TestVehicleLedger(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.store = InMemoryParkingStore()
        self.ledger = build_domain(self.store, self.clock)['ledger']

    def test_register_entry(self):
        vehicle = self.ledger.register_entry('ka01ab1234', 'two_wheeler', ' Asha ',
                                             phone_number='9876543210')
        self.assertEqual(vehicle.registration_number, 'KA01AB1234')
        self.assertEqual(vehicle.owner_name, 'Asha')
        self.assertIsNone(vehicle.email)
        self.assertEqual(vehicle.status, VehicleStatus.PARKED.value)
        self.assertEqual(vehicle.entry_time, self.clock())
        self.assertIs(self.ledger.get(vehicle.id), vehicle)

    def test_duplicate_parked_registration_is_rejected(self):
        self.ledger.register_entry('KA01AB1234', 'two_wheeler', email='a@b.co')
        with self.assertRaises(DuplicateActiveVehicleError):
            self.ledger.register_entry(' ka01ab1234', 'four_wheeler', email='a@b.co')
        self.assertEqual(len(self.ledger.list_all()), 1)

    def test_registration_can_return_after_exit(self):
        first = self.ledger.register_entry('KA01AB1234', 'two_wheeler', email='a@b.co')
        self.clock.advance(minutes=30)
        self.ledger.record_exit(first.id)

        second = self.ledger.register_entry('KA01AB1234', 'two_wheeler', email='a@b.co')

        self.assertNotEqual(first.id, second.id)
        self.assertEqual([v.id for v in self.ledger.list_active()], [second.id])
        self.assertEqual(len(self.ledger.list_all()), 2)

    def test_record_exit(self):
        vehicle = self.ledger.register_entry('MH12XY9999', 'truck', email='t@x.io')
        self.ledger.assign_slot(vehicle, 'slot-1')
        self.clock.advance(hours=2)

        self.ledger.record_exit(vehicle.id)

        self.assertEqual(vehicle.status, VehicleStatus.EXITED.value)
        self.assertEqual(vehicle.exit_time, self.clock())
        self.assertIsNone(vehicle.slot_id)

    def test_record_exit_errors(self):
        with self.assertRaises(VehicleNotFoundError):
            self.ledger.record_exit('missing')

        vehicle = self.ledger.register_entry('MH12XY9999', 'truck', email='t@x.io')
        self.ledger.record_exit(vehicle.id)
        with self.assertRaises(VehicleNotParkedError):
            self.ledger.record_exit(vehicle.id)

    def test_search_only_matches_parked_vehicles(self):
        parked = self.ledger.register_entry('KA01AB1234', 'two_wheeler', email='a@b.co')
        gone = self.ledger.register_entry('KA01ZZ0001', 'two_wheeler', email='a@b.co')
        self.ledger.record_exit(gone.id)

        self.assertEqual([v.id for v in self.ledger.search('ka01')], [parked.id])
        self.assertEqual(self.ledger.search('  '), [])
        self.assertEqual(self.ledger.search('zz'), [])


if __name__ == '__main__':
    unittest.main()
