"""Vehicle entry and exit.

Entry and exit each run as one storage unit of work: either every write of
the operation lands or none does. Notifications are queued after the unit
commits and never affect its outcome.
"""
import logging
import math
import re
import secrets
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from parksys_api.models import ParkingRecord
from parksys_api.models.base import generate_uuid
from parksys_api.models.enums import PaymentMethod, PaymentStatus, VehicleStatus, VehicleType
from parksys_api.utils.errors import (
    NoAvailableSlotError,
    SlotNotFoundError,
    SlotUnavailableError,
    ValidationError,
    VehicleNotParkedError,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
CENTS = Decimal('0.01')


def calculate_fee(entry_time, exit_time, base_rate):
    """Return ``(duration_minutes, amount)`` for a stay.

    Every started hour is billed at ``base_rate``.
    """
    seconds = max((exit_time - entry_time).total_seconds(), 0)
    duration_minutes = math.ceil(seconds / 60)
    billed_hours = math.ceil(duration_minutes / 60)
    amount = (Decimal(billed_hours) * Decimal(base_rate)).quantize(CENTS, rounding=ROUND_HALF_UP)
    return duration_minutes, amount


def generate_receipt_id(at_time):
    return f"RCP-{int(at_time.timestamp() * 1000)}-{secrets.token_hex(2).upper()}"


def format_amount(currency, amount):
    return f"{currency} {Decimal(amount).quantize(CENTS)}"


class ParkingLifecycle:
    def __init__(self, store, slots, ledger, rates, dispatcher=None, clock=datetime.now,
                 allocation_attempts=3, high_occupancy_threshold=90,
                 admin_emails=(), admin_phones=()):
        self.store = store
        self.slots = slots
        self.ledger = ledger
        self.rates = rates
        self.dispatcher = dispatcher
        self.clock = clock
        self.allocation_attempts = max(1, allocation_attempts)
        self.high_occupancy_threshold = high_occupancy_threshold
        self.admin_emails = list(admin_emails)
        self.admin_phones = list(admin_phones)

    # -- validation ----------------------------------------------------------

    @staticmethod
    def validate_entry(registration_number, vehicle_type, phone_number=None, email=None):
        if not (registration_number or '').strip():
            raise ValidationError("Registration number is required")
        if vehicle_type not in VehicleType.values():
            raise ValidationError(
                f"Invalid vehicle type. Use one of: {', '.join(VehicleType.values())}"
            )
        phone_number = (phone_number or '').strip()
        email = (email or '').strip()
        if not phone_number and not email:
            raise ValidationError("Either phone number or email is required")
        if email and not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email address")

    @staticmethod
    def validate_payment_method(payment_method):
        method = (payment_method or PaymentMethod.CASH.value).strip().lower()
        if method not in PaymentMethod.values():
            raise ValidationError(
                f"Invalid payment method. Use one of: {', '.join(PaymentMethod.values())}"
            )
        return method

    # -- entry ---------------------------------------------------------------

    def enter_vehicle(self, registration_number, vehicle_type, owner_name=None,
                      phone_number=None, email=None):
        self.validate_entry(registration_number, vehicle_type, phone_number, email)

        lost = []
        for attempt in range(1, self.allocation_attempts + 1):
            try:
                with self.store.unit_of_work():
                    vehicle = self.ledger.register_entry(
                        registration_number, vehicle_type, owner_name,
                        phone_number, email, entry_time=self.clock()
                    )
                    slot = self.slots.find_available_slot(vehicle_type, exclude=lost)
                    if slot is None:
                        raise NoAvailableSlotError(
                            f"No available slots for {vehicle_type.replace('_', ' ')}"
                        )
                    slot_id = slot.id
                    slot = self.slots.occupy(slot_id, vehicle.id)
                    self.ledger.assign_slot(vehicle, slot.id)
                break
            except SlotUnavailableError:
                # Another writer took the slot between lookup and update
                logger.warning("Lost slot %s to a concurrent entry (attempt %d)", slot_id, attempt)
                lost.append(slot_id)
        else:
            raise NoAvailableSlotError(
                f"No available slots for {vehicle_type.replace('_', ' ')}"
            )

        rate = self.rates.current_rate(vehicle.vehicle_type, vehicle.entry_time)
        logger.info("Vehicle %s entered, slot %s", vehicle.registration_number, slot.number)

        self._notify_owner(vehicle, 'vehicleEntry', {
            'registrationNumber': vehicle.registration_number,
            'type': vehicle.vehicle_type,
            'ownerName': vehicle.owner_name,
            'slotNumber': slot.number,
            'entryTime': vehicle.entry_time.isoformat(),
            'rate': float(rate.base_rate),
            'currency': rate.currency,
        })
        self._check_occupancy()

        return {
            'vehicle': vehicle,
            'slot': slot,
            'rate': rate,
            'message': f"Vehicle parked in slot {slot.number}.",
        }

    # -- exit ----------------------------------------------------------------

    def exit_vehicle(self, vehicle_id, payment_method=None):
        method = self.validate_payment_method(payment_method)

        with self.store.unit_of_work():
            vehicle = self.ledger.get(vehicle_id)
            if vehicle.status != VehicleStatus.PARKED.value:
                raise VehicleNotParkedError()
            slot = self.slots.get_slot(vehicle.slot_id) if vehicle.slot_id else None
            if slot is None:
                raise SlotNotFoundError("Parking slot for this vehicle not found")

            exit_time = self.clock()
            # Claim the exit first so a concurrent exit of the same vehicle
            # fails here, before it can bill or release anything
            self.ledger.record_exit(vehicle.id, exit_time)

            rate = self.rates.current_rate(vehicle.vehicle_type, exit_time)
            duration_minutes, amount = calculate_fee(vehicle.entry_time, exit_time, rate.base_rate)

            record = self.store.add_record(ParkingRecord(
                id=generate_uuid(),
                vehicle_id=vehicle.id,
                slot_id=slot.id,
                slot_number=slot.number,
                registration_number=vehicle.registration_number,
                vehicle_type=vehicle.vehicle_type,
                entry_time=vehicle.entry_time,
                exit_time=exit_time,
                duration_minutes=duration_minutes,
                amount=amount,
                rate_applied=rate.base_rate,
                currency=rate.currency,
                payment_status=PaymentStatus.COMPLETED.value,
                payment_method=method,
                receipt_id=generate_receipt_id(exit_time),
                created_at=exit_time,
            ))
            self.slots.release(slot.id)

        logger.info("Vehicle %s exited after %d min, charged %s",
                    record.registration_number, duration_minutes, format_amount(record.currency, amount))

        self._notify_owner(vehicle, 'vehicleExit', {
            'registrationNumber': record.registration_number,
            'ownerName': vehicle.owner_name,
            'slotNumber': record.slot_number,
            'entryTime': record.entry_time.isoformat(),
            'exitTime': record.exit_time.isoformat(),
            'duration': duration_minutes,
            'amount': float(amount),
            'currency': record.currency,
            'paymentMethod': method,
            'receiptId': record.receipt_id,
        })

        return {
            'record': record,
            'vehicle': vehicle,
            'message': f"Vehicle exited. Amount: {format_amount(record.currency, amount)}.",
        }

    # -- administration ------------------------------------------------------

    def reset(self):
        """Clear parked vehicles and all records, then free every slot.

        Exited vehicles are kept.
        """
        with self.store.unit_of_work():
            records = self.store.delete_all_records()
            slots = self.store.release_all_slots()
            vehicles = self.store.delete_vehicles(VehicleStatus.PARKED.value)

        logger.info("Parking data reset: %d parked vehicles and %d records removed", vehicles, records)
        return {'vehiclesRemoved': vehicles, 'recordsRemoved': records, 'slots': slots}

    def send_test_notifications(self, email=None, phone_number=None):
        data = {
            'registrationNumber': 'TEST-123',
            'type': VehicleType.TWO_WHEELER.value,
            'ownerName': 'Test User',
            'slotNumber': 'A01',
            'entryTime': self.clock().isoformat(),
            'rate': float(self.rates.current_rate(VehicleType.TWO_WHEELER.value).base_rate),
            'currency': self.rates.currency,
        }
        queued = {'email': False, 'sms': False}
        if self.dispatcher is None:
            return queued
        if email:
            queued['email'] = self.dispatcher.enqueue('email', email, 'vehicleEntry', data) is not None
        if phone_number:
            queued['sms'] = self.dispatcher.enqueue('sms', phone_number, 'vehicleEntry', data) is not None
        return queued

    # -- notifications -------------------------------------------------------

    def _notify_owner(self, vehicle, template_id, data):
        if self.dispatcher is None:
            return
        if vehicle.email:
            self.dispatcher.enqueue('email', vehicle.email, template_id, data)
        if vehicle.phone_number:
            self.dispatcher.enqueue('sms', vehicle.phone_number, template_id, data)

    def _check_occupancy(self):
        if self.dispatcher is None or not (self.admin_emails or self.admin_phones):
            return
        occupancy = self.slots.occupancy()
        if not occupancy['total']:
            return
        rate = round(occupancy['occupied'] / occupancy['total'] * 100)
        if rate < self.high_occupancy_threshold:
            return

        logger.warning("High occupancy: %d%% of %d slots occupied", rate, occupancy['total'])
        data = {
            'occupancyRate': rate,
            'occupiedSlots': occupancy['occupied'],
            'availableSlots': occupancy['available'],
            'generatedAt': self.clock().isoformat(),
        }
        for address in self.admin_emails:
            self.dispatcher.enqueue('email', address, 'highOccupancy', data)
        for phone in self.admin_phones:
            self.dispatcher.enqueue('sms', phone, 'highOccupancy', data)
