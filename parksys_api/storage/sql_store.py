import logging
import threading
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from parksys_api.db.db import db
from parksys_api.models import ParkingRate, ParkingRecord, ParkingSlot, SlotSequence, User, Vehicle
from parksys_api.models.enums import SlotStatus, VehicleStatus
from parksys_api.models.vehicle import PARKED_REGISTRATION_INDEX
from parksys_api.storage.base import ParkingStore
from parksys_api.utils.errors import (
    DuplicateActiveVehicleError,
    SlotNotFoundError,
    SlotUnavailableError,
    StorageError,
    VehicleNotFoundError,
    VehicleNotParkedError,
)

logger = logging.getLogger(__name__)


class SQLParkingStore(ParkingStore):
    """Flask-SQLAlchemy backed store. Must be used inside an app context."""

    name = 'sql'

    def __init__(self):
        self._local = threading.local()

    def create_schema(self):
        db.create_all()

    @contextmanager
    def unit_of_work(self):
        depth = getattr(self._local, 'depth', 0)
        self._local.depth = depth + 1
        try:
            yield self
            if depth == 0:
                db.session.commit()
        except SQLAlchemyError as e:
            if depth == 0:
                db.session.rollback()
                logger.error("Database transaction rolled back: %s", e)
                raise StorageError(f"Database error: {e.__class__.__name__}") from e
            raise
        except BaseException:
            if depth == 0:
                db.session.rollback()
            raise
        finally:
            self._local.depth = depth

    def update(self, entity, **changes):
        for key, value in changes.items():
            setattr(entity, key, value)
        db.session.flush()
        return entity

    # -- slots -------------------------------------------------------------

    def list_slots(self):
        return ParkingSlot.query.order_by(ParkingSlot.sequence).all()

    def get_slot(self, slot_id):
        return db.session.get(ParkingSlot, slot_id)

    def find_available_slot(self, vehicle_type, exclude=()):
        query = ParkingSlot.query.filter(
            ParkingSlot.vehicle_type == vehicle_type,
            ParkingSlot.status == SlotStatus.AVAILABLE.value
        )
        if exclude:
            query = query.filter(ParkingSlot.id.notin_(list(exclude)))
        return query.order_by(ParkingSlot.sequence).first()

    def occupy_slot(self, slot_id, vehicle_id):
        # Conditional update: a concurrent writer that already took the slot
        # leaves nothing matching the status filter. The unique vehicle_id
        # column rejects a second slot for the same vehicle.
        updated = ParkingSlot.query.filter(
            ParkingSlot.id == slot_id,
            ParkingSlot.status == SlotStatus.AVAILABLE.value
        ).update({
            'status': SlotStatus.OCCUPIED.value,
            'vehicle_id': vehicle_id,
            'updated_at': datetime.now()
        }, synchronize_session='fetch')

        slot = db.session.get(ParkingSlot, slot_id)
        if slot is None:
            raise SlotNotFoundError()
        if not updated:
            raise SlotUnavailableError(
                f"Parking slot {slot.number} is not available (current status: {slot.status})"
            )
        return slot

    def release_slot(self, slot_id):
        slot = db.session.get(ParkingSlot, slot_id)
        if slot is None:
            raise SlotNotFoundError()
        slot.status = SlotStatus.AVAILABLE.value
        slot.vehicle_id = None
        db.session.flush()
        return slot

    def add_slots(self, slots):
        db.session.add_all(slots)
        if slots:
            highest = max(slot.sequence for slot in slots)
            counter = db.session.get(SlotSequence, 1)
            if counter is None:
                db.session.add(SlotSequence(id=1, last_value=highest))
            elif counter.last_value < highest:
                counter.last_value = highest
        db.session.flush()
        return slots

    def max_slot_sequence(self):
        current = db.session.query(func.max(ParkingSlot.sequence)).scalar() or 0
        counter = db.session.get(SlotSequence, 1)
        return max(current, counter.last_value if counter else 0)

    def count_slots_by_type(self):
        rows = db.session.query(
            ParkingSlot.vehicle_type,
            func.count(ParkingSlot.id)
        ).group_by(ParkingSlot.vehicle_type).all()
        return {vehicle_type: count for vehicle_type, count in rows}

    def delete_available_slots(self, vehicle_type, limit):
        if limit <= 0:
            return 0
        doomed = ParkingSlot.query.filter(
            ParkingSlot.vehicle_type == vehicle_type,
            ParkingSlot.status == SlotStatus.AVAILABLE.value
        ).order_by(ParkingSlot.sequence.desc()).limit(limit).all()
        for slot in doomed:
            db.session.delete(slot)
        db.session.flush()
        return len(doomed)

    def release_all_slots(self):
        ParkingSlot.query.update({
            'status': SlotStatus.AVAILABLE.value,
            'vehicle_id': None,
            'updated_at': datetime.now()
        }, synchronize_session='fetch')
        return ParkingSlot.query.count()

    # -- vehicles ----------------------------------------------------------

    def add_vehicle(self, vehicle):
        db.session.add(vehicle)
        try:
            db.session.flush()
        except IntegrityError as e:
            # The partial unique index caught a parked duplicate written concurrently
            message = str(e.orig)
            if PARKED_REGISTRATION_INDEX in message or 'vehicles.registration_number' in message:
                raise DuplicateActiveVehicleError(
                    f"Vehicle {vehicle.registration_number} is already parked in the facility"
                ) from e
            raise
        return vehicle

    def get_vehicle(self, vehicle_id):
        return db.session.get(Vehicle, vehicle_id)

    def find_parked_vehicle(self, registration_number):
        return Vehicle.query.filter_by(
            registration_number=registration_number,
            status=VehicleStatus.PARKED.value
        ).first()

    def mark_vehicle_exited(self, vehicle_id, exit_time):
        # Conditional update: a concurrent exit that already moved the vehicle
        # out of parked leaves nothing matching the status filter.
        updated = Vehicle.query.filter(
            Vehicle.id == vehicle_id,
            Vehicle.status == VehicleStatus.PARKED.value
        ).update({
            'status': VehicleStatus.EXITED.value,
            'exit_time': exit_time,
            'slot_id': None
        }, synchronize_session=False)

        vehicle = db.session.get(Vehicle, vehicle_id, populate_existing=True)
        if vehicle is None:
            raise VehicleNotFoundError()
        if not updated:
            raise VehicleNotParkedError()
        return vehicle

    def list_vehicles(self, status=None):
        query = Vehicle.query
        if status is not None:
            query = query.filter_by(status=status)
        return query.order_by(Vehicle.entry_time.desc()).all()

    def search_parked_vehicles(self, fragment):
        return Vehicle.query.filter(
            Vehicle.status == VehicleStatus.PARKED.value,
            Vehicle.registration_number.icontains(fragment, autoescape=True)
        ).order_by(Vehicle.entry_time.desc()).all()

    def delete_vehicles(self, status):
        doomed = Vehicle.query.filter_by(status=status).all()
        for vehicle in doomed:
            db.session.delete(vehicle)
        db.session.flush()
        return len(doomed)

    # -- records -----------------------------------------------------------

    def add_record(self, record):
        db.session.add(record)
        db.session.flush()
        return record

    def list_records(self, offset=0, limit=None):
        query = ParkingRecord.query.order_by(ParkingRecord.entry_time.desc()).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count_records(self):
        return ParkingRecord.query.count()

    def records_between(self, start, end):
        return ParkingRecord.query.filter(
            ParkingRecord.entry_time >= start,
            ParkingRecord.entry_time < end
        ).all()

    def delete_all_records(self):
        deleted = ParkingRecord.query.delete(synchronize_session=False)
        db.session.flush()
        return deleted

    # -- rates -------------------------------------------------------------

    def list_rates(self):
        return ParkingRate.query.order_by(ParkingRate.effective_from).all()

    def effective_rates(self, vehicle_type, at_time):
        return ParkingRate.query.filter(
            ParkingRate.vehicle_type == vehicle_type,
            ParkingRate.effective_from <= at_time,
            or_(ParkingRate.effective_until.is_(None), ParkingRate.effective_until >= at_time)
        ).order_by(ParkingRate.effective_from.desc()).all()

    def close_open_rates(self, at_time):
        closed = ParkingRate.query.filter(
            ParkingRate.effective_until.is_(None)
        ).update({'effective_until': at_time}, synchronize_session='fetch')
        return closed

    def add_rates(self, rates):
        db.session.add_all(rates)
        db.session.flush()
        return rates

    # -- users -------------------------------------------------------------

    def add_user(self, user):
        db.session.add(user)
        db.session.flush()
        return user

    def get_user(self, user_id):
        return db.session.get(User, user_id)

    def find_user(self, username=None, email=None, phone_number=None):
        clauses = []
        if username is not None:
            clauses.append(User.username == username)
        if email is not None:
            clauses.append(User.email == email)
        if phone_number is not None:
            clauses.append(User.phone_number == phone_number)
        if not clauses:
            return None
        return User.query.filter(or_(*clauses)).first()

    def list_users(self):
        return User.query.order_by(User.created_at.desc()).all()

    def delete_user(self, user_id):
        user = db.session.get(User, user_id)
        if user is None:
            return False
        db.session.delete(user)
        db.session.flush()
        return True
