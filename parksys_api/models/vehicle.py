from parksys_api.models.base import db, generate_uuid, datetime
from parksys_api.models.enums import VehicleStatus

PARKED_REGISTRATION_INDEX = 'uq_vehicles_parked_registration'


class Vehicle(db.Model):
    __tablename__ = 'vehicles'
    __table_args__ = (
        # At most one parked row per registration; exited rows are unrestricted
        db.Index(
            PARKED_REGISTRATION_INDEX,
            'registration_number',
            unique=True,
            sqlite_where=db.text("status = 'parked'"),
            postgresql_where=db.text("status = 'parked'"),
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    registration_number = db.Column(db.String(20), nullable=False, index=True)
    vehicle_type = db.Column(db.String(20), nullable=False)
    owner_name = db.Column(db.String(100))
    phone_number = db.Column(db.String(20))
    email = db.Column(db.String(120))
    entry_time = db.Column(db.DateTime, nullable=False, default=datetime.now)
    exit_time = db.Column(db.DateTime, nullable=True)

    # Only set while the vehicle is parked
    slot_id = db.Column(db.String(36), db.ForeignKey('parking_slots.id'), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=VehicleStatus.PARKED.value, index=True)
    created_at = db.Column(db.DateTime, default=datetime.now)

    def to_dict(self, slot=None):
        data = {
            'id': self.id,
            'registrationNumber': self.registration_number,
            'type': self.vehicle_type,
            'ownerName': self.owner_name,
            'phoneNumber': self.phone_number,
            'email': self.email,
            'entryTime': self.entry_time.isoformat() if self.entry_time else None,
            'exitTime': self.exit_time.isoformat() if self.exit_time else None,
            'slotId': self.slot_id,
            'status': self.status,
        }
        if slot is not None:
            data['slot'] = slot.to_dict()
        return data

    def __repr__(self):
        return f'<Vehicle {self.registration_number} ({self.status})>'
