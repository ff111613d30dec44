from parksys_api.models.base import db, generate_uuid, datetime
from parksys_api.models.enums import PaymentStatus


class ParkingRecord(db.Model):
    """Billing entry written once when a vehicle leaves."""

    __tablename__ = 'parking_records'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    # One record per visit: a vehicle row is billed once
    vehicle_id = db.Column(db.String(36), db.ForeignKey('vehicles.id'), nullable=False, unique=True)
    # No foreign key: slots may be removed after the stay is billed
    slot_id = db.Column(db.String(36), nullable=False)
    slot_number = db.Column(db.String(10))
    registration_number = db.Column(db.String(20), nullable=False)
    vehicle_type = db.Column(db.String(20), nullable=False)
    entry_time = db.Column(db.DateTime, nullable=False, index=True)
    exit_time = db.Column(db.DateTime, nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    rate_applied = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default='INR')
    payment_status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = db.Column(db.String(20))
    receipt_id = db.Column(db.String(40), unique=True)
    created_at = db.Column(db.DateTime, default=datetime.now)

    def to_dict(self):
        return {
            'id': self.id,
            'vehicleId': self.vehicle_id,
            'slotId': self.slot_id,
            'slotNumber': self.slot_number,
            'registrationNumber': self.registration_number,
            'vehicleType': self.vehicle_type,
            'entryTime': self.entry_time.isoformat(),
            'exitTime': self.exit_time.isoformat(),
            'duration': self.duration_minutes,
            'amount': float(self.amount),
            'rateApplied': float(self.rate_applied),
            'currency': self.currency,
            'paymentStatus': self.payment_status,
            'paymentMethod': self.payment_method,
            'receiptId': self.receipt_id,
        }

    def __repr__(self):
        return f'<ParkingRecord {self.receipt_id} {self.registration_number} {self.amount}>'
