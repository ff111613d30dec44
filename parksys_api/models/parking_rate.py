from parksys_api.models.base import db, generate_uuid, datetime


class ParkingRate(db.Model):
    __tablename__ = 'parking_rates'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    vehicle_type = db.Column(db.String(20), nullable=False, index=True)
    base_rate = db.Column(db.Numeric(10, 2), nullable=False)
    # Stored for the dashboard, the fee formula bills every hour at base_rate
    additional_rate = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default='INR')
    effective_from = db.Column(db.DateTime, nullable=False, default=datetime.now)
    effective_until = db.Column(db.DateTime, nullable=True)

    def is_effective(self, at_time):
        if self.effective_from > at_time:
            return False
        return self.effective_until is None or self.effective_until >= at_time

    def to_dict(self):
        return {
            'id': self.id,
            'vehicleType': self.vehicle_type,
            'baseRate': float(self.base_rate),
            'additionalRate': float(self.additional_rate),
            'currency': self.currency,
            'effectiveFrom': self.effective_from.isoformat() if self.effective_from else None,
            'effectiveUntil': self.effective_until.isoformat() if self.effective_until else None,
        }

    def __repr__(self):
        return f'<ParkingRate {self.vehicle_type} {self.base_rate}/h>'
