from parksys_api.models.base import db, generate_uuid, datetime
from parksys_api.models.enums import SlotStatus


class ParkingSlot(db.Model):
    __tablename__ = 'parking_slots'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    number = db.Column(db.String(10), nullable=False, unique=True)  # 'A01', 'B51', ...
    sequence = db.Column(db.Integer, nullable=False, index=True)
    vehicle_type = db.Column(db.String(20), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=SlotStatus.AVAILABLE.value)

    # Layout only, never read by allocation
    position_x = db.Column(db.Integer, nullable=False, default=0)
    position_y = db.Column(db.Integer, nullable=False, default=0)

    # Unique so that one vehicle can never hold two slots
    vehicle_id = db.Column(db.String(36), nullable=True, unique=True)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    @staticmethod
    def position_for(sequence):
        return ((sequence - 1) % 10) * 100, ((sequence - 1) // 10) * 80

    def to_dict(self):
        return {
            'id': self.id,
            'number': self.number,
            'type': self.vehicle_type,
            'status': self.status,
            'position': {'x': self.position_x, 'y': self.position_y},
            'vehicleId': self.vehicle_id,
        }

    def __repr__(self):
        return f'<ParkingSlot {self.number} ({self.vehicle_type}) - {self.status}>'


class SlotSequence(db.Model):
    """Highest slot sequence ever issued, so removed numbers are not handed out again."""

    __tablename__ = 'slot_sequences'

    id = db.Column(db.Integer, primary_key=True)
    last_value = db.Column(db.Integer, nullable=False, default=0)
