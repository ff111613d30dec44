from parksys_api.models.users import User
from parksys_api.models.parking_slot import ParkingSlot, SlotSequence
from parksys_api.models.vehicle import Vehicle
from parksys_api.models.parking_record import ParkingRecord
from parksys_api.models.parking_rate import ParkingRate

__all__ = ['User', 'ParkingSlot', 'SlotSequence', 'Vehicle', 'ParkingRecord', 'ParkingRate']
