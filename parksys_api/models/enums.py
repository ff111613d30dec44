from enum import Enum


class VehicleType(str, Enum):
    TWO_WHEELER = 'two_wheeler'
    FOUR_WHEELER = 'four_wheeler'
    TRUCK = 'truck'
    BUS = 'bus'

    @classmethod
    def values(cls):
        return [member.value for member in cls]


class VehicleStatus(str, Enum):
    PARKED = 'parked'
    EXITED = 'exited'
    RESERVED = 'reserved'  # defined, no workflow sets it


class SlotStatus(str, Enum):
    AVAILABLE = 'available'
    OCCUPIED = 'occupied'
    RESERVED = 'reserved'
    MAINTENANCE = 'maintenance'


class UserRole(str, Enum):
    ADMIN = 'admin'
    STAFF = 'staff'
    CUSTOMER = 'customer'

    @classmethod
    def values(cls):
        return [member.value for member in cls]


class PaymentStatus(str, Enum):
    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'
    REFUNDED = 'refunded'


class PaymentMethod(str, Enum):
    CASH = 'cash'
    CARD = 'card'
    UPI = 'upi'
    WALLET = 'wallet'

    @classmethod
    def values(cls):
        return [member.value for member in cls]


# Label prefix used when new slots of a category are appended
SLOT_PREFIXES = {
    VehicleType.TWO_WHEELER.value: 'A',
    VehicleType.FOUR_WHEELER.value: 'B',
    VehicleType.TRUCK.value: 'C',
    VehicleType.BUS.value: 'D',
}
