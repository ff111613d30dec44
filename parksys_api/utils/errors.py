class ParkingError(Exception):
    """Base class for errors that map onto an HTTP error envelope."""

    status_code = 500
    code = 'PARKING_ERROR'
    default_message = 'Parking operation failed'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {'success': False, 'error': self.message, 'code': self.code}


class ValidationError(ParkingError):
    status_code = 400
    code = 'VALIDATION_ERROR'
    default_message = 'Invalid request'


class DuplicateActiveVehicleError(ParkingError):
    status_code = 409
    code = 'DUPLICATE_ACTIVE_VEHICLE'
    default_message = 'Vehicle is already parked in the facility'


class NoAvailableSlotError(ParkingError):
    status_code = 409
    code = 'NO_AVAILABLE_SLOT'
    default_message = 'No available slots for this vehicle type'


class VehicleNotFoundError(ParkingError):
    status_code = 404
    code = 'VEHICLE_NOT_FOUND'
    default_message = 'Vehicle not found'


class VehicleNotParkedError(ParkingError):
    status_code = 409
    code = 'VEHICLE_NOT_PARKED'
    default_message = 'Vehicle is not currently parked'


class SlotNotFoundError(ParkingError):
    status_code = 404
    code = 'SLOT_NOT_FOUND'
    default_message = 'Parking slot not found'


class SlotUnavailableError(ParkingError):
    status_code = 409
    code = 'SLOT_UNAVAILABLE'
    default_message = 'Parking slot is not available'


class AuthError(ParkingError):
    status_code = 401
    code = 'AUTH_ERROR'
    default_message = 'Invalid credentials'


class PermissionDeniedError(ParkingError):
    status_code = 403
    code = 'PERMISSION_DENIED'
    default_message = 'Permission denied'


class NotFoundError(ParkingError):
    status_code = 404
    code = 'NOT_FOUND'
    default_message = 'Resource not found'


class ServiceUnavailableError(ParkingError):
    status_code = 503
    code = 'SERVICE_UNAVAILABLE'
    default_message = 'Service is currently unavailable'


class StorageError(ParkingError):
    status_code = 500
    code = 'STORAGE_ERROR'
    default_message = 'Storage operation failed'
