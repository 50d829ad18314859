# File: src/smartpark/domain/exceptions.py
"""
Error taxonomy for the parking core.

All domain failures are raised as subclasses of ParkingServiceError so the
request-handling layer can map them to client-facing responses:

1. VehicleAlreadyParkedError - user-correctable, no retry
2. NoAvailableSlotError - transient capacity condition, caller may retry
3. NotFoundError family - vehicle/session/slot/lot/floor missing
4. InvalidAmountError - administrative fee override validation
5. InvariantViolationError family - internal, fatal for the unit of work
"""


class ParkingServiceError(Exception):
    """Base exception for parking service errors"""
    pass


class VehicleAlreadyParkedError(ParkingServiceError):
    """Raised when a registration already has an active session"""

    def __init__(self, registration: str):
        super().__init__(f"Vehicle {registration} is already parked")
        self.registration = registration


class SlotAllocationError(ParkingServiceError):
    """Exception for slot allocation errors"""
    pass


class NoAvailableSlotError(SlotAllocationError):
    """Raised when no slot of the required type is available"""

    def __init__(self, slot_type):
        super().__init__(f"No available slot for {slot_type}")
        self.slot_type = slot_type


class NotFoundError(ParkingServiceError):
    """Base exception for missing resources"""
    pass


class VehicleNotFoundError(NotFoundError):
    pass


class SlotNotFoundError(NotFoundError):
    pass


class ParkingLotNotFoundError(NotFoundError):
    pass


class FloorNotFoundError(NotFoundError):
    pass


class InvalidAmountError(ParkingServiceError):
    """Raised when a fee override is not a positive amount"""
    pass


class DuplicateResourceError(ParkingServiceError):
    """Raised when a uniquely named resource already exists"""
    pass


class InvalidOperationError(ParkingServiceError):
    pass


class InvariantViolationError(ParkingServiceError):
    """
    Internal consistency failure (negative elapsed time, counter overflow,
    slot status mismatch). The enclosing unit of work must be rolled back.
    """
    pass


class SlotStateError(InvariantViolationError):
    """Raised when a slot transition is requested from the wrong status"""
    pass
