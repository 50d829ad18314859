# File: src/smartpark/domain/models.py
"""
Domain Models for the SmartPark parking core

This module contains:
1. Value Objects: Money and Registration, immutable and validated
2. Enums: vehicle classes, slot types and the two status machines
3. Entities: ParkingLot, Floor, ParkingSlot and VehicleSession
4. Domain Events: facts published after a unit of work commits

Entities guard their own state transitions; the stores decide when a
transition happens and persist it atomically.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from enum import Enum
import re
import uuid

from .exceptions import InvalidAmountError, InvariantViolationError, SlotStateError


TWO_PLACES = Decimal('0.01')


# ============================================================================
# VALUE OBJECTS
# ============================================================================

@dataclass(frozen=True)
class Money:
    """
    Value Object: Non-negative monetary amount
    Always held at two decimal places, rounded half-up
    """
    amount: Decimal
    currency: str = "INR"

    def __post_init__(self):
        try:
            amount = Decimal(str(self.amount))
        except (InvalidOperation, ValueError):
            raise ValueError(f"Invalid money amount: {self.amount!r}")

        if not amount.is_finite():
            raise ValueError(f"Money amount must be finite: {self.amount!r}")

        if amount < Decimal('0'):
            raise ValueError("Money amount cannot be negative")

        if len(self.currency) != 3:
            raise ValueError(f"Currency must be 3-letter code: {self.currency}")

        object.__setattr__(self, 'amount', amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP))

    def __add__(self, other: 'Money') -> 'Money':
        if self.currency != other.currency:
            raise ValueError(f"Cannot add {self.currency} to {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, multiplier) -> 'Money':
        """Multiply money by a non-negative factor"""
        multiplier = Decimal(str(multiplier))
        if multiplier < Decimal('0'):
            raise ValueError("Multiplier cannot be negative")
        return Money(self.amount * multiplier, self.currency)

    def format(self) -> str:
        return f"{self.amount:.2f} {self.currency}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": str(self.amount),
            "currency": self.currency
        }


@dataclass(frozen=True)
class Registration:
    """
    Value Object: Vehicle registration identifier
    Normalized to upper case without surrounding whitespace
    """
    value: str

    def __post_init__(self):
        if self.value is None or not str(self.value).strip():
            raise ValueError("Vehicle registration is required")

        object.__setattr__(self, 'value', str(self.value).strip().upper())

        if len(self.value) > 20:
            raise ValueError(f"Vehicle registration must be at most 20 characters, got: {self.value}")

        if not re.match(r'^[A-Z0-9\s\-]+$', self.value):
            raise ValueError(
                f"Vehicle registration can only contain letters, numbers, spaces, and hyphens: {self.value}"
            )

    def __str__(self) -> str:
        return self.value


# ============================================================================
# ENUMS FOR DOMAIN TYPES
# ============================================================================

class SlotType(str, Enum):
    """Compatibility tag of a physical slot"""
    TWO_WHEELER = "TWO_WHEELER"
    FOUR_WHEELER = "FOUR_WHEELER"
    HEAVY_VEHICLE = "HEAVY_VEHICLE"

    def __str__(self) -> str:
        return self.value


class VehicleType(str, Enum):
    """
    Vehicle classes, ordered by size/weight
    Each class parks in exactly one slot type
    """
    TWO_WHEELER = "TWO_WHEELER"
    FOUR_WHEELER = "FOUR_WHEELER"
    HEAVY_VEHICLE = "HEAVY_VEHICLE"

    @property
    def required_slot_type(self) -> SlotType:
        return _SLOT_TYPE_BY_VEHICLE[self]

    def __str__(self) -> str:
        return self.value


_SLOT_TYPE_BY_VEHICLE = {
    VehicleType.TWO_WHEELER: SlotType.TWO_WHEELER,
    VehicleType.FOUR_WHEELER: SlotType.FOUR_WHEELER,
    VehicleType.HEAVY_VEHICLE: SlotType.HEAVY_VEHICLE,
}


class SlotStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"


class SessionStatus(str, Enum):
    ACTIVE = "ACTIVE"      # Currently parked
    CLOSED = "CLOSED"      # Exited and billed


# ============================================================================
# DOMAIN ENTITIES
# ============================================================================

class Entity:
    """
    Base class for all domain entities
    Provides common functionality for entities with identity
    """

    def __init__(self, id: Optional[str] = None):
        self._id = id or str(uuid.uuid4())

    @property
    def id(self) -> str:
        """Get entity ID"""
        return self._id

    def __eq__(self, other: object) -> bool:
        """Entities are equal if they have the same ID and type"""
        if not isinstance(other, Entity):
            return False
        return self.id == other.id and type(self) == type(other)

    def __hash__(self) -> int:
        return hash((self.id, type(self).__name__))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id})"


class ParkingLot(Entity):
    """Entity: A named facility made of numbered floors"""

    def __init__(
        self,
        name: str,
        address: Optional[str] = None,
        total_floors: int = 1,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        id: Optional[str] = None
    ):
        super().__init__(id)
        self.name = name.strip() if name else name
        self.address = address
        self.total_floors = total_floors
        self.created_at = created_at or datetime.now()
        self.updated_at = updated_at or self.created_at
        self._validate()

    def _validate(self) -> None:
        if not self.name:
            raise ValueError("Parking lot name is required")

        if self.address is not None and len(self.address) > 500:
            raise ValueError("Parking lot address must be at most 500 characters")

        if self.total_floors is None or self.total_floors < 1:
            raise ValueError("Parking lot must declare at least one floor")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "total_floors": self.total_floors,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat()
        }


class Floor(Entity):
    """
    Entity: One level of a lot, owning a fixed set of slots

    allotted_slots is derived state: it moves by exactly one per slot
    transition and is only touched by the inventory stores.
    """

    def __init__(
        self,
        lot_id: str,
        floor_no: int,
        total_slots: int,
        allotted_slots: int = 0,
        id: Optional[str] = None
    ):
        super().__init__(id)
        self.lot_id = lot_id
        self.floor_no = floor_no
        self.total_slots = total_slots
        self.allotted_slots = allotted_slots
        self._validate()

    def _validate(self) -> None:
        if self.floor_no is None or self.floor_no < 0:
            raise ValueError("Floor number cannot be negative")

        if self.total_slots is None or self.total_slots < 0:
            raise ValueError("Total slots cannot be negative")

        if not 0 <= self.allotted_slots <= self.total_slots:
            raise ValueError(
                f"Allotted slots must be between 0 and {self.total_slots}, got {self.allotted_slots}"
            )

    @property
    def available_slots(self) -> int:
        return self.total_slots - self.allotted_slots

    def increment_allotted(self) -> None:
        """Count one more occupied slot"""
        if self.allotted_slots >= self.total_slots:
            raise InvariantViolationError(
                f"Floor {self.floor_no} already has all {self.total_slots} slots allotted"
            )
        self.allotted_slots += 1

    def decrement_allotted(self) -> bool:
        """
        Count one less occupied slot, clamped at zero
        Returns: False if the clamp had to be applied
        """
        if self.allotted_slots <= 0:
            self.allotted_slots = 0
            return False
        self.allotted_slots -= 1
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "lot_id": self.lot_id,
            "floor_no": self.floor_no,
            "total_slots": self.total_slots,
            "allotted_slots": self.allotted_slots,
            "available_slots": self.available_slots
        }


class ParkingSlot(Entity):
    """
    Entity: Individual parking space of one slot type
    Lifecycle: AVAILABLE <-> OCCUPIED
    """

    def __init__(
        self,
        floor_id: str,
        slot_type: SlotType,
        status: SlotStatus = SlotStatus.AVAILABLE,
        current_session_id: Optional[str] = None,
        id: Optional[str] = None
    ):
        super().__init__(id)
        self.floor_id = floor_id
        self.slot_type = SlotType(slot_type)
        self.status = SlotStatus(status)
        self.current_session_id = current_session_id

    @property
    def is_available(self) -> bool:
        return self.status == SlotStatus.AVAILABLE

    def occupy(self, session_id: str) -> None:
        """
        Occupy the slot on behalf of a vehicle session
        Raises: SlotStateError if slot is already occupied
        """
        if not self.is_available:
            raise SlotStateError(f"Slot {self.id} is already occupied")

        self.status = SlotStatus.OCCUPIED
        self.current_session_id = session_id

    def vacate(self) -> None:
        """
        Free the slot
        Raises: SlotStateError if slot is already available
        """
        if self.is_available:
            raise SlotStateError(f"Slot {self.id} is not occupied")

        self.status = SlotStatus.AVAILABLE
        self.current_session_id = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "floor_id": self.floor_id,
            "slot_type": self.slot_type.value,
            "status": self.status.value,
            "current_session_id": self.current_session_id
        }

    def __str__(self) -> str:
        return f"Slot {self.id} ({self.slot_type}) - {self.status.value}"


class VehicleSession(Entity):
    """
    Entity: One vehicle's stay, from entry to exit

    Created ACTIVE with a claimed slot, closed exactly once at exit.
    """

    def __init__(
        self,
        vehicle_type: VehicleType,
        registration: str,
        time_in: datetime,
        slot_id: Optional[str] = None,
        status: SessionStatus = SessionStatus.ACTIVE,
        time_out: Optional[datetime] = None,
        fee: Optional[Decimal] = None,
        id: Optional[str] = None
    ):
        super().__init__(id)
        self.vehicle_type = VehicleType(vehicle_type)
        self.registration = Registration(registration).value
        self.time_in = time_in
        self.slot_id = slot_id
        self.status = SessionStatus(status)
        self.time_out = time_out
        self.fee = Money(fee).amount if fee is not None else None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    def elapsed(self, now: datetime) -> timedelta:
        """
        Time parked up to `now`
        Raises: InvariantViolationError if the clock moved backwards
        """
        elapsed = now - self.time_in
        if elapsed < timedelta(0):
            raise InvariantViolationError(
                f"Exit time {now.isoformat()} precedes entry time {self.time_in.isoformat()} "
                f"for session {self.id}"
            )
        return elapsed

    def close(self, time_out: datetime, fee: Decimal) -> None:
        """Close the session with its computed fee and drop the slot reference"""
        if not self.is_active:
            raise InvariantViolationError(f"Session {self.id} is already closed")

        self.time_out = time_out
        self.fee = Money(fee).amount
        self.status = SessionStatus.CLOSED
        self.slot_id = None

    def override_fee(self, amount) -> None:
        """Overwrite the stored fee (administrative correction)"""
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            raise InvalidAmountError(f"Invalid fee amount: {amount!r}")

        if not value.is_finite() or value <= Decimal('0'):
            raise InvalidAmountError(f"Fee amount must be positive, got {amount}")

        # The stored, rounded fee must itself be positive
        fee = Money(value).amount
        if fee <= Decimal('0'):
            raise InvalidAmountError(f"Fee amount must be positive at two decimal places, got {amount}")

        self.fee = fee

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "vehicle_type": self.vehicle_type.value,
            "registration": self.registration,
            "time_in": self.time_in.isoformat(),
            "time_out": self.time_out.isoformat() if self.time_out else None,
            "status": self.status.value,
            "fee": str(self.fee) if self.fee is not None else None,
            "slot_id": self.slot_id
        }

    def __str__(self) -> str:
        return f"{self.registration} ({self.vehicle_type}) - {self.status.value}"


# ============================================================================
# DOMAIN EVENTS (for event-driven architecture)
# ============================================================================

class DomainEvent(ABC):
    """
    Base class for all domain events
    Events represent something that happened in the domain
    """

    event_type = "domain_event"

    def __init__(self, timestamp: Optional[datetime] = None):
        self.event_id = str(uuid.uuid4())
        self.timestamp = timestamp or datetime.now()
        self.version = "1.0"

    @abstractmethod
    def payload(self) -> Dict[str, Any]:
        """Event-specific data"""
        pass

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat(),
            "version": self.version,
            "data": self.payload()
        }

    def __str__(self) -> str:
        return f"{self.__class__.__name__} at {self.timestamp}"


class VehicleParkedEvent(DomainEvent):
    """Event raised when a vehicle is parked"""

    event_type = "vehicle_parked"

    def __init__(self, session: VehicleSession, floor_id: Optional[str] = None):
        super().__init__(session.time_in)
        self.session_id = session.id
        self.registration = session.registration
        self.vehicle_type = session.vehicle_type
        self.slot_id = session.slot_id
        self.floor_id = floor_id

    def payload(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "registration": self.registration,
            "vehicle_type": self.vehicle_type.value,
            "slot_id": self.slot_id,
            "floor_id": self.floor_id
        }


class VehicleExitedEvent(DomainEvent):
    """Event raised when a vehicle leaves and is billed"""

    event_type = "vehicle_exited"

    def __init__(self, session: VehicleSession, released_slot_id: Optional[str] = None):
        super().__init__(session.time_out)
        self.session_id = session.id
        self.registration = session.registration
        self.vehicle_type = session.vehicle_type
        self.released_slot_id = released_slot_id
        self.fee = session.fee
        self.duration_minutes = int((session.time_out - session.time_in).total_seconds() // 60)

    def payload(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "registration": self.registration,
            "vehicle_type": self.vehicle_type.value,
            "released_slot_id": self.released_slot_id,
            "fee": str(self.fee),
            "duration_minutes": self.duration_minutes
        }


class FeeOverriddenEvent(DomainEvent):
    """Event raised when an operator overwrites a session fee"""

    event_type = "fee_overridden"

    def __init__(self, session: VehicleSession, previous_fee: Optional[Decimal]):
        super().__init__()
        self.session_id = session.id
        self.registration = session.registration
        self.previous_fee = previous_fee
        self.fee = session.fee

    def payload(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "registration": self.registration,
            "previous_fee": str(self.previous_fee) if self.previous_fee is not None else None,
            "fee": str(self.fee)
        }
