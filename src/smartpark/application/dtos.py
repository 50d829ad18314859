# File: src/smartpark/application/dtos.py
"""
Data Transfer Objects (DTOs) for the parking core

This module defines DTOs for data transfer between layers:
1. Input DTOs - validated provisioning requests (lots and floors)
2. Output DTOs - read-only views of sessions, lots, floors and slots

DTO Principles:
- Validation at creation (pydantic)
- Built from domain entities via from_attributes, never the other way round
- No business logic, only data
"""

from typing import Dict, List, Optional, Any
from datetime import datetime
from decimal import Decimal
import json

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domain.models import (
    VehicleType, SlotType, SlotStatus, SessionStatus,
    VehicleSession, ParkingLot, Floor, ParkingSlot
)


# ============================================================================
# BASE DTO CLASSES
# ============================================================================

class BaseDTO(BaseModel):
    """Base DTO with common functionality"""

    model_config = ConfigDict(
        from_attributes=True,  # Allow creation from domain entities
        populate_by_name=True,
        use_enum_values=True
    )

    def to_dict(self, exclude_none: bool = False, **kwargs) -> Dict[str, Any]:
        """Convert DTO to dictionary"""
        data = self.model_dump(**kwargs)
        if exclude_none:
            data = {k: v for k, v in data.items() if v is not None}
        return data

    def to_json(self, **kwargs) -> str:
        """Convert DTO to JSON string"""
        return self.model_dump_json(**kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaseDTO':
        """Create DTO from dictionary"""
        return cls(**data)

    @classmethod
    def from_json(cls, json_str: str) -> 'BaseDTO':
        """Create DTO from JSON string"""
        return cls(**json.loads(json_str))


# ============================================================================
# SESSION DTOs
# ============================================================================

class VehicleSessionDTO(BaseDTO):
    """Vehicle session view"""
    id: str = Field(description="Session ID")
    vehicle_type: VehicleType
    registration: str
    time_in: datetime
    time_out: Optional[datetime] = None
    status: SessionStatus
    fee: Optional[Decimal] = Field(default=None, description="Fee, set on exit")
    slot_id: Optional[str] = Field(default=None, description="Occupied slot while active")

    @classmethod
    def from_session(cls, session: VehicleSession) -> 'VehicleSessionDTO':
        return cls.model_validate(session)


# ============================================================================
# INVENTORY DTOs
# ============================================================================

class ParkingLotCreateDTO(BaseDTO):
    """DTO for creating a parking lot"""
    name: str = Field(min_length=1, max_length=100, description="Parking lot name (unique)")
    address: Optional[str] = Field(default=None, max_length=500, description="Street address")
    total_floors: int = Field(default=1, ge=1, description="Declared number of floors")

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Parking lot name cannot be blank")
        return v


class FloorCreateDTO(BaseDTO):
    """DTO for adding a floor and its slots to a lot"""
    lot_id: str = Field(description="Parking lot ID")
    floor_no: int = Field(ge=0, description="Floor number, unique within the lot")
    slot_configuration: Dict[SlotType, int] = Field(description="Number of slots by type")

    @field_validator('slot_configuration')
    @classmethod
    def validate_slot_configuration(cls, v: Dict[SlotType, int]) -> Dict[SlotType, int]:
        if any(count < 0 for count in v.values()):
            raise ValueError("Slot counts cannot be negative")
        if sum(v.values()) < 1:
            raise ValueError("A floor needs at least one slot")
        return v


class ParkingSlotDTO(BaseDTO):
    """Parking slot view"""
    id: str
    floor_id: str
    slot_type: SlotType
    status: SlotStatus
    current_session_id: Optional[str] = None

    @classmethod
    def from_slot(cls, slot: ParkingSlot) -> 'ParkingSlotDTO':
        return cls.model_validate(slot)


class FloorDTO(BaseDTO):
    """Floor view with computed availability"""
    id: str
    lot_id: str
    floor_no: int
    total_slots: int
    allotted_slots: int
    available_slots: int
    slots: List[ParkingSlotDTO] = Field(default_factory=list)

    @classmethod
    def from_floor(cls, floor: Floor, slots: Optional[List[ParkingSlot]] = None) -> 'FloorDTO':
        return cls(
            id=floor.id,
            lot_id=floor.lot_id,
            floor_no=floor.floor_no,
            total_slots=floor.total_slots,
            allotted_slots=floor.allotted_slots,
            available_slots=floor.available_slots,
            slots=[ParkingSlotDTO.from_slot(slot) for slot in slots or []]
        )


class ParkingLotDTO(BaseDTO):
    """Parking lot view"""
    id: str
    name: str
    address: Optional[str] = None
    total_floors: int
    created_at: datetime
    updated_at: datetime
    floors: List[FloorDTO] = Field(default_factory=list)

    @classmethod
    def from_lot(cls, lot: ParkingLot, floors: Optional[List[FloorDTO]] = None) -> 'ParkingLotDTO':
        return cls(
            id=lot.id,
            name=lot.name,
            address=lot.address,
            total_floors=lot.total_floors,
            created_at=lot.created_at,
            updated_at=lot.updated_at,
            floors=floors or []
        )


class OccupancySummaryDTO(BaseDTO):
    """Occupancy of a lot, overall and per slot type"""
    lot_id: str = Field(description="Parking lot ID")
    total_slots: int = Field(description="Total number of slots")
    occupied_slots: int = Field(description="Number of occupied slots")
    available_slots: int = Field(description="Number of available slots")
    occupancy_rate: float = Field(ge=0, le=1, description="Occupancy rate (0-1)")
    by_slot_type: Dict[str, Dict[str, int]] = Field(
        default_factory=dict,
        description="Slot occupancy by type"
    )
