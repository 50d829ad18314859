# File: src/smartpark/application/slot_inventory.py
"""
Slot Inventory

Rules for reserving and freeing physical slots. The atomic part (status
compare-and-swap plus the floor occupancy counter) lives in the inventory
store; this layer maps vehicles to slot types, turns "nothing claimed" into
NoAvailableSlotError and reports counter drift.
"""

from typing import List
import logging

from ..domain.exceptions import NoAvailableSlotError, SlotStateError
from ..domain.models import ParkingSlot, SlotStatus, SlotType, VehicleType


class SlotInventory:
    """Claims and releases slots inside a caller's unit of work"""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def required_slot_type(self, vehicle_type: VehicleType) -> SlotType:
        return VehicleType(vehicle_type).required_slot_type

    def claim_slot(self, uow, slot_type: SlotType, session_id: str) -> ParkingSlot:
        """
        Reserve one AVAILABLE slot of `slot_type` for `session_id`
        Raises: NoAvailableSlotError when every compatible slot is occupied
        """
        slot_type = SlotType(slot_type)
        slot = uow.inventory.claim_slot(slot_type, session_id)

        if slot is None:
            self.logger.warning(f"No available {slot_type} slot for session {session_id}")
            raise NoAvailableSlotError(slot_type)

        self.logger.debug(f"Slot {slot.id} on floor {slot.floor_id} claimed for session {session_id}")
        return slot

    def release_slot(self, uow, slot_id: str) -> ParkingSlot:
        """
        Free an OCCUPIED slot
        Raises: SlotNotFoundError, SlotStateError
        """
        try:
            slot = uow.inventory.release_slot(slot_id)
        except SlotStateError as e:
            self.logger.error(f"Refusing to release slot {slot_id}: {e}")
            raise

        self.logger.debug(f"Slot {slot_id} released")
        return slot

    def audit_floor(self, uow, floor_id: str) -> bool:
        """Check that the floor's allotted count matches its occupied slots"""
        floor = uow.inventory.get_floor(floor_id)
        slots: List[ParkingSlot] = uow.inventory.list_slots(floor_id)
        occupied = sum(1 for slot in slots if slot.status == SlotStatus.OCCUPIED)

        if floor is None or floor.allotted_slots != occupied:
            self.logger.error(
                f"Occupancy counter drift on floor {floor_id}: "
                f"allotted={floor.allotted_slots if floor else None}, occupied={occupied}"
            )
            return False
        return True
