# File: src/smartpark/application/inventory_service.py
"""
Inventory Application Service

Provisioning and reporting for the physical inventory that slot allocation
draws from:
1. Create parking lots (unique by name)
2. Add floors with a slot configuration; every slot starts AVAILABLE
3. Read lots, floors and slots with computed availability
4. Summarize occupancy per slot type
"""

from typing import Callable, Dict, List, Optional
import logging

from ..domain.exceptions import (
    DuplicateResourceError, InvalidOperationError,
    ParkingLotNotFoundError, FloorNotFoundError
)
from ..domain.models import ParkingLot, Floor, ParkingSlot, SlotType, SlotStatus
from .dtos import (
    ParkingLotCreateDTO, FloorCreateDTO, ParkingLotDTO, FloorDTO, OccupancySummaryDTO
)
from .slot_inventory import SlotInventory


class InventoryService:
    """Lot and floor provisioning over the inventory store"""

    def __init__(self, uow_factory: Callable, slot_inventory: Optional[SlotInventory] = None):
        self.uow_factory = uow_factory
        self.slot_inventory = slot_inventory or SlotInventory()
        self.logger = logging.getLogger(self.__class__.__name__)

    def create_parking_lot(self, request: ParkingLotCreateDTO) -> ParkingLotDTO:
        """
        Create a parking lot
        Raises: DuplicateResourceError if the name is taken
        """
        with self.uow_factory() as uow:
            if uow.inventory.find_lot_by_name(request.name) is not None:
                raise DuplicateResourceError(f"Parking lot with name '{request.name}' already exists")

            lot = ParkingLot(
                name=request.name,
                address=request.address,
                total_floors=request.total_floors
            )
            uow.inventory.add_lot(lot)

        self.logger.info(f"Created parking lot '{lot.name}' ({lot.id}) with {lot.total_floors} floors")
        return ParkingLotDTO.from_lot(lot)

    def add_floor(self, request: FloorCreateDTO) -> FloorDTO:
        """
        Add a floor to a lot and create its slots

        Raises:
            ParkingLotNotFoundError: unknown lot
            DuplicateResourceError: floor number already used in the lot
            InvalidOperationError: the lot already has all its declared floors
        """
        slot_counts: Dict[SlotType, int] = {
            SlotType(slot_type): count for slot_type, count in request.slot_configuration.items()
        }

        with self.uow_factory() as uow:
            lot = uow.inventory.get_lot(request.lot_id)
            if lot is None:
                raise ParkingLotNotFoundError(f"Parking lot not found with id: {request.lot_id}")

            if uow.inventory.find_floor(lot.id, request.floor_no) is not None:
                raise DuplicateResourceError(
                    f"Floor {request.floor_no} already exists in parking lot '{lot.name}'"
                )

            if len(uow.inventory.list_floors(lot.id)) >= lot.total_floors:
                raise InvalidOperationError(
                    f"Parking lot '{lot.name}' already has all {lot.total_floors} declared floors"
                )

            floor = Floor(
                lot_id=lot.id,
                floor_no=request.floor_no,
                total_slots=sum(slot_counts.values())
            )
            slots = [
                ParkingSlot(floor_id=floor.id, slot_type=slot_type)
                for slot_type, count in slot_counts.items()
                for _ in range(count)
            ]
            uow.inventory.add_floor(floor, slots)

        self.logger.info(
            f"Added floor {floor.floor_no} to parking lot '{lot.name}' with {floor.total_slots} slots"
        )
        return FloorDTO.from_floor(floor, slots)

    def get_parking_lot(self, lot_id: str) -> ParkingLotDTO:
        with self.uow_factory() as uow:
            lot = self._require_lot(uow, lot_id)
            return ParkingLotDTO.from_lot(lot, self._floor_views(uow, lot.id))

    def list_parking_lots(self) -> List[ParkingLotDTO]:
        with self.uow_factory() as uow:
            return [
                ParkingLotDTO.from_lot(lot, self._floor_views(uow, lot.id))
                for lot in uow.inventory.list_lots()
            ]

    def get_floor(self, floor_id: str) -> FloorDTO:
        with self.uow_factory() as uow:
            floor = uow.inventory.get_floor(floor_id)
            if floor is None:
                raise FloorNotFoundError(f"Floor not found with id: {floor_id}")
            return FloorDTO.from_floor(floor, uow.inventory.list_slots(floor.id))

    def list_floors(self, lot_id: str) -> List[FloorDTO]:
        with self.uow_factory() as uow:
            lot = self._require_lot(uow, lot_id)
            return self._floor_views(uow, lot.id)

    def get_occupancy_summary(self, lot_id: str) -> OccupancySummaryDTO:
        """Occupancy totals for a lot, overall and per slot type"""
        with self.uow_factory() as uow:
            lot = self._require_lot(uow, lot_id)

            by_slot_type = {
                slot_type.value: {"total": 0, "occupied": 0, "available": 0}
                for slot_type in SlotType
            }
            total = occupied = 0

            for floor in uow.inventory.list_floors(lot.id):
                self.slot_inventory.audit_floor(uow, floor.id)
                for slot in uow.inventory.list_slots(floor.id):
                    counts = by_slot_type[slot.slot_type.value]
                    counts["total"] += 1
                    total += 1
                    if slot.status == SlotStatus.OCCUPIED:
                        counts["occupied"] += 1
                        occupied += 1
                    else:
                        counts["available"] += 1

        return OccupancySummaryDTO(
            lot_id=lot.id,
            total_slots=total,
            occupied_slots=occupied,
            available_slots=total - occupied,
            occupancy_rate=occupied / total if total else 0.0,
            by_slot_type=by_slot_type
        )

    def _require_lot(self, uow, lot_id: str) -> ParkingLot:
        lot = uow.inventory.get_lot(lot_id)
        if lot is None:
            raise ParkingLotNotFoundError(f"Parking lot not found with id: {lot_id}")
        return lot

    def _floor_views(self, uow, lot_id: str) -> List[FloorDTO]:
        return [
            FloorDTO.from_floor(floor, uow.inventory.list_slots(floor.id))
            for floor in uow.inventory.list_floors(lot_id)
        ]
