# File: tests/fixtures.py
"""
Shared test helpers: a controllable clock and inventory provisioning
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from smartpark.application.dtos import FloorCreateDTO, FloorDTO, ParkingLotCreateDTO, ParkingLotDTO
from smartpark.config import ParkingConfig
from smartpark.domain.models import SlotType
from smartpark.infrastructure.factories import ServiceFactory


class FakeClock:
    """Clock that only moves when told to"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 9, 0, 0)

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

    def rewind(self, **kwargs) -> None:
        self.now -= timedelta(**kwargs)

    def __call__(self) -> datetime:
        return self.now


def make_factory(database_url: str = "memory://", clock: Optional[FakeClock] = None, **kwargs) -> ServiceFactory:
    """ServiceFactory over a fresh store with an in-memory event queue"""
    config = ParkingConfig.model_validate({
        "database": {"url": database_url},
        "events": {"broker": "memory", "topic": "test.events"},
    })
    return ServiceFactory(config, clock=clock or FakeClock(), **kwargs)


def provision_lot(
    inventory_service,
    floors: Sequence[Dict[SlotType, int]] = ({SlotType.FOUR_WHEELER: 2},),
    name: str = "Test Lot",
    floor_numbers: Optional[Sequence[int]] = None
) -> Tuple[ParkingLotDTO, List[FloorDTO]]:
    """Create a lot and one floor per slot configuration"""
    lot = inventory_service.create_parking_lot(ParkingLotCreateDTO(
        name=name,
        address="123 Test Street",
        total_floors=len(floors)
    ))
    floor_numbers = floor_numbers if floor_numbers is not None else range(len(floors))
    created = [
        inventory_service.add_floor(FloorCreateDTO(
            lot_id=lot.id,
            floor_no=floor_no,
            slot_configuration=configuration
        ))
        for floor_no, configuration in zip(floor_numbers, floors)
    ]
    return lot, created
