# File: src/smartpark/main.py
"""
Main entry point for the SmartPark core

    python -m smartpark.main [--config PATH] [--demo]

Loads configuration, sets up logging and wires the services. With --demo it
provisions a small lot, parks and exits a few vehicles and prints the
resulting occupancy.
"""

import argparse
import logging
import os
import sys
from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import ValidationError

from .application.dtos import ParkingLotCreateDTO, FloorCreateDTO, VehicleSessionDTO
from .config import ParkingConfig, load_config
from .domain.exceptions import ParkingServiceError
from .domain.models import SlotType, VehicleType
from .infrastructure.factories import ServiceFactory


def setup_logging(config: Optional[ParkingConfig] = None):
    """Setup application logging configuration"""
    settings = (config or ParkingConfig()).logging
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if settings.log_dir:
        os.makedirs(settings.log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(settings.log_dir, 'smartpark.log')))

    logging.basicConfig(
        level=getattr(logging, settings.level.value),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )
    return logging.getLogger(__name__)


class DemoClock:
    """Clock that only moves when told to"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime.now().replace(microsecond=0)

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

    def __call__(self) -> datetime:
        return self.now


def run_demo(factory: ServiceFactory, clock: DemoClock) -> None:
    logger = logging.getLogger("demo")
    inventory = factory.create_inventory_service()
    parking = factory.create_parking_service()

    lot = inventory.create_parking_lot(ParkingLotCreateDTO(
        name=f"Demo Lot {clock().strftime('%Y%m%d%H%M%S')}",
        address="1 Demo Street",
        total_floors=2
    ))
    inventory.add_floor(FloorCreateDTO(
        lot_id=lot.id,
        floor_no=0,
        slot_configuration={SlotType.TWO_WHEELER: 2, SlotType.FOUR_WHEELER: 2}
    ))
    inventory.add_floor(FloorCreateDTO(
        lot_id=lot.id,
        floor_no=1,
        slot_configuration={SlotType.FOUR_WHEELER: 1, SlotType.HEAVY_VEHICLE: 1}
    ))

    arrivals = [
        (VehicleType.FOUR_WHEELER, "KA01AB1234"),
        (VehicleType.TWO_WHEELER, "KA02CD5678"),
        (VehicleType.HEAVY_VEHICLE, "KA03EF9012"),
    ]
    for vehicle_type, registration in arrivals:
        parking.park_vehicle(vehicle_type, registration)

    clock.advance(minutes=90)
    closed = parking.exit_vehicle("KA01AB1234")
    print(f"Exited: {VehicleSessionDTO.from_session(closed).to_json()}")

    try:
        parking.park_vehicle(VehicleType.HEAVY_VEHICLE, "KA04GH3456")
    except ParkingServiceError as e:
        logger.warning(f"Demo park rejected: {e}")

    summary = inventory.get_occupancy_summary(lot.id)
    print(f"Occupancy: {summary.to_json(indent=2)}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="smartpark", description="SmartPark parking core")
    parser.add_argument("--config", help="Path to a YAML configuration file")
    parser.add_argument("--demo", action="store_true", help="Seed a demo lot and run a park/exit cycle")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application"""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError, ValidationError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    logger = setup_logging(config)
    logger.info("Starting SmartPark...")

    clock = DemoClock() if args.demo else datetime.now
    factory = ServiceFactory(config, clock=clock)
    try:
        if args.demo:
            run_demo(factory, clock)
        else:
            logger.info("Services wired; nothing to do without --demo")
    except ParkingServiceError as e:
        logger.error(f"Application error: {e}")
        return 1
    finally:
        factory.close()
        logger.info("SmartPark shutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
