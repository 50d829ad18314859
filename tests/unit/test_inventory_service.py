#!/usr/bin/env python3
"""
Inventory Service Unit Tests

Lot/floor provisioning and occupancy reporting.
"""

import unittest

from smartpark.application.dtos import FloorCreateDTO, ParkingLotCreateDTO
from smartpark.domain.exceptions import (
    DuplicateResourceError, InvalidOperationError, ParkingLotNotFoundError, FloorNotFoundError
)
from smartpark.domain.models import SlotType, VehicleType

from tests.fixtures import make_factory, provision_lot


class TestInventoryService(unittest.TestCase):
    """Unit tests for InventoryService"""

    def setUp(self):
        """Set up services over a fresh in-memory store"""
        self.factory = make_factory()
        self.inventory = self.factory.create_inventory_service()

    def test_create_parking_lot(self):
        """Test creating a parking lot"""
        lot = self.inventory.create_parking_lot(
            ParkingLotCreateDTO(name="Central", address="1 Main Road", total_floors=2)
        )

        self.assertEqual(lot.name, "Central")
        self.assertEqual(lot.total_floors, 2)
        self.assertEqual(lot.floors, [])
        self.assertEqual(self.inventory.get_parking_lot(lot.id).id, lot.id)

    def test_duplicate_lot_name(self):
        """Test lot names are unique"""
        self.inventory.create_parking_lot(ParkingLotCreateDTO(name="Central"))

        with self.assertRaises(DuplicateResourceError):
            self.inventory.create_parking_lot(ParkingLotCreateDTO(name=" Central "))

        self.assertEqual(len(self.inventory.list_parking_lots()), 1)

    def test_add_floor_creates_available_slots(self):
        """Test a new floor has one AVAILABLE slot per configured count"""
        lot, (floor,) = provision_lot(
            self.inventory,
            floors=({SlotType.TWO_WHEELER: 3, SlotType.FOUR_WHEELER: 2, SlotType.HEAVY_VEHICLE: 1},)
        )

        self.assertEqual(floor.total_slots, 6)
        self.assertEqual(floor.allotted_slots, 0)
        self.assertEqual(floor.available_slots, 6)
        self.assertTrue(all(slot.status == "AVAILABLE" for slot in floor.slots))
        self.assertEqual(sum(1 for slot in floor.slots if slot.slot_type == SlotType.TWO_WHEELER), 3)
        self.assertEqual(self.inventory.get_floor(floor.id).total_slots, 6)

    def test_add_floor_errors(self):
        """Test unknown lots, duplicate floor numbers and undeclared floors"""
        lot, _ = provision_lot(self.inventory, floors=({SlotType.FOUR_WHEELER: 1},))

        with self.assertRaises(ParkingLotNotFoundError):
            self.inventory.add_floor(FloorCreateDTO(
                lot_id="missing", floor_no=0, slot_configuration={SlotType.FOUR_WHEELER: 1}
            ))

        with self.assertRaises(DuplicateResourceError):
            self.inventory.add_floor(FloorCreateDTO(
                lot_id=lot.id, floor_no=0, slot_configuration={SlotType.FOUR_WHEELER: 1}
            ))

        with self.assertRaises(InvalidOperationError):
            self.inventory.add_floor(FloorCreateDTO(
                lot_id=lot.id, floor_no=1, slot_configuration={SlotType.FOUR_WHEELER: 1}
            ))

    def test_floor_lookups(self):
        """Test floors are listed by number and missing ids raise"""
        lot, _ = provision_lot(
            self.inventory,
            floors=({SlotType.FOUR_WHEELER: 1}, {SlotType.TWO_WHEELER: 1}),
            floor_numbers=(2, 1)
        )

        self.assertEqual([f.floor_no for f in self.inventory.list_floors(lot.id)], [1, 2])
        self.assertEqual([f.floor_no for f in self.inventory.get_parking_lot(lot.id).floors], [1, 2])

        with self.assertRaises(FloorNotFoundError):
            self.inventory.get_floor("missing")

        with self.assertRaises(ParkingLotNotFoundError):
            self.inventory.list_floors("missing")

        with self.assertRaises(ParkingLotNotFoundError):
            self.inventory.get_parking_lot("missing")

    def test_occupancy_summary(self):
        """Test totals per slot type follow parked vehicles"""
        lot, _ = provision_lot(
            self.inventory,
            floors=({SlotType.FOUR_WHEELER: 2}, {SlotType.FOUR_WHEELER: 1, SlotType.TWO_WHEELER: 1})
        )
        parking = self.factory.create_parking_service()
        parking.park_vehicle(VehicleType.FOUR_WHEELER, "CAR0001")
        parking.park_vehicle(VehicleType.FOUR_WHEELER, "CAR0002")
        parking.park_vehicle(VehicleType.TWO_WHEELER, "BIKE0001")

        summary = self.inventory.get_occupancy_summary(lot.id)

        self.assertEqual(summary.total_slots, 4)
        self.assertEqual(summary.occupied_slots, 3)
        self.assertEqual(summary.available_slots, 1)
        self.assertAlmostEqual(summary.occupancy_rate, 0.75)
        self.assertEqual(summary.by_slot_type["FOUR_WHEELER"], {"total": 3, "occupied": 2, "available": 1})
        self.assertEqual(summary.by_slot_type["HEAVY_VEHICLE"], {"total": 0, "occupied": 0, "available": 0})

    def test_occupancy_summary_reports_counter_drift(self):
        """Test the summary audit logs a floor whose counter disagrees with its slots"""
        lot, (floor,) = provision_lot(self.inventory)
        self.factory.create_parking_service().park_vehicle(VehicleType.FOUR_WHEELER, "CAR0001")

        with self.factory.uow_factory() as uow:
            uow.store.floors[floor.id].allotted_slots = 0

        with self.assertLogs("SlotInventory", level="ERROR"):
            summary = self.inventory.get_occupancy_summary(lot.id)
        self.assertEqual(summary.occupied_slots, 1)


if __name__ == '__main__':
    unittest.main()
