#!/usr/bin/env python3
"""
Concurrency Integration Tests

Parallel park/exit requests against one shared store. Threads start
together on a barrier so the units of work genuinely contend.
"""

import threading
import unittest
from collections import Counter

from smartpark.domain.exceptions import (
    VehicleAlreadyParkedError, NoAvailableSlotError, VehicleNotFoundError
)
from smartpark.domain.models import SlotType, SessionStatus, VehicleType

from tests.fixtures import make_factory, provision_lot


def run_concurrently(target, args_list):
    """Run target once per args tuple in parallel; returns (results, errors)"""
    barrier = threading.Barrier(len(args_list))
    results, errors = [], []
    lock = threading.Lock()

    def worker(*args):
        barrier.wait()
        try:
            result = target(*args)
            with lock:
                results.append(result)
        except Exception as e:
            with lock:
                errors.append(e)

    threads = [threading.Thread(target=worker, args=args) for args in args_list]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results, errors


class TestConcurrentParking(unittest.TestCase):
    """Concurrent park and exit requests"""

    def setUp(self):
        """Set up services over a fresh in-memory store"""
        self.factory = make_factory()
        self.parking = self.factory.create_parking_service()
        self.inventory = self.factory.create_inventory_service()
        self.lot, self.floors = provision_lot(
            self.inventory,
            floors=({SlotType.FOUR_WHEELER: 3}, {SlotType.FOUR_WHEELER: 2})
        )

    def audit(self):
        with self.factory.uow_factory() as uow:
            return all(self.factory.slot_inventory.audit_floor(uow, floor.id) for floor in self.floors)

    def test_same_registration_parks_once(self):
        """Test parallel entries of one vehicle yield exactly one session"""
        results, errors = run_concurrently(
            self.parking.park_vehicle,
            [(VehicleType.FOUR_WHEELER, "KA01AB1234")] * 8
        )

        self.assertEqual(len(results), 1)
        self.assertEqual(len(errors), 7)
        self.assertTrue(all(isinstance(e, VehicleAlreadyParkedError) for e in errors))
        self.assertEqual(len(self.parking.list_sessions(SessionStatus.ACTIVE)), 1)
        self.assertEqual(self.inventory.get_occupancy_summary(self.lot.id).occupied_slots, 1)

    def test_no_slot_is_claimed_twice(self):
        """Test more vehicles than slots fill capacity exactly once"""
        results, errors = run_concurrently(
            self.parking.park_vehicle,
            [(VehicleType.FOUR_WHEELER, f"CAR{n:04d}") for n in range(12)]
        )

        self.assertEqual(len(results), 5)
        self.assertEqual(len(errors), 7)
        self.assertTrue(all(isinstance(e, NoAvailableSlotError) for e in errors))

        slot_counts = Counter(session.slot_id for session in results)
        self.assertEqual(len(slot_counts), 5)
        self.assertEqual(max(slot_counts.values()), 1)

        self.assertEqual([f.allotted_slots for f in self.inventory.list_floors(self.lot.id)], [3, 2])
        self.assertTrue(self.audit())

    def test_concurrent_exit_closes_once(self):
        """Test parallel exits of one vehicle bill and release exactly once"""
        self.parking.park_vehicle(VehicleType.FOUR_WHEELER, "KA01AB1234")

        results, errors = run_concurrently(self.parking.exit_vehicle, [("KA01AB1234",)] * 6)

        self.assertEqual(len(results), 1)
        self.assertEqual(len(errors), 5)
        self.assertTrue(all(isinstance(e, VehicleNotFoundError) for e in errors))
        self.assertEqual(self.inventory.get_occupancy_summary(self.lot.id).occupied_slots, 0)
        self.assertTrue(self.audit())

    def test_mixed_churn_keeps_counters_consistent(self):
        """Test interleaved parks and exits leave counters matching slot states"""
        for n in range(3):
            self.parking.park_vehicle(VehicleType.FOUR_WHEELER, f"OLD{n:04d}")

        requests = (
            [(self.parking.exit_vehicle, (f"OLD{n:04d}",)) for n in range(3)]
            + [(self.parking.park_vehicle, (VehicleType.FOUR_WHEELER, f"NEW{n:04d}")) for n in range(6)]
        )
        results, errors = run_concurrently(lambda call, args: call(*args), requests)

        self.assertEqual(len(results) + len(errors), 9)
        self.assertTrue(all(isinstance(e, NoAvailableSlotError) for e in errors))
        self.assertTrue(self.audit())

        active = self.parking.list_sessions(SessionStatus.ACTIVE)
        summary = self.inventory.get_occupancy_summary(self.lot.id)
        self.assertEqual(summary.occupied_slots, len(active))
        self.assertLessEqual(summary.occupied_slots, summary.total_slots)


if __name__ == '__main__':
    unittest.main()
