# File: src/smartpark/application/parking_service.py
"""
Parking Application Service (Vehicle Lifecycle Manager)

Orchestrates the park/exit workflow over the Slot Inventory, the Pricing
Engine and the session store.

Responsibilities:
1. Run each use case inside exactly one unit of work
2. Enforce one ACTIVE session per registration
3. Bill exits through the configured PricingStrategy
4. Publish domain events once the unit of work has committed

Key Principles:
- Dependency Injection for testability (stores, strategy, bus and clock)
- Errors propagate as typed exceptions; nothing is committed on failure
"""

from typing import Callable, List, Optional
from datetime import datetime
import logging

from ..domain.exceptions import (
    VehicleAlreadyParkedError, VehicleNotFoundError, InvariantViolationError
)
from ..domain.models import (
    Registration, VehicleSession, VehicleType, SessionStatus,
    DomainEvent, VehicleParkedEvent, VehicleExitedEvent, FeeOverriddenEvent
)
from ..domain.strategies import PricingStrategy
from .slot_inventory import SlotInventory


class ParkingService:
    """
    Main parking application service

    `uow_factory` returns a fresh UnitOfWork per call; `clock` returns the
    current (naive, local) time and is injectable for tests.
    """

    def __init__(
        self,
        uow_factory: Callable,
        pricing_strategy: PricingStrategy,
        slot_inventory: Optional[SlotInventory] = None,
        event_bus=None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.uow_factory = uow_factory
        self.pricing_strategy = pricing_strategy
        self.slot_inventory = slot_inventory or SlotInventory()
        self.event_bus = event_bus
        self.clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)

        self.logger.info(f"ParkingService initialized with {pricing_strategy}")

    # ------------------------------------------------------------------
    # Use cases
    # ------------------------------------------------------------------

    def park_vehicle(self, vehicle_type: VehicleType, registration: str) -> VehicleSession:
        """
        Park a vehicle

        Use Case: Vehicle Entry
        1. Reject a registration that already has an ACTIVE session
        2. Resolve the slot type for the vehicle class
        3. Claim a slot (floor counter moves with it)
        4. Persist the ACTIVE session stamped with the current time

        Returns: the new session
        Raises: VehicleAlreadyParkedError, NoAvailableSlotError
        """
        vehicle_type = VehicleType(vehicle_type)
        registration = Registration(registration).value
        self.logger.info(f"Processing park request for {registration} ({vehicle_type})")

        with self.uow_factory() as uow:
            if uow.sessions.find_active_by_registration(registration) is not None:
                self.logger.warning(f"Vehicle {registration} is already parked")
                raise VehicleAlreadyParkedError(registration)

            slot_type = self.slot_inventory.required_slot_type(vehicle_type)

            # Session id is needed before the claim so the slot can name its occupant
            session = VehicleSession(
                vehicle_type=vehicle_type,
                registration=registration,
                time_in=self.clock()
            )
            slot = self.slot_inventory.claim_slot(uow, slot_type, session.id)
            session.slot_id = slot.id

            uow.sessions.add(session)

        self.logger.info(f"Vehicle {registration} parked in slot {slot.id} (session {session.id})")
        self._publish(VehicleParkedEvent(session, floor_id=slot.floor_id))
        return session

    def exit_vehicle(self, registration: str) -> VehicleSession:
        """
        Exit a vehicle and bill it

        Use Case: Vehicle Exit
        1. Find the ACTIVE session for the registration
        2. Compute the fee for the elapsed time
        3. Release the slot (floor counter moves with it)
        4. Close the session

        Returns: the closed session carrying its fee
        Raises: VehicleNotFoundError, InvariantViolationError
        """
        registration = Registration(registration).value
        self.logger.info(f"Processing exit request for {registration}")

        with self.uow_factory() as uow:
            session = uow.sessions.find_active_by_registration(registration)
            if session is None:
                self.logger.warning(f"No active session for vehicle {registration}")
                raise VehicleNotFoundError(f"Vehicle not found with registration: {registration}")

            time_out = self.clock()
            try:
                elapsed = session.elapsed(time_out)
            except InvariantViolationError as e:
                self.logger.error(f"Aborting exit of {registration}: {e}")
                raise

            fee = self.pricing_strategy.calculate_price(session.vehicle_type, elapsed)

            released_slot_id = session.slot_id
            if released_slot_id is None:
                self.logger.warning(f"Session {session.id} has no slot reference, skipping slot release")
            else:
                self.slot_inventory.release_slot(uow, released_slot_id)

            session.close(time_out, fee)

            if not uow.sessions.close(session):
                # Lost a race with a concurrent exit of the same session
                self.logger.warning(f"Session {session.id} was closed concurrently")
                raise VehicleNotFoundError(f"Vehicle not found with registration: {registration}")

        self.logger.info(
            f"Vehicle {registration} exited after {elapsed}, fee {session.fee} (session {session.id})"
        )
        self._publish(VehicleExitedEvent(session, released_slot_id=released_slot_id))
        return session

    def get_vehicle(self, registration: str) -> VehicleSession:
        """
        Look up a vehicle's session: the ACTIVE one if any, otherwise the
        most recent by entry time
        Raises: VehicleNotFoundError
        """
        registration = Registration(registration).value

        with self.uow_factory() as uow:
            session = uow.sessions.find_active_by_registration(registration)
            if session is None:
                session = uow.sessions.find_latest_by_registration(registration)

        if session is None:
            raise VehicleNotFoundError(f"Vehicle not found with registration: {registration}")
        return session

    def update_fee(self, session_id: str, amount) -> VehicleSession:
        """
        Overwrite the fee of a session (administrative correction)

        No state transition and no recomputation: the amount is stored as
        given, rounded to two decimal places.
        Raises: VehicleNotFoundError, InvalidAmountError
        """
        with self.uow_factory() as uow:
            session = uow.sessions.get(session_id)
            if session is None:
                raise VehicleNotFoundError(f"Vehicle not found with id: {session_id}")

            previous_fee = session.fee
            session.override_fee(amount)
            uow.sessions.update_fee(session.id, session.fee)

        self.logger.info(f"Fee of session {session_id} updated from {previous_fee} to {session.fee}")
        self._publish(FeeOverriddenEvent(session, previous_fee))
        return session

    def list_sessions(self, status: Optional[SessionStatus] = None) -> List[VehicleSession]:
        """List sessions ordered by entry time, optionally filtered by status"""
        with self.uow_factory() as uow:
            return uow.sessions.find_by_status(SessionStatus(status) if status is not None else None)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _publish(self, event: DomainEvent) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event)
