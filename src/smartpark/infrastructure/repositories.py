# File: src/smartpark/infrastructure/repositories.py
"""
Repository Pattern Implementation for the parking core

Repositories give the application layer a collection-like interface over
the two stores the core depends on, while the Unit of Work draws the
transactional boundary around one park/exit/override workflow.

Store Interfaces:
1. InventoryRepository - lots, floors and slots; atomic claim/release of a
   slot together with its floor's occupancy counter
2. SessionRepository - vehicle sessions keyed by id and registration, with
   at most one ACTIVE session per registration

Storage Implementations:
- InMemory* - lock-serialized units of work with snapshot rollback (tests,
  demos, single-process deployments)
- SQLAlchemy* - relational store; compare-and-swap UPDATEs and a partial
  unique index carry the concurrency invariants

No repository method cascades writes implicitly: every mutation of a slot,
floor counter or session is an explicit call.
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Callable, Set, Tuple
from datetime import datetime
import copy
import logging
import threading

from sqlalchemy import (
    create_engine, Column, Integer, String, DateTime, ForeignKey,
    Numeric, UniqueConstraint, CheckConstraint, Index, text
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.pool import StaticPool

from ..domain.exceptions import (
    VehicleAlreadyParkedError, SlotNotFoundError, SlotStateError,
    InvariantViolationError
)
from ..domain.models import (
    ParkingLot, Floor, ParkingSlot, VehicleSession,
    SlotType, SlotStatus, SessionStatus, VehicleType
)


# ============================================================================
# REPOSITORY INTERFACES
# ============================================================================

class InventoryRepository(ABC):
    """Inventory store: lots own floors, floors own slots"""

    @abstractmethod
    def add_lot(self, lot: ParkingLot) -> ParkingLot:
        pass

    @abstractmethod
    def get_lot(self, lot_id: str) -> Optional[ParkingLot]:
        pass

    @abstractmethod
    def find_lot_by_name(self, name: str) -> Optional[ParkingLot]:
        pass

    @abstractmethod
    def list_lots(self) -> List[ParkingLot]:
        pass

    @abstractmethod
    def add_floor(self, floor: Floor, slots: List[ParkingSlot]) -> Floor:
        """Add a floor together with the slots it owns"""
        pass

    @abstractmethod
    def get_floor(self, floor_id: str) -> Optional[Floor]:
        pass

    @abstractmethod
    def find_floor(self, lot_id: str, floor_no: int) -> Optional[Floor]:
        pass

    @abstractmethod
    def list_floors(self, lot_id: str) -> List[Floor]:
        """Floors of a lot ordered by floor number"""
        pass

    @abstractmethod
    def get_slot(self, slot_id: str) -> Optional[ParkingSlot]:
        pass

    @abstractmethod
    def list_slots(self, floor_id: str) -> List[ParkingSlot]:
        pass

    @abstractmethod
    def claim_slot(self, slot_type: SlotType, session_id: str) -> Optional[ParkingSlot]:
        """
        Atomically move one AVAILABLE slot of `slot_type` to OCCUPIED,
        assign it to `session_id` and increment its floor's allotted count
        Returns: the claimed slot, or None when none is available
        """
        pass

    @abstractmethod
    def release_slot(self, slot_id: str) -> ParkingSlot:
        """
        Atomically move an OCCUPIED slot back to AVAILABLE, clear its
        occupant and decrement its floor's allotted count (clamped at 0)
        Raises: SlotNotFoundError, SlotStateError
        """
        pass


class SessionRepository(ABC):
    """Session store: vehicle sessions keyed by id and registration"""

    @abstractmethod
    def add(self, session: VehicleSession) -> VehicleSession:
        """
        Persist a new session
        Raises: VehicleAlreadyParkedError if the registration has an ACTIVE session
        """
        pass

    @abstractmethod
    def get(self, session_id: str) -> Optional[VehicleSession]:
        pass

    @abstractmethod
    def find_active_by_registration(self, registration: str) -> Optional[VehicleSession]:
        pass

    @abstractmethod
    def find_latest_by_registration(self, registration: str) -> Optional[VehicleSession]:
        """Most recent session by entry time, whatever its status"""
        pass

    @abstractmethod
    def find_by_status(self, status: Optional[SessionStatus] = None) -> List[VehicleSession]:
        pass

    @abstractmethod
    def close(self, session: VehicleSession) -> bool:
        """
        Persist the ACTIVE -> CLOSED transition of `session`
        Returns: False if the stored session was no longer ACTIVE
        """
        pass

    @abstractmethod
    def update_fee(self, session_id: str, fee) -> bool:
        pass


# ============================================================================
# UNIT OF WORK PATTERN
# ============================================================================

class UnitOfWork(ABC):
    """
    Unit of Work pattern for transaction management

    Used as a context manager: commits on normal exit, rolls back when the
    block raises.
    """

    @abstractmethod
    def __enter__(self):
        pass

    @abstractmethod
    def __exit__(self, exc_type, exc_val, exc_tb):
        pass

    @abstractmethod
    def commit(self):
        """Commit the transaction"""
        pass

    @abstractmethod
    def rollback(self):
        """Rollback the transaction"""
        pass

    @property
    @abstractmethod
    def inventory(self) -> InventoryRepository:
        pass

    @property
    @abstractmethod
    def sessions(self) -> SessionRepository:
        pass


# ============================================================================
# IN-MEMORY REPOSITORIES
# ============================================================================

class InMemoryStore:
    """
    Shared state behind the in-memory repositories

    Entities are copied on the way in and out so callers never hold live
    references into the store.
    """

    def __init__(self):
        self.lots: Dict[str, ParkingLot] = {}
        self.floors: Dict[str, Floor] = {}
        self.slots: Dict[str, ParkingSlot] = {}
        self.sessions: Dict[str, VehicleSession] = {}
        self.lock = threading.RLock()

    def snapshot(self) -> Tuple[dict, dict, dict, dict]:
        return copy.deepcopy((self.lots, self.floors, self.slots, self.sessions))

    def restore(self, snapshot: Tuple[dict, dict, dict, dict]) -> None:
        self.lots, self.floors, self.slots, self.sessions = copy.deepcopy(snapshot)

    def clear(self) -> None:
        """Clear all data (for testing)"""
        with self.lock:
            self.lots.clear()
            self.floors.clear()
            self.slots.clear()
            self.sessions.clear()


class InMemoryInventoryRepository(InventoryRepository):
    """In-memory inventory store"""

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._logger = logging.getLogger(self.__class__.__name__)

    def add_lot(self, lot: ParkingLot) -> ParkingLot:
        self._store.lots[lot.id] = copy.copy(lot)
        self._logger.debug(f"Added parking lot {lot.id}")
        return lot

    def get_lot(self, lot_id: str) -> Optional[ParkingLot]:
        lot = self._store.lots.get(lot_id)
        return copy.copy(lot) if lot else None

    def find_lot_by_name(self, name: str) -> Optional[ParkingLot]:
        for lot in self._store.lots.values():
            if lot.name == name:
                return copy.copy(lot)
        return None

    def list_lots(self) -> List[ParkingLot]:
        return [copy.copy(lot) for lot in self._store.lots.values()]

    def add_floor(self, floor: Floor, slots: List[ParkingSlot]) -> Floor:
        self._store.floors[floor.id] = copy.copy(floor)
        for slot in slots:
            self._store.slots[slot.id] = copy.copy(slot)
        self._logger.debug(f"Added floor {floor.id} with {len(slots)} slots")
        return floor

    def get_floor(self, floor_id: str) -> Optional[Floor]:
        floor = self._store.floors.get(floor_id)
        return copy.copy(floor) if floor else None

    def find_floor(self, lot_id: str, floor_no: int) -> Optional[Floor]:
        for floor in self._store.floors.values():
            if floor.lot_id == lot_id and floor.floor_no == floor_no:
                return copy.copy(floor)
        return None

    def list_floors(self, lot_id: str) -> List[Floor]:
        floors = [f for f in self._store.floors.values() if f.lot_id == lot_id]
        return [copy.copy(f) for f in sorted(floors, key=lambda f: f.floor_no)]

    def get_slot(self, slot_id: str) -> Optional[ParkingSlot]:
        slot = self._store.slots.get(slot_id)
        return copy.copy(slot) if slot else None

    def list_slots(self, floor_id: str) -> List[ParkingSlot]:
        return [copy.copy(s) for s in self._store.slots.values() if s.floor_id == floor_id]

    def claim_slot(self, slot_type: SlotType, session_id: str) -> Optional[ParkingSlot]:
        # First match in insertion order; any eligible slot is acceptable
        for slot in self._store.slots.values():
            if slot.slot_type == slot_type and slot.is_available:
                self._store.floors[slot.floor_id].increment_allotted()
                slot.occupy(session_id)
                self._logger.debug(f"Claimed slot {slot.id} for session {session_id}")
                return copy.copy(slot)
        return None

    def release_slot(self, slot_id: str) -> ParkingSlot:
        slot = self._store.slots.get(slot_id)
        if slot is None:
            raise SlotNotFoundError(f"Parking slot not found with id: {slot_id}")

        slot.vacate()

        floor = self._store.floors[slot.floor_id]
        if not floor.decrement_allotted():
            self._logger.error(
                f"Allotted count of floor {floor.id} was already 0 when releasing slot {slot_id}"
            )

        self._logger.debug(f"Released slot {slot_id}")
        return copy.copy(slot)


class InMemorySessionRepository(SessionRepository):
    """In-memory session store"""

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._logger = logging.getLogger(self.__class__.__name__)

    def add(self, session: VehicleSession) -> VehicleSession:
        # Mirrors the (registration, ACTIVE) uniqueness constraint
        if session.is_active and self.find_active_by_registration(session.registration):
            raise VehicleAlreadyParkedError(session.registration)

        self._store.sessions[session.id] = copy.copy(session)
        self._logger.debug(f"Added session {session.id}")
        return session

    def get(self, session_id: str) -> Optional[VehicleSession]:
        session = self._store.sessions.get(session_id)
        return copy.copy(session) if session else None

    def find_active_by_registration(self, registration: str) -> Optional[VehicleSession]:
        for session in self._store.sessions.values():
            if session.registration == registration and session.is_active:
                return copy.copy(session)
        return None

    def find_latest_by_registration(self, registration: str) -> Optional[VehicleSession]:
        matches = [s for s in self._store.sessions.values() if s.registration == registration]
        if not matches:
            return None
        return copy.copy(max(matches, key=lambda s: s.time_in))

    def find_by_status(self, status: Optional[SessionStatus] = None) -> List[VehicleSession]:
        sessions = [
            s for s in self._store.sessions.values()
            if status is None or s.status == status
        ]
        return [copy.copy(s) for s in sorted(sessions, key=lambda s: s.time_in)]

    def close(self, session: VehicleSession) -> bool:
        stored = self._store.sessions.get(session.id)
        if stored is None or not stored.is_active:
            return False

        self._store.sessions[session.id] = copy.copy(session)
        self._logger.debug(f"Closed session {session.id}")
        return True

    def update_fee(self, session_id: str, fee) -> bool:
        stored = self._store.sessions.get(session_id)
        if stored is None:
            return False

        stored.fee = fee
        self._logger.debug(f"Updated fee of session {session_id}")
        return True


class InMemoryUnitOfWork(UnitOfWork):
    """
    Unit of Work over an InMemoryStore

    The store lock is held from __enter__ to __exit__, so units of work run
    one at a time; a snapshot taken on entry is restored on rollback.
    """

    def __init__(self, store: Optional[InMemoryStore] = None):
        self.store = store or InMemoryStore()
        self._inventory = InMemoryInventoryRepository(self.store)
        self._sessions = InMemorySessionRepository(self.store)
        self._snapshot = None
        self._logger = logging.getLogger(self.__class__.__name__)

    def __enter__(self):
        self.store.lock.acquire()
        self._snapshot = self.store.snapshot()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is not None:
                self._logger.error(f"Exception in unit of work: {exc_val}")
                self.rollback()
            else:
                self.commit()
        finally:
            self._snapshot = None
            self.store.lock.release()

    def commit(self):
        self._logger.debug("Transaction committed")

    def rollback(self):
        if self._snapshot is not None:
            self.store.restore(self._snapshot)
        self._logger.debug("Transaction rolled back")

    @property
    def inventory(self) -> InMemoryInventoryRepository:
        return self._inventory

    @property
    def sessions(self) -> InMemorySessionRepository:
        return self._sessions


# ============================================================================
# SQLALCHEMY ORM MODELS
# ============================================================================

Base = declarative_base()

# Dialects with partial (filtered) unique indexes
PARTIAL_INDEX_DIALECTS = ("sqlite", "postgresql")


class ParkingLotModel(Base):
    """SQLAlchemy model for ParkingLot"""
    __tablename__ = 'parking_lots'

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    address = Column(String(500))
    total_floors = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint('name', name='uq_parking_lot_name'),
    )


class FloorModel(Base):
    """SQLAlchemy model for Floor"""
    __tablename__ = 'floors'

    id = Column(String(36), primary_key=True)
    lot_id = Column(String(36), ForeignKey('parking_lots.id'), nullable=False, index=True)
    floor_no = Column(Integer, nullable=False)
    total_slots = Column(Integer, nullable=False)
    allotted_slots = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('lot_id', 'floor_no', name='uq_floor_lot_floor_no'),
        CheckConstraint(
            'allotted_slots >= 0 AND allotted_slots <= total_slots',
            name='ck_floor_allotted_range'
        ),
    )


class ParkingSlotModel(Base):
    """SQLAlchemy model for ParkingSlot"""
    __tablename__ = 'parking_slots'

    id = Column(String(36), primary_key=True)
    floor_id = Column(String(36), ForeignKey('floors.id'), nullable=False, index=True)
    slot_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=SlotStatus.AVAILABLE.value)

    # Non-owning back-reference; no FK so claim can precede session insert
    current_session_id = Column(String(36))

    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        Index('ix_parking_slots_type_status', 'slot_type', 'status'),
    )


class VehicleSessionModel(Base):
    """SQLAlchemy model for VehicleSession"""
    __tablename__ = 'vehicle_sessions'

    id = Column(String(36), primary_key=True)
    vehicle_type = Column(String(20), nullable=False)
    registration = Column(String(20), nullable=False, index=True)
    time_in = Column(DateTime, nullable=False)
    time_out = Column(DateTime)
    status = Column(String(20), nullable=False)
    fee = Column(Numeric(10, 2))
    slot_id = Column(String(36), ForeignKey('parking_slots.id'))

    __table_args__ = (
        # At most one ACTIVE session per registration. Needs a partial index, so
        # other dialects rely on the locking lookup in find_active_by_registration
        Index(
            'uq_vehicle_sessions_active_registration', 'registration',
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'")
        ).ddl_if(dialect=PARTIAL_INDEX_DIALECTS),
    )


# ============================================================================
# DOMAIN <-> ORM MAPPER
# ============================================================================

class Mapper:
    """Maps between domain entities and ORM models"""

    @staticmethod
    def lot_to_orm(lot: ParkingLot) -> ParkingLotModel:
        return ParkingLotModel(
            id=lot.id,
            name=lot.name,
            address=lot.address,
            total_floors=lot.total_floors,
            created_at=lot.created_at,
            updated_at=lot.updated_at
        )

    @staticmethod
    def lot_to_domain(model: ParkingLotModel) -> ParkingLot:
        return ParkingLot(
            id=model.id,
            name=model.name,
            address=model.address,
            total_floors=model.total_floors,
            created_at=model.created_at,
            updated_at=model.updated_at
        )

    @staticmethod
    def floor_to_orm(floor: Floor) -> FloorModel:
        return FloorModel(
            id=floor.id,
            lot_id=floor.lot_id,
            floor_no=floor.floor_no,
            total_slots=floor.total_slots,
            allotted_slots=floor.allotted_slots
        )

    @staticmethod
    def floor_to_domain(model: FloorModel) -> Floor:
        return Floor(
            id=model.id,
            lot_id=model.lot_id,
            floor_no=model.floor_no,
            total_slots=model.total_slots,
            allotted_slots=model.allotted_slots
        )

    @staticmethod
    def slot_to_orm(slot: ParkingSlot) -> ParkingSlotModel:
        return ParkingSlotModel(
            id=slot.id,
            floor_id=slot.floor_id,
            slot_type=slot.slot_type.value,
            status=slot.status.value,
            current_session_id=slot.current_session_id
        )

    @staticmethod
    def slot_to_domain(model: ParkingSlotModel) -> ParkingSlot:
        return ParkingSlot(
            id=model.id,
            floor_id=model.floor_id,
            slot_type=SlotType(model.slot_type),
            status=SlotStatus(model.status),
            current_session_id=model.current_session_id
        )

    @staticmethod
    def session_to_orm(session: VehicleSession) -> VehicleSessionModel:
        return VehicleSessionModel(
            id=session.id,
            vehicle_type=session.vehicle_type.value,
            registration=session.registration,
            time_in=session.time_in,
            time_out=session.time_out,
            status=session.status.value,
            fee=session.fee,
            slot_id=session.slot_id
        )

    @staticmethod
    def session_to_domain(model: VehicleSessionModel) -> VehicleSession:
        return VehicleSession(
            id=model.id,
            vehicle_type=VehicleType(model.vehicle_type),
            registration=model.registration,
            time_in=model.time_in,
            time_out=model.time_out,
            status=SessionStatus(model.status),
            fee=model.fee,
            slot_id=model.slot_id
        )


# ============================================================================
# SQLALCHEMY REPOSITORIES
# ============================================================================

class SQLAlchemyRepository(ABC):
    """Base SQLAlchemy repository"""

    def __init__(self, session: Session):
        self.session = session
        self._logger = logging.getLogger(self.__class__.__name__)


class SQLAlchemyInventoryRepository(SQLAlchemyRepository, InventoryRepository):
    """Inventory store backed by a relational database"""

    def add_lot(self, lot: ParkingLot) -> ParkingLot:
        try:
            self.session.add(Mapper.lot_to_orm(lot))
            self.session.flush()
            self._logger.debug(f"Added parking lot {lot.id}")
            return lot
        except SQLAlchemyError as e:
            self._logger.error(f"Database error adding parking lot: {e}")
            raise

    def get_lot(self, lot_id: str) -> Optional[ParkingLot]:
        model = self.session.get(ParkingLotModel, lot_id)
        return Mapper.lot_to_domain(model) if model else None

    def find_lot_by_name(self, name: str) -> Optional[ParkingLot]:
        model = self.session.query(ParkingLotModel).filter(
            ParkingLotModel.name == name
        ).first()
        return Mapper.lot_to_domain(model) if model else None

    def list_lots(self) -> List[ParkingLot]:
        models = self.session.query(ParkingLotModel).order_by(ParkingLotModel.created_at).all()
        return [Mapper.lot_to_domain(model) for model in models]

    def add_floor(self, floor: Floor, slots: List[ParkingSlot]) -> Floor:
        try:
            self.session.add(Mapper.floor_to_orm(floor))
            self.session.flush()
            self.session.add_all([Mapper.slot_to_orm(slot) for slot in slots])
            self.session.flush()
            self._logger.debug(f"Added floor {floor.id} with {len(slots)} slots")
            return floor
        except SQLAlchemyError as e:
            self._logger.error(f"Database error adding floor: {e}")
            raise

    def get_floor(self, floor_id: str) -> Optional[Floor]:
        model = self.session.get(FloorModel, floor_id)
        return Mapper.floor_to_domain(model) if model else None

    def find_floor(self, lot_id: str, floor_no: int) -> Optional[Floor]:
        model = self.session.query(FloorModel).filter(
            FloorModel.lot_id == lot_id,
            FloorModel.floor_no == floor_no
        ).first()
        return Mapper.floor_to_domain(model) if model else None

    def list_floors(self, lot_id: str) -> List[Floor]:
        models = self.session.query(FloorModel).filter(
            FloorModel.lot_id == lot_id
        ).order_by(FloorModel.floor_no).all()
        return [Mapper.floor_to_domain(model) for model in models]

    def get_slot(self, slot_id: str) -> Optional[ParkingSlot]:
        model = self.session.get(ParkingSlotModel, slot_id)
        return Mapper.slot_to_domain(model) if model else None

    def list_slots(self, floor_id: str) -> List[ParkingSlot]:
        models = self.session.query(ParkingSlotModel).filter(
            ParkingSlotModel.floor_id == floor_id
        ).order_by(ParkingSlotModel.id).all()
        return [Mapper.slot_to_domain(model) for model in models]

    def _find_claim_candidates(
        self, slot_type: SlotType, exclude: Optional[Set[str]] = None, limit: int = 10
    ) -> List[Tuple[str, str]]:
        query = self.session.query(ParkingSlotModel.id, ParkingSlotModel.floor_id).join(
            FloorModel, FloorModel.id == ParkingSlotModel.floor_id
        ).filter(
            ParkingSlotModel.slot_type == slot_type.value,
            ParkingSlotModel.status == SlotStatus.AVAILABLE.value
        )
        if exclude:
            query = query.filter(ParkingSlotModel.id.notin_(exclude))
        return query.order_by(FloorModel.floor_no, ParkingSlotModel.id).limit(limit).all()

    def claim_slot(self, slot_type: SlotType, session_id: str) -> Optional[ParkingSlot]:
        # A snapshot read (REPEATABLE READ) can keep listing slots that were claimed
        # concurrently, so each slot is tried at most once per call
        tried: Set[str] = set()
        try:
            while True:
                candidates = [
                    (slot_id, floor_id)
                    for slot_id, floor_id in self._find_claim_candidates(slot_type, exclude=tried)
                    if slot_id not in tried
                ]
                if not candidates:
                    return None

                for slot_id, floor_id in candidates:
                    tried.add(slot_id)
                    # Compare-and-swap on status; zero rows means a concurrent claim won
                    claimed = self.session.query(ParkingSlotModel).filter(
                        ParkingSlotModel.id == slot_id,
                        ParkingSlotModel.status == SlotStatus.AVAILABLE.value
                    ).update({
                        ParkingSlotModel.status: SlotStatus.OCCUPIED.value,
                        ParkingSlotModel.current_session_id: session_id,
                        ParkingSlotModel.updated_at: datetime.now()
                    }, synchronize_session='fetch')

                    if claimed:
                        self._increment_allotted(floor_id)
                        self.session.flush()
                        self._logger.debug(f"Claimed slot {slot_id} for session {session_id}")
                        return self.get_slot(slot_id)

                    self._logger.debug(f"Slot {slot_id} was claimed concurrently, trying next")
        except SQLAlchemyError as e:
            self._logger.error(f"Database error claiming slot: {e}")
            raise

    def _increment_allotted(self, floor_id: str) -> None:
        updated = self.session.query(FloorModel).filter(
            FloorModel.id == floor_id,
            FloorModel.allotted_slots < FloorModel.total_slots
        ).update({
            FloorModel.allotted_slots: FloorModel.allotted_slots + 1
        }, synchronize_session='fetch')

        if not updated:
            raise InvariantViolationError(
                f"Floor {floor_id} already has all of its slots allotted"
            )

    def release_slot(self, slot_id: str) -> ParkingSlot:
        try:
            model = self.session.get(ParkingSlotModel, slot_id)
            if model is None:
                raise SlotNotFoundError(f"Parking slot not found with id: {slot_id}")

            floor_id = model.floor_id
            released = self.session.query(ParkingSlotModel).filter(
                ParkingSlotModel.id == slot_id,
                ParkingSlotModel.status == SlotStatus.OCCUPIED.value
            ).update({
                ParkingSlotModel.status: SlotStatus.AVAILABLE.value,
                ParkingSlotModel.current_session_id: None,
                ParkingSlotModel.updated_at: datetime.now()
            }, synchronize_session='fetch')

            if not released:
                raise SlotStateError(f"Slot {slot_id} is not occupied")

            decremented = self.session.query(FloorModel).filter(
                FloorModel.id == floor_id,
                FloorModel.allotted_slots > 0
            ).update({
                FloorModel.allotted_slots: FloorModel.allotted_slots - 1
            }, synchronize_session='fetch')

            if not decremented:
                self._logger.error(
                    f"Allotted count of floor {floor_id} was already 0 when releasing slot {slot_id}"
                )

            self.session.flush()
            self._logger.debug(f"Released slot {slot_id}")
            return self.get_slot(slot_id)
        except SQLAlchemyError as e:
            self._logger.error(f"Database error releasing slot: {e}")
            raise


class SQLAlchemySessionRepository(SQLAlchemyRepository, SessionRepository):
    """Session store backed by a relational database"""

    def add(self, session: VehicleSession) -> VehicleSession:
        try:
            self.session.add(Mapper.session_to_orm(session))
            self.session.flush()
            self._logger.debug(f"Added session {session.id}")
            return session
        except IntegrityError as e:
            self._logger.error(f"Integrity error adding session for {session.registration}: {e}")
            raise VehicleAlreadyParkedError(session.registration) from e
        except SQLAlchemyError as e:
            self._logger.error(f"Database error adding session: {e}")
            raise

    def get(self, session_id: str) -> Optional[VehicleSession]:
        model = self.session.get(VehicleSessionModel, session_id)
        return Mapper.session_to_domain(model) if model else None

    def find_active_by_registration(self, registration: str) -> Optional[VehicleSession]:
        model = self.session.query(VehicleSessionModel).filter(
            VehicleSessionModel.registration == registration,
            VehicleSessionModel.status == SessionStatus.ACTIVE.value
        ).with_for_update().first()
        return Mapper.session_to_domain(model) if model else None

    def find_latest_by_registration(self, registration: str) -> Optional[VehicleSession]:
        model = self.session.query(VehicleSessionModel).filter(
            VehicleSessionModel.registration == registration
        ).order_by(VehicleSessionModel.time_in.desc()).first()
        return Mapper.session_to_domain(model) if model else None

    def find_by_status(self, status: Optional[SessionStatus] = None) -> List[VehicleSession]:
        query = self.session.query(VehicleSessionModel)
        if status is not None:
            query = query.filter(VehicleSessionModel.status == status.value)
        models = query.order_by(VehicleSessionModel.time_in).all()
        return [Mapper.session_to_domain(model) for model in models]

    def close(self, session: VehicleSession) -> bool:
        try:
            result = self.session.query(VehicleSessionModel).filter(
                VehicleSessionModel.id == session.id,
                VehicleSessionModel.status == SessionStatus.ACTIVE.value
            ).update({
                VehicleSessionModel.status: session.status.value,
                VehicleSessionModel.time_out: session.time_out,
                VehicleSessionModel.fee: session.fee,
                VehicleSessionModel.slot_id: session.slot_id
            }, synchronize_session='fetch')

            self.session.flush()
            return result > 0
        except SQLAlchemyError as e:
            self._logger.error(f"Database error closing session {session.id}: {e}")
            raise

    def update_fee(self, session_id: str, fee) -> bool:
        try:
            result = self.session.query(VehicleSessionModel).filter(
                VehicleSessionModel.id == session_id
            ).update({
                VehicleSessionModel.fee: fee
            }, synchronize_session='fetch')

            self.session.flush()
            return result > 0
        except SQLAlchemyError as e:
            self._logger.error(f"Database error updating fee of session {session_id}: {e}")
            raise


# ============================================================================
# SQLALCHEMY UNIT OF WORK
# ============================================================================

class SQLAlchemyUnitOfWork(UnitOfWork):
    """Unit of Work implementation with SQLAlchemy"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory
        self._logger = logging.getLogger(self.__class__.__name__)

    def __enter__(self):
        self.session = self.session_factory()

        self._inventory = SQLAlchemyInventoryRepository(self.session)
        self._sessions = SQLAlchemySessionRepository(self.session)

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is not None:
                self._logger.error(f"Exception in unit of work: {exc_val}")
                self.rollback()
            else:
                self.commit()
        finally:
            self.session.close()

    def commit(self):
        """Commit the transaction"""
        try:
            self.session.commit()
            self._logger.debug("Transaction committed")
        except SQLAlchemyError as e:
            self._logger.error(f"Error committing transaction: {e}")
            self.session.rollback()
            raise

    def rollback(self):
        """Rollback the transaction"""
        self.session.rollback()
        self._logger.debug("Transaction rolled back")

    @property
    def inventory(self) -> SQLAlchemyInventoryRepository:
        return self._inventory

    @property
    def sessions(self) -> SQLAlchemySessionRepository:
        return self._sessions


# ============================================================================
# REPOSITORY FACTORY
# ============================================================================

class RepositoryFactory:
    """Factory for creating units of work"""

    @staticmethod
    def create_in_memory_uow_factory(
        store: Optional[InMemoryStore] = None
    ) -> Callable[[], InMemoryUnitOfWork]:
        """Create a unit of work factory sharing one in-memory store"""
        shared_store = store or InMemoryStore()
        return lambda: InMemoryUnitOfWork(shared_store)

    @staticmethod
    def create_sqlalchemy_uow_factory(
        database_url: str,
        echo: bool = False
    ) -> Callable[[], SQLAlchemyUnitOfWork]:
        """Create a SQLAlchemy unit of work factory, creating tables if needed"""
        engine_kwargs = {"echo": echo}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        engine = create_engine(database_url, **engine_kwargs)
        SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
        )

        Base.metadata.create_all(bind=engine)

        return lambda: SQLAlchemyUnitOfWork(SessionLocal)
