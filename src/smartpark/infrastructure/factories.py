# File: src/smartpark/infrastructure/factories.py
"""
Factory Pattern Implementation for the parking core

Explicit construction of everything the services depend on; there is no
global container:
1. Strategy Factory - pricing strategy from configuration
2. Messaging Factory - event bus and message queue for the configured broker
3. Service Factory - units of work and application services

Key Benefits:
- Centralized object creation logic
- Facilitates testing with in-memory stores and fake clocks
"""

from typing import Callable, Optional
from datetime import datetime
import logging

from ..config import ParkingConfig, PricingSettings, EventSettings, EventBroker
from ..domain.strategies import PricingStrategy, StandardPricingStrategy
from ..application.slot_inventory import SlotInventory
from ..application.parking_service import ParkingService
from ..application.inventory_service import InventoryService
from .messaging import (
    EventBus, MessageQueue, InMemoryMessageQueue, RedisMessageQueue,
    QueueForwardingHandler, ALL_EVENTS
)
from .repositories import RepositoryFactory, UnitOfWork, InMemoryStore


# ============================================================================
# STRATEGY FACTORY
# ============================================================================

class PricingStrategyFactory:
    """Factory for creating PricingStrategy instances"""

    @staticmethod
    def create(settings: Optional[PricingSettings] = None) -> PricingStrategy:
        settings = settings or PricingSettings()
        return StandardPricingStrategy(
            hourly_rates=settings.hourly_rates,
            minimum_charge=settings.minimum_charge
        )


# ============================================================================
# MESSAGING FACTORY
# ============================================================================

class MessageBrokerFactory:
    """Factory for message queues and the event bus wired to them"""

    @staticmethod
    def create_redis_broker(redis_url: str = "redis://localhost:6379", **kwargs) -> RedisMessageQueue:
        return RedisMessageQueue(redis_url, **kwargs)

    @staticmethod
    def create_in_memory_broker() -> InMemoryMessageQueue:
        return InMemoryMessageQueue()

    @classmethod
    def create_message_queue(cls, settings: EventSettings) -> Optional[MessageQueue]:
        broker = EventBroker(settings.broker)
        if broker == EventBroker.REDIS:
            return cls.create_redis_broker(settings.redis_url)
        if broker == EventBroker.MEMORY:
            return cls.create_in_memory_broker()
        return None

    @staticmethod
    def create_event_bus(queue: Optional[MessageQueue], topic: str) -> EventBus:
        """Event bus forwarding every committed event to `queue` (if any)"""
        event_bus = EventBus()
        if queue is not None:
            event_bus.subscribe(ALL_EVENTS, QueueForwardingHandler(queue, topic))
        return event_bus


# ============================================================================
# SERVICE FACTORY
# ============================================================================

class ServiceFactory:
    """Factory for creating application services"""

    def __init__(
        self,
        config: Optional[ParkingConfig] = None,
        uow_factory: Optional[Callable[[], UnitOfWork]] = None,
        message_queue: Optional[MessageQueue] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.config = config or ParkingConfig()
        self.clock = clock
        self.logger = logging.getLogger(self.__class__.__name__)

        self.uow_factory = uow_factory or self._create_uow_factory()
        self.message_queue = message_queue or MessageBrokerFactory.create_message_queue(self.config.events)
        self.event_bus = MessageBrokerFactory.create_event_bus(self.message_queue, self.config.events.topic)
        self.pricing_strategy = PricingStrategyFactory.create(self.config.pricing)
        self.slot_inventory = SlotInventory()

    def _create_uow_factory(self) -> Callable[[], UnitOfWork]:
        database = self.config.database
        if database.is_in_memory:
            self.logger.info("Using in-memory store")
            return RepositoryFactory.create_in_memory_uow_factory(InMemoryStore())

        self.logger.info(f"Using SQL store at {database.url}")
        return RepositoryFactory.create_sqlalchemy_uow_factory(database.url, echo=database.echo)

    def create_parking_service(self) -> ParkingService:
        """Create ParkingService with dependencies"""
        return ParkingService(
            uow_factory=self.uow_factory,
            pricing_strategy=self.pricing_strategy,
            slot_inventory=self.slot_inventory,
            event_bus=self.event_bus,
            clock=self.clock
        )

    def create_inventory_service(self) -> InventoryService:
        """Create InventoryService with dependencies"""
        return InventoryService(
            uow_factory=self.uow_factory,
            slot_inventory=self.slot_inventory
        )

    def close(self) -> None:
        if self.message_queue is not None:
            self.message_queue.close()
