# File: src/smartpark/infrastructure/messaging.py
"""
Messaging Infrastructure for the parking core

This module carries domain events out of the service layer once a unit of
work has committed:
1. Event Bus - intra-process publish/subscribe of domain events
2. Message Queue - inter-process delivery of JSON messages on topics
3. QueueForwardingHandler - bridges the bus onto a queue topic

Supported Brokers:
- Redis Pub/Sub
- In-memory (for testing and single-process runs)

Event delivery is best effort: a failing handler or broker is logged and
never undoes the committed park/exit.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, List, Any, Callable
from datetime import datetime
from dataclasses import dataclass, field
from uuid import uuid4
import logging
import json
import threading
import time

import redis

from ..domain.models import DomainEvent


ALL_EVENTS = "*"


# ============================================================================
# MESSAGE
# ============================================================================

@dataclass
class Message:
    """Envelope for anything sent over a message queue"""
    payload: Dict[str, Any] = field(default_factory=dict)
    message_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)
    source: Optional[str] = None

    @classmethod
    def from_event(cls, event: DomainEvent, source: Optional[str] = None) -> 'Message':
        return cls(payload=event.to_dict(), message_id=event.event_id, source=source)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message_id": self.message_id,
            "timestamp": self.timestamp.isoformat(),
            "source": self.source,
            "payload": self.payload
        }

    def to_json(self) -> str:
        """Convert message to JSON string"""
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Message':
        """Create message from dictionary"""
        return cls(
            payload=data.get("payload", {}),
            message_id=data["message_id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            source=data.get("source")
        )

    @classmethod
    def from_json(cls, json_str: str) -> 'Message':
        """Create message from JSON string"""
        return cls.from_dict(json.loads(json_str))


# ============================================================================
# EVENT HANDLERS
# ============================================================================

class EventHandler(ABC):
    """Abstract base class for event handlers"""

    @abstractmethod
    def handle(self, event: DomainEvent) -> None:
        """Handle a domain event"""
        pass

    def can_handle(self, event: DomainEvent) -> bool:
        """Check if this handler can handle the event"""
        return True


# ============================================================================
# EVENT BUS (In-memory)
# ============================================================================

class EventBus:
    """
    In-memory event bus for intra-process event publishing

    Handlers subscribe by event type name ("vehicle_parked", ...) or to
    ALL_EVENTS. Publishing never raises on behalf of a handler.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[EventHandler]] = {}
        self._logger = logging.getLogger(self.__class__.__name__)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe to events of a specific type"""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []

        if handler not in self._subscribers[event_type]:
            self._subscribers[event_type].append(handler)
            self._logger.debug(f"Subscribed {handler.__class__.__name__} to {event_type}")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        """Unsubscribe handler from events"""
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            self._logger.debug(f"Unsubscribed {handler.__class__.__name__} from {event_type}")

    def publish(self, event: DomainEvent) -> None:
        """Publish an event to all subscribers"""
        self._logger.info(f"Publishing event: {event.event_type} (ID: {event.event_id})")

        handlers = self._subscribers.get(event.event_type, []) + self._subscribers.get(ALL_EVENTS, [])
        for handler in handlers:
            if handler.can_handle(event):
                try:
                    handler.handle(event)
                    self._logger.debug(f"Event handled by {handler.__class__.__name__}")
                except Exception as e:
                    self._logger.error(
                        f"Error handling event {event.event_type} with {handler.__class__.__name__}: {e}"
                    )

    def clear_subscribers(self) -> None:
        """Clear all subscribers (for testing)"""
        self._subscribers.clear()


# ============================================================================
# MESSAGE QUEUE ABSTRACTIONS
# ============================================================================

class MessageQueue(ABC):
    """Abstract base class for message queues"""

    @abstractmethod
    def publish(self, topic: str, message: Message) -> bool:
        """Publish a message to a topic"""
        pass

    @abstractmethod
    def subscribe(self, topic: str, callback: Callable[[Message], None]) -> str:
        """Subscribe to messages from a topic"""
        pass

    @abstractmethod
    def unsubscribe(self, subscription_id: str) -> bool:
        """Unsubscribe from a topic"""
        pass

    def close(self) -> None:
        """Release broker connections"""
        pass


# ============================================================================
# REDIS MESSAGE QUEUE
# ============================================================================

class RedisMessageQueue(MessageQueue):
    """Redis-based message queue using Pub/Sub"""

    def __init__(self, redis_url: str = "redis://localhost:6379", client: Optional[redis.Redis] = None, **kwargs):
        self.redis_url = redis_url
        self._logger = logging.getLogger(self.__class__.__name__)

        # Redis connection
        self.redis_client = client or redis.Redis.from_url(redis_url, **kwargs)
        self.pubsub = self.redis_client.pubsub()

        # Subscription tracking
        self._subscriptions: Dict[str, str] = {}  # subscription_id -> topic
        self._callbacks: Dict[str, Callable[[Message], None]] = {}  # subscription_id -> callback
        self._running = False
        self._thread: Optional[threading.Thread] = None

    def publish(self, topic: str, message: Message) -> bool:
        """Publish a message to a Redis channel"""
        try:
            receivers = self.redis_client.publish(topic, message.to_json())
            self._logger.debug(f"Published message {message.message_id} to {topic} ({receivers} receivers)")
            return True
        except redis.RedisError as e:
            self._logger.error(f"Error publishing to Redis: {e}")
            return False

    def subscribe(self, topic: str, callback: Callable[[Message], None]) -> str:
        """Subscribe to a Redis channel"""
        subscription_id = str(uuid4())

        self._subscriptions[subscription_id] = topic
        self._callbacks[subscription_id] = callback

        self.pubsub.subscribe(topic)

        # Start listener thread if not running
        if not self._running:
            self._start_listener()

        self._logger.debug(f"Subscribed to {topic} with ID {subscription_id}")
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Unsubscribe from a Redis channel"""
        if subscription_id not in self._subscriptions:
            return False

        topic = self._subscriptions.pop(subscription_id)
        del self._callbacks[subscription_id]

        # Unsubscribe from Redis if no more subscribers for this topic
        if topic not in self._subscriptions.values():
            self.pubsub.unsubscribe(topic)
            self._logger.debug(f"Unsubscribed from {topic}")

        return True

    def _start_listener(self):
        """Start the Redis message listener in a separate thread"""
        if self._running:
            return

        self._running = True
        self._thread = threading.Thread(target=self._listen, daemon=True)
        self._thread.start()
        self._logger.info("Started Redis message listener")

    def _listen(self):
        """Listen for Redis messages"""
        while self._running:
            try:
                message = self.pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message and message['type'] == 'message':
                    self._handle_message(message)
            except redis.RedisError as e:
                self._logger.error(f"Error in Redis listener: {e}")
                time.sleep(1)  # Avoid tight loop on error

    def _handle_message(self, redis_message: Dict[str, Any]):
        """Dispatch an incoming Redis message to the topic's callbacks"""
        topic = redis_message['channel']
        data = redis_message['data']
        if isinstance(topic, bytes):
            topic = topic.decode('utf-8')
        if isinstance(data, bytes):
            data = data.decode('utf-8')

        try:
            message = Message.from_json(data)
        except (ValueError, KeyError) as e:
            self._logger.error(f"Dropping malformed message on {topic}: {e}")
            return

        for subscription_id, callback_topic in list(self._subscriptions.items()):
            if callback_topic == topic:
                try:
                    self._callbacks[subscription_id](message)
                except Exception as e:
                    self._logger.error(f"Error in callback for subscription {subscription_id}: {e}")

    def close(self):
        """Close Redis connections"""
        self._running = False
        if self._thread:
            self._thread.join(timeout=5.0)

        self.pubsub.close()
        self.redis_client.close()
        self._logger.info("Redis message queue closed")


# ============================================================================
# IN-MEMORY MESSAGE QUEUE (For Testing)
# ============================================================================

class InMemoryMessageQueue(MessageQueue):
    """In-memory message queue; keeps every published message per topic"""

    def __init__(self):
        self._messages: Dict[str, List[Message]] = {}
        self._callbacks: Dict[str, Callable[[Message], None]] = {}  # subscription_id -> callback
        self._subscription_ids: Dict[str, str] = {}  # subscription_id -> topic
        self._lock = threading.Lock()
        self._logger = logging.getLogger(self.__class__.__name__)

    def publish(self, topic: str, message: Message) -> bool:
        """Publish message to in-memory topic"""
        with self._lock:
            self._messages.setdefault(topic, []).append(message)
            callbacks = [
                self._callbacks[sid] for sid, t in self._subscription_ids.items() if t == topic
            ]

        for callback in callbacks:
            try:
                callback(message)
            except Exception as e:
                self._logger.error(f"Error in callback for topic {topic}: {e}")

        self._logger.debug(f"Published to {topic}: {message.message_id}")
        return True

    def subscribe(self, topic: str, callback: Callable[[Message], None]) -> str:
        """Subscribe to in-memory topic"""
        subscription_id = str(uuid4())
        with self._lock:
            self._subscription_ids[subscription_id] = topic
            self._callbacks[subscription_id] = callback

        self._logger.debug(f"Subscribed to {topic} with ID {subscription_id}")
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Unsubscribe from topic"""
        with self._lock:
            if subscription_id not in self._subscription_ids:
                return False
            del self._subscription_ids[subscription_id]
            del self._callbacks[subscription_id]
        return True

    def get_messages(self, topic: str) -> List[Message]:
        """Get all messages for a topic (for testing)"""
        with self._lock:
            return list(self._messages.get(topic, []))

    def clear(self):
        """Clear all messages and subscriptions (for testing)"""
        with self._lock:
            self._messages.clear()
            self._callbacks.clear()
            self._subscription_ids.clear()


# ============================================================================
# BUS -> QUEUE BRIDGE
# ============================================================================

class QueueForwardingHandler(EventHandler):
    """Forwards every domain event it receives to a message queue topic"""

    def __init__(self, queue: MessageQueue, topic: str, source: str = "smartpark"):
        self.queue = queue
        self.topic = topic
        self.source = source
        self._logger = logging.getLogger(self.__class__.__name__)

    def handle(self, event: DomainEvent) -> None:
        if not self.queue.publish(self.topic, Message.from_event(event, source=self.source)):
            self._logger.warning(f"Event {event.event_id} ({event.event_type}) was not delivered to {self.topic}")
