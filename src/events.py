"""
Reconciliation Events - In-memory pub/sub for what the controller did.

The controller publishes one event per external mutation or failure, much
like a Kubernetes event recorder. Subscribers (the CLI, tests) read them
through an async iterator.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Callable, Dict, Optional, Tuple

from apis.common import ManagedResource

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of reconciliation events."""

    CREATED_EXTERNAL_RESOURCE = "CreatedExternalResource"
    UPDATED_EXTERNAL_RESOURCE = "UpdatedExternalResource"
    DELETED_EXTERNAL_RESOURCE = "DeletedExternalResource"
    CANNOT_OBSERVE_EXTERNAL_RESOURCE = "CannotObserveExternalResource"
    CANNOT_CREATE_EXTERNAL_RESOURCE = "CannotCreateExternalResource"
    CANNOT_UPDATE_EXTERNAL_RESOURCE = "CannotUpdateExternalResource"
    CANNOT_DELETE_EXTERNAL_RESOURCE = "CannotDeleteExternalResource"


WARNING_EVENTS = frozenset(
    {
        EventType.CANNOT_OBSERVE_EXTERNAL_RESOURCE,
        EventType.CANNOT_CREATE_EXTERNAL_RESOURCE,
        EventType.CANNOT_UPDATE_EXTERNAL_RESOURCE,
        EventType.CANNOT_DELETE_EXTERNAL_RESOURCE,
    }
)


@dataclass
class ReconcileEvent:
    """Event emitted when the controller acts on a record."""

    event_type: EventType
    kind: str
    name: str
    message: str
    timestamp: str

    @property
    def warning(self) -> bool:
        return self.event_type in WARNING_EVENTS

    @classmethod
    def from_record(
        cls,
        event_type: EventType,
        record: ManagedResource,
        message: str = "",
    ) -> "ReconcileEvent":
        """
        Create an event about a record.

        Args:
            event_type: The type of event.
            record: The record the event is about.
            message: Human-readable detail, e.g. the error.

        Returns:
            A new ReconcileEvent instance.
        """
        return cls(
            event_type=event_type,
            kind=record.kind,
            name=record.metadata.name,
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )


class EventSubscription:
    """
    Async iterator over the events of one subscriber.

    Iteration ends on a ``None`` sentinel, or once the subscription is
    closed and every event delivered before that has been read.
    """

    def __init__(
        self,
        queue_size: int,
        filter_fn: Optional[Callable[[ReconcileEvent], bool]] = None,
    ):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._filter_fn = filter_fn
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, event: ReconcileEvent) -> bool:
        """Queue an event without waiting. Returns False if it was dropped."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        self._closed = True
        # A reader blocked on an empty queue needs the sentinel to wake up.
        # A full queue has no blocked reader; it stops once drained.
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass

    def __aiter__(self) -> AsyncIterator[ReconcileEvent]:
        return self

    async def __anext__(self) -> ReconcileEvent:
        while True:
            if self._closed and self._queue.empty():
                raise StopAsyncIteration

            event = await self._queue.get()
            if event is None:
                raise StopAsyncIteration

            if self._filter_fn is None or self._filter_fn(event):
                return event


class EventBus:
    """
    In-memory pub/sub bus for reconciliation events.

    Publishing never blocks the controller: an event for a subscriber that
    has fallen ``queue_size`` events behind is dropped for that subscriber.
    """

    def __init__(self, queue_size: int = 256):
        self._queue_size = queue_size
        self._subscriptions: Dict[str, EventSubscription] = {}
        self._lock = asyncio.Lock()

    async def publish(self, event: ReconcileEvent) -> None:
        async with self._lock:
            subscriptions = list(self._subscriptions.items())

        for subscriber_id, subscription in subscriptions:
            if not subscription.deliver(event):
                logger.warning(
                    f"Dropped {event.event_type.value} event for "
                    f"{event.kind}/{event.name}: subscriber {subscriber_id} "
                    f"is behind"
                )

    async def subscribe(
        self,
        filter_fn: Optional[Callable[[ReconcileEvent], bool]] = None,
    ) -> Tuple[str, EventSubscription]:
        """
        Subscribe to events.

        Args:
            filter_fn: Optional predicate; only matching events are yielded.

        Returns:
            A tuple of ``(subscriber_id, EventSubscription)``.
        """
        subscriber_id = str(uuid.uuid4())
        subscription = EventSubscription(self._queue_size, filter_fn)

        async with self._lock:
            self._subscriptions[subscriber_id] = subscription

        logger.debug(f"New event subscriber: {subscriber_id}")
        return subscriber_id, subscription

    async def unsubscribe(self, subscriber_id: str) -> None:
        """
        Remove a subscriber and close its subscription.

        The subscription still yields the events delivered before this call,
        then stops.
        """
        async with self._lock:
            subscription = self._subscriptions.pop(subscriber_id, None)

        if subscription is not None:
            subscription.close()
            logger.debug(f"Unsubscribed: {subscriber_id}")
