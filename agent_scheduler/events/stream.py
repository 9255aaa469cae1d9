"""
Scheduler Event Stream

Fan-out of scheduler events to the host. Each subscriber owns a bounded
queue and an optional filter on event type and minimum severity.

Publishing is synchronous and never waits on a subscriber: when a
subscriber's queue is full the event is dropped for that subscriber only
and counted in its stats. The scheduler loop is therefore never slowed
down by a host that stops reading.
"""

import asyncio
import itertools
import logging
from typing import AsyncIterator

from pydantic import BaseModel, Field

from agent_scheduler.events.models import (
    SEVERITY_ORDER,
    EventSeverity,
    SchedulerEvent,
    SchedulerEventType,
)

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000

# Queued after the last event of a closed subscription
_END_OF_STREAM = None


class EventFilter(BaseModel):
    """
    Which events a subscriber wants.

    An event passes when its type is listed (or no types are listed) and
    its severity is at least `min_severity`.
    """
    event_types: set[SchedulerEventType] | None = Field(
        default=None,
        description="Accepted event types (None = every type)"
    )
    min_severity: EventSeverity = Field(
        default=EventSeverity.DEBUG,
        description="Lowest severity passed through"
    )

    def matches(self, event: SchedulerEvent) -> bool:
        if self.event_types and event.event_type not in self.event_types:
            return False
        return SEVERITY_ORDER[event.severity] >= SEVERITY_ORDER[self.min_severity]


class SubscriptionStats(BaseModel):
    """Delivery counters for one subscriber."""
    subscription_id: str
    accepted: int = 0
    dropped: int = 0
    pending: int = 0
    closed: bool = False


class StreamStats(BaseModel):
    """Counters for the whole stream."""
    subscribers: int = 0
    published: int = 0
    delivered: int = 0


class EventSubscription:
    """
    One host's view of the stream.

    Read with `await next_event()`, `drain()` for whatever is queued, or
    `async for event in subscription` until the subscription is closed.
    """

    def __init__(
        self,
        subscription_id: str,
        filter: EventFilter | None = None,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        self.subscription_id = subscription_id
        self.filter = filter or EventFilter()
        self._queue: asyncio.Queue[SchedulerEvent | None] = asyncio.Queue(maxsize=max_queue_size)
        self._accepted = 0
        self._dropped = 0
        self._closed = False
        self._end_queued = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Events queued and not yet read."""
        return self._queue.qsize() - (1 if self._end_queued else 0)

    @property
    def stats(self) -> SubscriptionStats:
        return SubscriptionStats(
            subscription_id=self.subscription_id,
            accepted=self._accepted,
            dropped=self._dropped,
            pending=self.pending,
            closed=self._closed,
        )

    def offer(self, event: SchedulerEvent) -> bool:
        """
        Queue an event if it passes the filter.

        Returns:
            True if queued; False if filtered out, closed, or the queue is full
        """
        if self._closed or not self.filter.matches(event):
            return False

        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(
                f"Subscriber {self.subscription_id} is not keeping up; "
                f"dropped {event.event_type.value} event"
            )
            return False

        self._accepted += 1
        return True

    def drain(self) -> list[SchedulerEvent]:
        """Remove and return every queued event without waiting."""
        events = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is _END_OF_STREAM:
                self._end_queued = False
                break
            events.append(event)
        return events

    async def next_event(self, timeout: float | None = None) -> SchedulerEvent | None:
        """
        Wait for the next event.

        Args:
            timeout: Seconds to wait (None = until an event arrives or the
                subscription closes)

        Returns:
            The event, or None on timeout or end of stream
        """
        if self._closed and self._queue.empty():
            return None
        try:
            event = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        if event is _END_OF_STREAM:
            self._end_queued = False
        return event

    async def __aiter__(self) -> AsyncIterator[SchedulerEvent]:
        while (event := await self.next_event()) is not None:
            yield event

    def close(self) -> None:
        """Stop accepting events; readers see end of stream after the backlog."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_END_OF_STREAM)
            self._end_queued = True
        except asyncio.QueueFull:
            # Readers of a full queue stop at next_event() once it is empty
            pass


class EventStream:
    """
    Registry of subscribers for one scheduler.
    """

    def __init__(self, max_subscribers: int = 100):
        """
        Args:
            max_subscribers: Upper bound on simultaneous subscriptions
        """
        self._max_subscribers = max_subscribers
        self._subscribers: dict[str, EventSubscription] = {}
        self._ids = itertools.count(1)
        self._published = 0
        self._delivered = 0

    @property
    def stats(self) -> StreamStats:
        return StreamStats(
            subscribers=len(self._subscribers),
            published=self._published,
            delivered=self._delivered,
        )

    def subscribe(
        self,
        subscription_id: str | None = None,
        filter: EventFilter | None = None,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> EventSubscription:
        """
        Add a subscriber.

        Args:
            subscription_id: Caller-chosen ID (default: "subscriber-<n>")
            filter: Event filter (None = every event)
            max_queue_size: Events buffered before new ones are dropped

        Raises:
            ValueError: On a duplicate ID or when the subscriber limit is reached
        """
        if subscription_id is None:
            subscription_id = f"subscriber-{next(self._ids)}"
        if subscription_id in self._subscribers:
            raise ValueError(f"Subscription {subscription_id} already exists")
        if len(self._subscribers) >= self._max_subscribers:
            raise ValueError(
                f"Cannot add {subscription_id}: limit of {self._max_subscribers} subscribers reached"
            )

        subscription = EventSubscription(subscription_id, filter, max_queue_size)
        self._subscribers[subscription_id] = subscription
        logger.debug(f"Subscriber added: {subscription_id}")
        return subscription

    def unsubscribe(self, subscription_id: str) -> bool:
        """Close and remove a subscriber. Returns False if it was unknown."""
        subscription = self._subscribers.pop(subscription_id, None)
        if subscription is None:
            return False
        subscription.close()
        logger.debug(f"Subscriber removed: {subscription_id}")
        return True

    def get_subscription(self, subscription_id: str) -> EventSubscription | None:
        return self._subscribers.get(subscription_id)

    def publish(self, event: SchedulerEvent) -> int:
        """
        Offer an event to every subscriber.

        Returns:
            How many subscribers queued it
        """
        delivered = sum(
            1 for subscription in list(self._subscribers.values())
            if subscription.offer(event)
        )
        self._published += 1
        self._delivered += delivered
        return delivered

    def close_all(self) -> None:
        for subscription in self._subscribers.values():
            subscription.close()
        self._subscribers.clear()


def create_type_filter(*event_types: SchedulerEventType) -> EventFilter:
    """Filter passing only the given event types."""
    return EventFilter(event_types=set(event_types))


def create_severity_filter(min_severity: EventSeverity) -> EventFilter:
    """Filter passing events at or above a severity."""
    return EventFilter(min_severity=min_severity)
