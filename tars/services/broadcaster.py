"""In-process fan-out of stream events to live subscribers."""

import asyncio
from collections.abc import AsyncIterator

from tars.models.events import StreamEvent
from tars.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_EVENT_BUFFER = 200


class Subscription:
    """One consumer's view of an event channel.

    Events are buffered in a bounded queue. When the buffer is full the oldest
    buffered event is dropped to make room, so a slow consumer misses events
    instead of holding up the publisher.
    """

    def __init__(self, channel: "EventChannel", capacity: int):
        self._channel = channel
        self._queue: asyncio.Queue[StreamEvent] = asyncio.Queue(maxsize=capacity)
        self.dropped = 0

    def offer(self, event: StreamEvent) -> None:
        """Buffer an event without blocking."""
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            logger.warning(f"Subscriber buffer full, dropped oldest event ({self.dropped} dropped so far)")
        self._queue.put_nowait(event)

    async def get(self) -> StreamEvent:
        """Wait for the next event."""
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        self._channel.unsubscribe(self)

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self

    async def __anext__(self) -> StreamEvent:
        return await self.get()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class EventChannel:
    """Publish-subscribe channel for one session.

    Delivery is at-most-once and best-effort: a subscriber only sees events
    published while it is subscribed, and nothing is replayed or persisted.
    """

    def __init__(self, capacity: int = DEFAULT_EVENT_BUFFER):
        if capacity < 1:
            raise ValueError("Event buffer capacity must be at least 1")
        self.capacity = capacity
        self._subscribers: list[Subscription] = []

    def subscribe(self) -> Subscription:
        """Register a new subscriber that receives events published from now on."""
        subscription = Subscription(self, self.capacity)
        self._subscribers.append(subscription)
        logger.debug(f"Subscriber added, {len(self._subscribers)} active")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
            logger.debug(f"Subscriber removed, {len(self._subscribers)} active")

    def publish(self, event: StreamEvent) -> int:
        """Deliver an event to every current subscriber.

        Returns:
            Number of subscribers the event was offered to
        """
        subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription.offer(event)
        return len(subscribers)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
