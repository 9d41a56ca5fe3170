"""Fan-out of payout notices to live subscribers.

Each subscriber owns a bounded queue. Publishing never waits: when a
subscriber's queue is full the event is dropped for that subscriber only.
New subscribers do not receive past events.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Mapping
from typing import Any

logger = logging.getLogger(__name__)


class Subscription:
    """One subscriber channel."""

    def __init__(self, broadcaster: EventBroadcaster, max_queue: int) -> None:
        self.id = str(uuid.uuid4())
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=max_queue)
        self.dropped = 0
        self.closed = False

    def offer(self, event: dict[str, Any]) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    async def get(self, timeout: float | None = None) -> dict[str, Any] | None:
        """Wait for the next event; returns None if ``timeout`` elapses first."""
        if timeout is None:
            return await self._queue.get()
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except TimeoutError:
            return None

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._broadcaster.unsubscribe(self)

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        while not self.closed:
            yield await self._queue.get()


class EventBroadcaster:
    """Registry of open subscriptions."""

    def __init__(self, max_queue: int = 100) -> None:
        self._max_queue = max(1, max_queue)
        self._subscribers: dict[str, Subscription] = {}

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self._max_queue)
        self._subscribers[subscription.id] = subscription
        logger.debug("Payout event subscriber %s joined", subscription.id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.closed = True
        if self._subscribers.pop(subscription.id, None) is not None:
            logger.debug("Payout event subscriber %s left", subscription.id)

    def publish(self, event: Mapping[str, Any]) -> int:
        """Offer ``event`` to every open subscriber; returns how many accepted it."""
        payload = dict(event)
        delivered = 0
        for subscription in list(self._subscribers.values()):
            if subscription.offer(payload):
                delivered += 1
            else:
                logger.warning(
                    "Dropped %s event for slow subscriber %s",
                    payload.get("type", "unknown"),
                    subscription.id,
                )
        return delivered

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
