"""In-process publish/subscribe for change notifications.

Each subscriber (one open SSE connection) owns a bounded asyncio.Queue.
publish() never blocks and never raises: when a subscriber's queue is full
the oldest pending event is dropped to make room, so a slow consumer loses
history instead of stalling the operation that produced the event.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from config.settings import settings
from src.pm_common.datetime_utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    name: str
    data: dict[str, Any]
    published_at: str = field(default_factory=lambda: utc_now().isoformat())

    def to_sse(self) -> str:
        """Server-sent events wire format: `event: <name>\\ndata: <json>\\n\\n`."""
        return f"event: {self.name}\ndata: {json.dumps(self.data, default=str)}\n\n"


class Subscription:
    def __init__(self, maxsize: int) -> None:
        self.queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def offer(self, event: Event) -> None:
        while True:
            try:
                self.queue.put_nowait(event)
                return
            except asyncio.QueueFull:
                try:
                    self.queue.get_nowait()
                    self.dropped += 1
                except asyncio.QueueEmpty:
                    pass

    async def next_event(self, timeout: float | None = None) -> Event | None:
        """Wait for the next event; None on timeout (used for SSE heartbeats)."""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except TimeoutError:
            return None


class EventBroadcaster:
    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscribers: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        sub = Subscription(self._queue_size)
        self._subscribers.add(sub)
        logger.debug("Subscriber added (total=%d)", len(self._subscribers))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._subscribers.discard(sub)
        if sub.dropped:
            logger.warning("Subscriber closed after dropping %d events", sub.dropped)

    @asynccontextmanager
    async def subscription(self) -> AsyncIterator[Subscription]:
        sub = self.subscribe()
        try:
            yield sub
        finally:
            self.unsubscribe(sub)

    def publish(self, name: str, data: dict[str, Any]) -> int:
        """Fan out to every subscriber. Returns the number of subscribers reached."""
        event = Event(name=name, data=data)
        for sub in list(self._subscribers):
            sub.offer(event)
        logger.debug("Published %s to %d subscribers", name, len(self._subscribers))
        return len(self._subscribers)


broadcaster = EventBroadcaster(queue_size=settings.EVENT_QUEUE_SIZE)
