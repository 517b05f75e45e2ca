"""In-process fan-out of live events to SSE subscribers.

Delivery is best-effort: a subscriber whose queue is full misses the event.
"""

import asyncio
import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 100


def sse_event(event_type: str, data: dict) -> str:
    """Format data as an SSE event."""
    return f"event: {event_type}\ndata: {json.dumps(data, default=str)}\n\n"


class LiveBroadcaster:
    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscribers: set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers.add(queue)
        logger.info("Live subscriber added (%d total)", len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
        logger.info("Live subscriber removed (%d total)", len(self._subscribers))

    def publish(self, event: str, data: dict[str, Any]) -> None:
        """Queue an event for every subscriber without waiting."""
        for queue in list(self._subscribers):
            try:
                queue.put_nowait((event, data))
            except asyncio.QueueFull:
                logger.warning("Live subscriber queue full, dropping %s event", event)


broadcaster = LiveBroadcaster()
