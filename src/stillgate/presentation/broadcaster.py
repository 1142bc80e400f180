"""
Event Broadcaster
=================

Fan-out of overlay and result events to WebSocket subscribers.

The broadcaster is the overlay presenter used by the service: each
visibility change is marshalled onto the event loop (the "UI context")
with call_soon_threadsafe, so it may be triggered from any thread.

Event formats:
    {"type": "overlay", "visible": true}
    {"type": "result", "frame_id": 412, "accepted": true, ...}
"""

import asyncio
import logging
from typing import List, Optional

from stillgate.models.classification import ClassificationResult


logger = logging.getLogger(__name__)


class EventBroadcaster:
    """
    Publishes presentation events to subscriber queues.

    Slow subscribers lose their oldest events rather than blocking
    the publisher.

    Attributes:
        overlay_visible: Last overlay visibility delivered
        published_count: Events delivered so far
    """

    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        max_queue_size: int = 32,
    ) -> None:
        self._loop = loop
        self._max_queue_size = max_queue_size
        self._subscribers: List[asyncio.Queue] = []
        self.overlay_visible: bool = False
        self.published_count: int = 0

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Deliver all subsequent events on `loop`."""
        self._loop = loop

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue:
        """Register a new subscriber queue."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        """Remove a subscriber queue, if registered."""
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def set_overlay_visible(self, visible: bool) -> None:
        """OverlayPresenter: publish a visibility change."""
        self.publish({"type": "overlay", "visible": visible})

    def publish_result(self, result: ClassificationResult) -> None:
        """Publish a classification result."""
        self.publish({"type": "result", **result.model_dump(mode="json")})

    def publish(self, event: dict) -> None:
        """Deliver `event` on the bound loop (directly when unbound)."""
        if self._loop is None or self._loop.is_closed():
            self._deliver(event)
        else:
            self._loop.call_soon_threadsafe(self._deliver, event)

    def _deliver(self, event: dict) -> None:
        if event.get("type") == "overlay":
            self.overlay_visible = event["visible"]

        for queue in self._subscribers:
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(event)

        self.published_count += 1
        logger.debug(f"Event published: {event.get('type')}")
