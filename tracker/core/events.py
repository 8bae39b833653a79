"""In-process change notifications for UI observers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from tracker.utils.logger import get_logger

log = get_logger(__name__)

LISTING_UPDATED = "LISTING_UPDATED"
REFRESH_STATUS_CHANGED = "REFRESH_STATUS_CHANGED"

SUBSCRIBER_QUEUE_SIZE = 100


@dataclass(slots=True)
class Event:
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "payload": self.payload, "timestamp": self.timestamp}


class Notifier:
    """Fan-out of events to callbacks and async queue subscribers.

    Publishing never blocks and never fails the publisher: a full subscriber
    queue drops its oldest event.
    """

    def __init__(self) -> None:
        self._listeners: List[Callable[[Event], None]] = []
        self._queues: Set[asyncio.Queue] = set()

    def add_listener(self, callback: Callable[[Event], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[Event], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._queues.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._queues.discard(queue)

    def publish(self, event_type: str, payload: Optional[Dict[str, Any]] = None) -> Event:
        event = Event(type=event_type, payload=payload or {})
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception:  # noqa: BLE001
                log.exception(f"Listener failed for {event_type}")
        for queue in list(self._queues):
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(event)
        return event


__all__ = ["Event", "Notifier", "LISTING_UPDATED", "REFRESH_STATUS_CHANGED"]
