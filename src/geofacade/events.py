"""EventBus - pub/sub for facade lifecycle and registry events.

Two ways to listen:
  - ``subscribe()`` returns a bounded Queue that receives every event, for
    hosts that drain events on their own schedule.
  - ``on(event_type, handler)`` registers a callback invoked synchronously
    on publish, which is what the facade's on_ready/on_error/on_destroyed
    hooks use.

Event types published by the facade: ``ready``, ``error``, ``destroyed``,
``layer_added``, ``layer_removed``, ``control_added``, ``control_removed``.
"""

from __future__ import annotations

import queue
from collections import defaultdict
from typing import Any, Callable

from loguru import logger

Handler = Callable[[dict], Any]


class EventBus:
    """Simple pub/sub for pushing facade events to subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[queue.Queue] = []
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, maxsize: int = 100) -> queue.Queue:
        """Subscribe to all events. Returns a Queue that receives them."""
        q: queue.Queue = queue.Queue(maxsize=maxsize)
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        try:
            self._subscribers.remove(q)
        except ValueError:
            pass

    def on(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for one event type.

        Returns a callable that removes the handler again.
        """
        self._handlers[event_type].append(handler)

        def _off() -> None:
            try:
                self._handlers[event_type].remove(handler)
            except ValueError:
                pass

        return _off

    def publish(self, event_type: str, data: dict | None = None) -> None:
        msg: dict = {"type": event_type}
        if data is not None:
            msg["data"] = data

        for handler in list(self._handlers.get(event_type, ())):
            try:
                handler(msg)
            except Exception as e:
                # Host callback errors are logged and skipped.
                logger.warning(f"Event handler for '{event_type}' failed: {e}")

        for q in self._subscribers:
            try:
                q.put_nowait(msg)
            except queue.Full:
                # Full queue: drop the oldest event.
                try:
                    q.get_nowait()
                except queue.Empty:
                    pass
                try:
                    q.put_nowait(msg)
                except queue.Full:
                    pass

    def clear(self) -> None:
        """Drop every subscriber and handler."""
        self._subscribers.clear()
        self._handlers.clear()
