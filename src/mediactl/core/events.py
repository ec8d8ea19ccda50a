"""Named event dispatch for media primitives and playback controllers.

Media primitives fire events such as ``play`` or ``timeupdate`` through an
:class:`EventBus`, and the playback controller publishes its own
``mediaStateChange`` notifications the same way. Listeners are plain
callables receiving ``(event_name, data)``.

Example usage:
    bus = EventBus()
    bus.subscribe('timeupdate', on_time)
    bus.emit('timeupdate', {'current_time': 12.5})
    bus.unsubscribe('timeupdate', on_time)
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional


EventCallback = Callable[[str, Dict[str, Any]], None]


class EventBus:
    """Per-object event dispatcher keyed by event name."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._subscribers: Dict[str, List[EventCallback]] = {}
        self._lock = threading.RLock()
        self._logger = logger or logging.getLogger("mediactl.EventBus")

    def subscribe(self, event_name: str, callback: EventCallback) -> None:
        """Subscribe to an event.

        Args:
            event_name: Name of the event to listen for (e.g., 'ended')
            callback: Function to call when event is emitted.
                     Receives (event_name, data) as arguments.
        """
        with self._lock:
            if event_name not in self._subscribers:
                self._subscribers[event_name] = []

            if callback not in self._subscribers[event_name]:
                self._subscribers[event_name].append(callback)

    def unsubscribe(self, event_name: str, callback: EventCallback) -> None:
        """Unsubscribe from an event. Unknown callbacks are ignored."""
        with self._lock:
            subscribers = self._subscribers.get(event_name)
            if not subscribers:
                return
            try:
                subscribers.remove(callback)
            except ValueError:
                return
            if not subscribers:
                del self._subscribers[event_name]

    def emit(self, event_name: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Emit an event to all subscribers.

        Args:
            event_name: Name of the event to emit
            data: Optional dictionary of event data
        """
        if data is None:
            data = {}

        with self._lock:
            callbacks = self._subscribers.get(event_name, []).copy()

        # Call callbacks outside the lock so handlers may re-enter the bus
        for callback in callbacks:
            try:
                callback(event_name, data)
            except Exception:
                self._logger.exception("Listener for '%s' failed", event_name)

    def subscriber_count(self, event_name: Optional[str] = None) -> int:
        """Number of subscribers for *event_name*, or across all events."""
        with self._lock:
            if event_name is None:
                return sum(len(callbacks) for callbacks in self._subscribers.values())
            return len(self._subscribers.get(event_name, []))
