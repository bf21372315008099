"""
In-process publish/subscribe hub for order change events.

Events carry no payload: a subscriber that hears ORDERS_UPDATED refetches
whatever it shows from the source of truth. NOTIFICATIONS_UPDATED drives the
staff notification badge and is skipped for silent writes.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

ORDERS_UPDATED = "orders_updated"
NOTIFICATIONS_UPDATED = "notifications_updated"

EventCallback = Callable[[], None]


class NotificationHub:
    """Synchronous fan-out of named events to registered callbacks."""

    def __init__(self):
        self._listeners: Dict[str, List[EventCallback]] = defaultdict(list)

    def subscribe(self, event: str, callback: EventCallback) -> Callable[[], None]:
        """Register callback for event. Returns a function that unsubscribes it."""
        self._listeners[event].append(callback)

        def unsubscribe() -> None:
            listeners = self._listeners.get(event, [])
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def publish(self, event: str) -> None:
        """Call every listener of event; a failing listener does not stop the others."""
        for callback in list(self._listeners.get(event, [])):
            try:
                callback()
            except Exception:
                logger.exception("Listener for %s failed", event)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))
