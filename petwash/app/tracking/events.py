"""
Application-level publish/subscribe.

The tracker publishes view updates here instead of dispatching global
events; views subscribe to the topics they render.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger("petwash.tracking.events")

# Topics published by the tracker
VIEW_UPDATED = "walk.view_updated"
WALK_NOT_FOUND = "walk.not_found"
LIVE_CHANGED = "walk.live_changed"
EMERGENCY = "walk.emergency"


class EventBus:

    def __init__(self):
        self._handlers: Dict[str, List[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        """Register handler for topic. Returns a function that removes it."""
        self._handlers[topic].append(handler)

        def unsubscribe():
            if handler in self._handlers[topic]:
                self._handlers[topic].remove(handler)

        return unsubscribe

    def publish(self, topic: str, payload: Any = None) -> int:
        """
        Call every handler of topic with payload.

        A failing handler is logged and does not stop the others.
        """
        delivered = 0
        for handler in list(self._handlers.get(topic, ())):
            try:
                handler(payload)
                delivered += 1
            except Exception:
                logger.exception("Handler for %s failed", topic)
        return delivered
