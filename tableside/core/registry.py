"""In-process topic registry used to fan events out to live streams.

Delivery is at-most-once: a publish reaches whoever is subscribed at that
moment and is otherwise dropped. State lives in this process only, events
published by another worker process are never seen here (see
RedisTopicRegistry for the networked variant).
"""

import logging
import threading
from typing import Any, Callable, Dict, List

from fastapi import Request

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class Subscription:
    """Handle for one registered handler"""

    def __init__(self, registry: "TopicRegistry", topic: str, handler: Handler):
        self.registry = registry
        self.topic = topic
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self.registry.unsubscribe(self.topic, self.handler)


class TopicRegistry:
    def __init__(self):
        self._listeners: Dict[str, List[Handler]] = {}
        # Sync routes publish from the threadpool
        self._lock = threading.Lock()

    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        with self._lock:
            self._listeners.setdefault(topic, []).append(handler)
        logger.debug(f"Listener added to {topic}")
        return Subscription(self, topic, handler)

    def unsubscribe(self, topic: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._listeners.get(topic)
            if not handlers:
                return
            try:
                handlers.remove(handler)
            except ValueError:
                return
            if not handlers:
                del self._listeners[topic]
        logger.debug(f"Listener removed from {topic}")

    def publish(self, topic: str, payload: Any = None) -> int:
        """Call every listener of `topic` in registration order.

        Listeners run synchronously on the caller's thread and must only
        enqueue work. A failing listener is logged and skipped.
        """
        return self._deliver(topic, payload)

    def _deliver(self, topic: str, payload: Any) -> int:
        with self._lock:
            snapshot = list(self._listeners.get(topic, ()))
        if not snapshot:
            logger.debug(f"No listeners on {topic}, event dropped")
            return 0

        for handler in snapshot:
            try:
                handler(payload)
            except Exception:
                logger.exception(f"Listener on {topic} failed")
        return len(snapshot)

    def listener_count(self, topic: str) -> int:
        with self._lock:
            return len(self._listeners.get(topic, ()))

    def topics(self) -> List[str]:
        with self._lock:
            return sorted(self._listeners)


def get_registry(request: Request) -> TopicRegistry:
    return request.app.state.registry
