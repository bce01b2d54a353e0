"""In-process event notifications. Emitting never depends on subscribers being present."""
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

TEST_COMPLETED = "test_completed"
ANALYTICS_GENERATED = "analytics_generated"


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Any], None]]] = {}

    def subscribe(self, event: str, callback: Callable[[Any], None]):
        self._subscribers.setdefault(event, []).append(callback)

    def unsubscribe(self, event: str, callback: Callable[[Any], None]) -> bool:
        callbacks = self._subscribers.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)
            return True
        return False

    def emit(self, event: str, payload: Any = None) -> int:
        """Call every subscriber; a failing subscriber is logged and skipped. Returns calls made."""
        delivered = 0
        for callback in list(self._subscribers.get(event, [])):
            try:
                callback(payload)
                delivered += 1
            except Exception as e:
                logger.error(f"Subscriber {getattr(callback, '__name__', callback)!r} failed on {event}: {e}")
        return delivered
