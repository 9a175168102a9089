"""EventHandlerRegistry: maps outbox event types to handlers."""

import logging
from collections import defaultdict
from collections.abc import Callable

logger = logging.getLogger(__name__)


class EventHandlerRegistry:
    """Registry of event handlers, owned by whoever builds it.

    Handlers are plain callables that accept a payload dict.
    Multiple handlers can be registered for the same event_type.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable]] = defaultdict(list)

    def register(self, event_type: str, handler: Callable) -> None:
        """Register a handler for a given event type."""
        self._handlers[event_type].append(handler)
        logger.info("Registered handler %s for event type %s", handler.__name__, event_type)

    def get_handlers(self, event_type: str) -> list[Callable]:
        """Return all handlers registered for the given event type."""
        return list(self._handlers.get(event_type, []))

    def dispatch(self, event_type: str, payload: dict) -> list[dict]:
        """Dispatch an event to all registered handlers.

        Returns a list of result dicts with handler name and status.
        Errors are logged and captured but do not stop other handlers.
        """
        results = []
        for handler in self.get_handlers(event_type):
            try:
                handler(payload)
                results.append({"handler": handler.__name__, "status": "ok"})
            except Exception as exc:
                logger.exception(
                    "Handler %s failed for event type %s", handler.__name__, event_type
                )
                results.append({
                    "handler": handler.__name__,
                    "status": "error",
                    "error": str(exc),
                })
        return results

    def clear(self) -> None:
        """Remove all registered handlers."""
        self._handlers.clear()
