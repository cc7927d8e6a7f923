"""Lifecycle event sink and observer bus."""

from __future__ import annotations

import inspect
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from .logging import get_logger

logger = get_logger(__name__)

EventListener = Callable[[str, dict[str, Any]], Awaitable[None] | None]

# Wildcard subscription key receiving every event
ALL_EVENTS = "*"


class EventSink(Protocol):
    """Structured sink for lifecycle events such as ``model:registered``."""

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        """Publish an event with a JSON-like payload."""
        ...


class EventBus:
    """Event sink that logs every event and fans it out to subscribed listeners."""

    def __init__(self) -> None:
        """Initialize an empty bus."""
        self._listeners: dict[str, list[EventListener]] = defaultdict(list)

    def subscribe(self, event: str, listener: EventListener) -> None:
        """Register a sync or async listener for an event name (or ``*`` for all)."""
        self._listeners[event].append(listener)

    def unsubscribe(self, event: str, listener: EventListener) -> None:
        """Remove a previously registered listener; unknown listeners are ignored."""
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        """Log the event and deliver it to listeners in subscription order."""
        logger.debug("event.emitted", event_name=event, **_loggable(payload))

        for listener in [*self._listeners.get(event, ()), *self._listeners.get(ALL_EVENTS, ())]:
            try:
                result = listener(event, payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                # A broken listener must not break the emitting operation
                logger.exception("event.listener_failed", event_name=event)


def _loggable(payload: dict[str, Any]) -> dict[str, Any]:
    """Keep scalar payload fields for log context."""
    return {k: v for k, v in payload.items() if isinstance(v, (str, int, float, bool)) or v is None}
