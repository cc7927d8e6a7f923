"""Tests for the event bus."""

from __future__ import annotations

from typing import Any

from inferkit.core import ALL_EVENTS, EventBus


class TestEventBus:
    """Tests for EventBus subscription and delivery."""

    async def test_sync_and_async_listeners(self) -> None:
        """Both sync and async listeners receive events in subscription order."""
        received: list[str] = []

        def sync_listener(event: str, payload: dict[str, Any]) -> None:
            received.append(f"sync:{payload['model_id']}")

        async def async_listener(event: str, payload: dict[str, Any]) -> None:
            received.append(f"async:{payload['model_id']}")

        bus = EventBus()
        bus.subscribe("model:registered", sync_listener)
        bus.subscribe("model:registered", async_listener)

        await bus.emit("model:registered", {"model_id": "m1"})

        assert received == ["sync:m1", "async:m1"]

    async def test_wildcard_listener(self) -> None:
        """Listeners on ``*`` receive every event."""
        received: list[str] = []
        bus = EventBus()
        bus.subscribe(ALL_EVENTS, lambda event, payload: received.append(event))

        await bus.emit("training:started", {})
        await bus.emit("batch:complete", {})

        assert received == ["training:started", "batch:complete"]

    async def test_other_events_not_delivered(self) -> None:
        """Listeners only see the event they subscribed to."""
        received: list[str] = []
        bus = EventBus()
        bus.subscribe("pipeline:failed", lambda event, payload: received.append(event))

        await bus.emit("pipeline:completed", {})

        assert received == []

    async def test_failing_listener_is_isolated(self) -> None:
        """A raising listener does not stop delivery or the emitter."""
        received: list[str] = []

        def broken(event: str, payload: dict[str, Any]) -> None:
            raise RuntimeError("listener bug")

        bus = EventBus()
        bus.subscribe("prediction:complete", broken)
        bus.subscribe("prediction:complete", lambda event, payload: received.append(event))

        await bus.emit("prediction:complete", {"model_id": "m1", "inference_time": 1.2})

        assert received == ["prediction:complete"]

    async def test_unsubscribe(self) -> None:
        """Unsubscribed listeners no longer receive events; unknown listeners are ignored."""
        received: list[str] = []

        def listener(event: str, payload: dict[str, Any]) -> None:
            received.append(event)

        bus = EventBus()
        bus.subscribe("model:failed", listener)
        bus.unsubscribe("model:failed", listener)
        bus.unsubscribe("model:failed", listener)

        await bus.emit("model:failed", {})

        assert received == []
