"""Tests for the in-process event bus."""
import asyncio
from dataclasses import dataclass
from unittest.mock import MagicMock

import pytest

from multipersona.events import DuplicateSubscriberError, EventBus


@dataclass(frozen=True)
class Ping:
    value: int


@dataclass(frozen=True)
class LoudPing(Ping):
    pass


class TestSubscribe:
    """Tests for subscription management."""

    def test_duplicate_handler_rejected(self):
        bus = EventBus()
        handler = MagicMock()
        bus.subscribe(Ping, handler)

        with pytest.raises(DuplicateSubscriberError):
            bus.subscribe(Ping, handler)

    def test_same_handler_different_types(self):
        bus = EventBus()
        handler = MagicMock()
        bus.subscribe(Ping, handler)
        bus.subscribe(LoudPing, handler)

        assert bus.subscribers(LoudPing) == [handler]

    def test_unsubscribe(self):
        bus = EventBus()
        handler = MagicMock()
        bus.subscribe(Ping, handler)
        bus.unsubscribe(Ping, handler)

        bus.publish(Ping(1))

        handler.assert_not_called()

    def test_unsubscribe_unknown_is_ignored(self):
        EventBus().unsubscribe(Ping, MagicMock())


class TestPublishSync:
    """Tests for inline (sync) handlers."""

    def test_handler_receives_event(self):
        bus = EventBus()
        handler = MagicMock()
        bus.subscribe(Ping, handler)

        event = Ping(1)
        result = bus.publish(event)

        handler.assert_called_once_with(event)
        assert result["subscribers_notified"] == 1

    def test_no_subscribers(self):
        result = EventBus().publish(Ping(1))
        assert result["subscribers_notified"] == 0
        assert result["event_type"] == "Ping"

    def test_base_class_subscription(self):
        """Subscribers of a base class also get subclass events."""
        bus = EventBus()
        handler = MagicMock()
        bus.subscribe(Ping, handler)

        bus.publish(LoudPing(2))

        handler.assert_called_once()

    def test_subclass_subscription_ignores_base_events(self):
        bus = EventBus()
        handler = MagicMock()
        bus.subscribe(LoudPing, handler)

        bus.publish(Ping(2))

        handler.assert_not_called()

    def test_failure_is_isolated(self):
        """A failing handler does not stop the others or reach the publisher."""
        bus = EventBus()
        first = MagicMock(side_effect=RuntimeError("boom"))
        second = MagicMock()
        bus.subscribe(Ping, first)
        bus.subscribe(Ping, second)

        result = bus.publish(Ping(1))

        second.assert_called_once()
        assert result["subscribers_failed"] == 1
        assert result["subscribers_notified"] == 1
        assert result["failures"][0]["error_type"] == "RuntimeError"


class TestPublishAsync:
    """Tests for coroutine handlers (scheduled, not awaited)."""

    @pytest.mark.asyncio
    async def test_publish_does_not_wait(self):
        bus = EventBus()
        seen = []

        async def handler(event):
            await asyncio.sleep(0)
            seen.append(event.value)

        bus.subscribe(Ping, handler)
        result = bus.publish(Ping(7))

        assert result["subscribers_scheduled"] == 1
        assert seen == []
        assert bus.pending == 1

        await bus.drain()

        assert seen == [7]
        assert bus.pending == 0

    @pytest.mark.asyncio
    async def test_async_failure_is_isolated(self):
        bus = EventBus()
        seen = []

        async def broken(event):
            raise RuntimeError("boom")

        async def healthy(event):
            seen.append(event.value)

        bus.subscribe(Ping, broken)
        bus.subscribe(Ping, healthy)

        bus.publish(Ping(3))
        await bus.drain()

        assert seen == [3]

    @pytest.mark.asyncio
    async def test_drain_with_nothing_pending(self):
        await EventBus().drain()

    def test_async_handler_without_loop_runs_immediately(self):
        """Outside an event loop there is nowhere to schedule: run to completion."""
        bus = EventBus()
        seen = []

        async def handler(event):
            seen.append(event.value)

        bus.subscribe(Ping, handler)
        bus.publish(Ping(9))

        assert seen == [9]
        assert bus.pending == 0
