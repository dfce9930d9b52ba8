"""
Event Bus - in-process publish/subscribe.

Dispatch behavior:
1. Look up subscribers by the event's class (and its base classes)
2. Call each handler in registration order
3. Coroutine handlers are scheduled as background tasks, not awaited
4. Catch and log handler exceptions per handler
5. Continue to the next handler

A handler failure never propagates to the publisher and never affects other
handlers. Use ``drain()`` to wait for scheduled handlers (shutdown, tests).
"""
import asyncio
import inspect
from collections import defaultdict
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger()

Handler = Callable[[Any], Any]


class EventBusError(Exception):
    """Base error for event bus operations."""
    pass


class DuplicateSubscriberError(EventBusError):
    """Same handler already registered for this event type."""

    def __init__(self, event_type: type, handler_name: str):
        self.event_type = event_type
        self.handler_name = handler_name
        super().__init__(
            f"Handler '{handler_name}' already registered "
            f"for event type '{event_type.__name__}'."
        )


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or type(handler).__qualname__


class EventBus:
    """Routes notifications to subscribers without waiting for them.

    Usage:
        bus = EventBus()
        bus.subscribe(PersonaActivated, cache_listener)
        bus.publish(PersonaActivated(persona=persona))
        await bus.drain()
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Handler]] = defaultdict(list)
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, event_type: type, handler: Handler) -> None:
        """Register a handler for an event type.

        Raises:
            DuplicateSubscriberError: If the handler is already registered.
        """
        if handler in self._subscribers[event_type]:
            raise DuplicateSubscriberError(event_type, _handler_name(handler))
        self._subscribers[event_type].append(handler)
        logger.debug(
            "event_subscriber_registered",
            event_type=event_type.__name__,
            handler=_handler_name(handler),
        )

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        """Remove a handler. Unknown handlers are ignored."""
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def subscribers(self, event_type: type) -> list[Handler]:
        """Handlers that receive events of this type, including base-class subscriptions."""
        handlers: list[Handler] = []
        for klass in event_type.__mro__:
            for handler in self._subscribers.get(klass, []):
                if handler not in handlers:
                    handlers.append(handler)
        return handlers

    @property
    def pending(self) -> int:
        """Number of scheduled handler tasks not yet finished."""
        return len(self._pending)

    def publish(self, event: Any) -> dict[str, Any]:
        """Dispatch an event to all subscribers.

        Never raises. Returns a dispatch report:
        {
            'event_type': str,
            'subscribers_notified': int,
            'subscribers_scheduled': int,
            'subscribers_failed': int,
            'failures': list[dict]
        }
        ``subscribers_failed`` only counts handlers that failed inline;
        scheduled handlers report failures through the log.
        """
        event_type = type(event).__name__
        result: dict[str, Any] = {
            "event_type": event_type,
            "subscribers_notified": 0,
            "subscribers_scheduled": 0,
            "subscribers_failed": 0,
            "failures": [],
        }

        handlers = self.subscribers(type(event))
        if not handlers:
            logger.debug("event_no_subscribers", event_type=event_type)
            return result

        for handler in handlers:
            handler_name = _handler_name(handler)
            try:
                outcome = handler(event)
                if inspect.isawaitable(outcome):
                    self._schedule(outcome, event_type, handler_name)
                    result["subscribers_scheduled"] += 1
                else:
                    result["subscribers_notified"] += 1
            except Exception as exc:
                result["subscribers_failed"] += 1
                result["failures"].append({
                    "handler": handler_name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                })
                logger.error(
                    "event_handler_failed",
                    event_type=event_type,
                    handler=handler_name,
                    error=str(exc),
                    exc_info=True,
                )

        logger.debug(
            "event_published",
            event_type=event_type,
            notified=result["subscribers_notified"],
            scheduled=result["subscribers_scheduled"],
            failed=result["subscribers_failed"],
        )
        return result

    async def drain(self) -> None:
        """Wait until every scheduled handler has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _schedule(self, awaitable: Awaitable[Any], event_type: str, handler_name: str) -> None:
        runner = self._run(awaitable, event_type, handler_name)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to hand the handler to (plain sync caller): run it now.
            asyncio.run(runner)
            return

        task = loop.create_task(runner)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run(self, awaitable: Awaitable[Any], event_type: str, handler_name: str) -> None:
        try:
            await awaitable
        except Exception as exc:
            logger.error(
                "event_handler_failed",
                event_type=event_type,
                handler=handler_name,
                error=str(exc),
                exc_info=True,
            )
