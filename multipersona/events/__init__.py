"""In-process event bus."""
from multipersona.events.bus import DuplicateSubscriberError, EventBus, EventBusError

__all__ = ["EventBus", "EventBusError", "DuplicateSubscriberError"]
