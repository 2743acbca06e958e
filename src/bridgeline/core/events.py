"""Event bus for batch observability.

A simple synchronous event bus for emitting domain events from the
orchestrator to CLI formatters, keeping presentation out of the engine.
"""

from collections.abc import Callable
from threading import RLock
from typing import Any, Protocol, TypeVar

T = TypeVar("T")


class EventBusProtocol(Protocol):
    """Protocol for event bus implementations.

    Lets both EventBus and NullEventBus satisfy the interface without
    inheritance.
    """

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Subscribe a handler to an event type."""
        ...

    def emit(self, event: T) -> None:
        """Emit an event to all subscribers."""
        ...


class EventBus:
    """Synchronous event bus.

    Events are dispatched synchronously to all subscribers in subscription
    order. Handler exceptions propagate to the caller: formatters are our
    own code, and a bug there should surface, not vanish.

    Worker threads emit concurrently, so emission is serialized: a handler
    never runs concurrently with another handler on the same bus.

    Example:
        bus = EventBus()
        bus.subscribe(BatchStarted, lambda e: print(f"{e.batch_id}: {e.total} items"))
        bus.emit(BatchStarted(batch_id="b-1", total=3, concurrency=1))
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable[[Any], None]]] = {}
        self._lock = RLock()

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """Subscribe a handler to an event type.

        Args:
            event_type: The event class to subscribe to
            handler: Callable that receives the event instance
        """
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(handler)

    def emit(self, event: T) -> None:
        """Emit an event to all subscribers of its exact type.

        Events with no subscribers are ignored.
        """
        with self._lock:
            handlers = list(self._subscribers.get(type(event), []))
            for handler in handlers:
                handler(event)


class NullEventBus:
    """No-op event bus for library use where no CLI is present.

    Does NOT inherit from EventBus: subscribing to it does nothing, and
    inheritance would hide that from someone expecting callbacks.
    """

    def subscribe(self, event_type: type[T], handler: Callable[[T], None]) -> None:
        """No-op subscription - handler will never be called."""
        pass

    def emit(self, event: T) -> None:
        """No-op emission."""
        pass
