# src/bridgeline/engine/spans.py
"""OpenTelemetry span factory for the bridge engine.

Falls back to no-op mode when no tracer is configured.

Span Hierarchy:
    batch
    └── item
        ├── chain:needs_approval / chain:submit_approval
        ├── gate
        │   └── chain:forked_simulate
        ├── chain:submit_bridge
        └── chain:await_confirmation
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer


class NoOpSpan:
    """No-op span for when tracing is disabled."""

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_status(self, status: Any) -> None:
        pass

    def record_exception(self, exception: Exception) -> None:
        pass

    def is_recording(self) -> bool:
        return False


class SpanFactory:
    """Factory for creating OpenTelemetry spans.

    When no tracer is provided, all span methods yield a shared NoOpSpan.

    Example:
        factory = SpanFactory(tracer=opentelemetry.trace.get_tracer("bridgeline"))

        with factory.batch_span("batch-001", total=3):
            with factory.item_span("42", attempt=0):
                with factory.chain_span("submit_bridge", "42"):
                    ...
    """

    _NOOP_SPAN = NoOpSpan()

    def __init__(self, tracer: "Tracer | None" = None) -> None:
        self._tracer = tracer

    @property
    def enabled(self) -> bool:
        """Whether tracing is enabled."""
        return self._tracer is not None

    @contextmanager
    def batch_span(self, batch_id: str, *, total: int, concurrency: int = 1) -> Iterator["Span | NoOpSpan"]:
        if self._tracer is None:
            yield self._NOOP_SPAN
            return

        with self._tracer.start_as_current_span("batch") as span:
            span.set_attribute("batch.id", batch_id)
            span.set_attribute("batch.total", total)
            span.set_attribute("batch.concurrency", concurrency)
            yield span

    @contextmanager
    def item_span(self, token_id: str, *, attempt: int = 0, destination: str | None = None) -> Iterator["Span | NoOpSpan"]:
        if self._tracer is None:
            yield self._NOOP_SPAN
            return

        with self._tracer.start_as_current_span("item") as span:
            span.set_attribute("item.token_id", token_id)
            span.set_attribute("item.attempt", attempt)
            if destination is not None:
                span.set_attribute("item.destination", destination)
            yield span

    @contextmanager
    def gate_span(self, token_id: str) -> Iterator["Span | NoOpSpan"]:
        if self._tracer is None:
            yield self._NOOP_SPAN
            return

        with self._tracer.start_as_current_span("gate") as span:
            span.set_attribute("item.token_id", token_id)
            yield span

    @contextmanager
    def chain_span(self, operation: str, token_id: str) -> Iterator["Span | NoOpSpan"]:
        """Span around one call to the chain capability."""
        if self._tracer is None:
            yield self._NOOP_SPAN
            return

        with self._tracer.start_as_current_span(f"chain:{operation}") as span:
            span.set_attribute("chain.operation", operation)
            span.set_attribute("item.token_id", token_id)
            yield span
