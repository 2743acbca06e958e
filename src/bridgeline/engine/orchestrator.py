# src/bridgeline/engine/orchestrator.py
"""BatchOrchestrator - dispatches a batch of items through the executor.

Dispatch policy:
- At most ``options.concurrency`` items are approving/bridging at once.
  Items wait in input order and a new one is dispatched whenever an
  in-flight item finishes.
- concurrency=1 submits strictly in input order. With concurrency > 1
  submission order is best-effort and results arrive in completion order.
- One item failing never stops the batch.
- Cancellation stops dispatch immediately. In-flight items run to a
  terminal status; items never dispatched stay pending and are absent
  from the results.
- A batch-fatal fault (chain capability lost) stops dispatch the same
  way, then raises BatchAbortedError once in-flight items are terminal.
"""

from __future__ import annotations

import contextvars
import logging
import threading
import uuid
from collections import deque
from collections.abc import Iterable, Mapping
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any

import structlog

from bridgeline.contracts.chain import DestinationContext
from bridgeline.contracts.enums import BatchStatus, FaultKind, ItemStatus
from bridgeline.contracts.errors import BatchAbortedError, BatchConflictError, BatchFatalError
from bridgeline.contracts.events import BatchFinished, BatchStarted, ItemTransitioned
from bridgeline.contracts.items import BridgeItem, ItemSnapshot
from bridgeline.contracts.progress import BatchBridgeProgress
from bridgeline.contracts.protocols import ProgressObserver
from bridgeline.core.config import BatchOptions
from bridgeline.core.events import EventBusProtocol, NullEventBus
from bridgeline.core.logging import bound_batch_context
from bridgeline.engine.aggregator import ProgressAggregator
from bridgeline.engine.clock import DEFAULT_CLOCK, Clock
from bridgeline.engine.executor import BridgeExecutor, ExecutionOutcome
from bridgeline.engine.spans import SpanFactory

logger = logging.getLogger(__name__)
slog = structlog.get_logger(__name__)

DestinationSpec = DestinationContext | Mapping[str, DestinationContext] | None


def new_batch_id() -> str:
    return f"batch-{uuid.uuid4().hex[:12]}"


class BatchOrchestrator:
    """Runs batches of bridge items.

    Example:
        orchestrator = BatchOrchestrator(executor, event_bus=bus)
        progress = orchestrator.run_batch(["1", "2", "3"], destination, BatchOptions())
        print(progress.completed, progress.failed)
    """

    def __init__(
        self,
        executor: BridgeExecutor,
        *,
        event_bus: EventBusProtocol | None = None,
        span_factory: SpanFactory | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            executor: Executor shared by every worker thread
            event_bus: Bus for BatchStarted/ItemTransitioned/BatchFinished
            span_factory: Span factory for tracing
            clock: Clock used to measure batch duration
        """
        self._executor = executor
        self._events: EventBusProtocol = event_bus if event_bus is not None else NullEventBus()
        self._spans = span_factory or SpanFactory()
        self._clock = clock if clock is not None else DEFAULT_CLOCK

    def prepare(
        self,
        items: Iterable[str | BridgeItem],
        destination: DestinationSpec,
        *,
        batch_id: str | None = None,
        observers: Iterable[ProgressObserver] = (),
    ) -> ProgressAggregator:
        """Build the items of a batch and the aggregator that will own them.

        Args:
            items: Token ids or PENDING BridgeItems, in dispatch order
            destination: One destination for every item, a mapping from
                token id to destination, or None when every BridgeItem
                already carries one
            batch_id: Identifier (generated when omitted)
            observers: Progress observers registered before the batch starts

        Raises:
            BatchConflictError: If a token id appears more than once
            ValueError: If an item is not PENDING or has no destination
        """
        bridge_items = [item if isinstance(item, BridgeItem) else BridgeItem(token_id=item) for item in items]

        seen: set[str] = set()
        duplicates: list[str] = []
        for item in bridge_items:
            if item.token_id in seen and item.token_id not in duplicates:
                duplicates.append(item.token_id)
            seen.add(item.token_id)
        if duplicates:
            raise BatchConflictError("Duplicate token ids in batch", duplicates)

        resolved: list[DestinationContext] = []
        for item in bridge_items:
            if item.status != ItemStatus.PENDING:
                raise ValueError(f"Item {item.token_id} is {item.status}; only pending items can be dispatched")
            resolved.append(_resolve_destination(item, destination))
        # Nothing is written until every item has a destination
        for item, context in zip(bridge_items, resolved, strict=True):
            item.destination = context

        return ProgressAggregator(batch_id or new_batch_id(), bridge_items, observers=list(observers))

    def run_batch(
        self,
        items: Iterable[str | BridgeItem],
        destination: DestinationSpec,
        options: BatchOptions | None = None,
        on_update: ProgressObserver | None = None,
        cancel_event: threading.Event | None = None,
        *,
        batch_id: str | None = None,
    ) -> BatchBridgeProgress:
        """Prepare and run a batch, blocking until it stops.

        Returns:
            Final progress snapshot (COMPLETED or CANCELLED)

        Raises:
            BatchConflictError: If a token id appears more than once
            BatchAbortedError: If a batch-fatal fault stopped dispatch
        """
        aggregator = self.prepare(items, destination, batch_id=batch_id)
        if on_update is not None:
            aggregator.subscribe(on_update)
        return self.run(aggregator, options, cancel_event)

    def run(
        self,
        aggregator: ProgressAggregator,
        options: BatchOptions | None = None,
        cancel_event: threading.Event | None = None,
    ) -> BatchBridgeProgress:
        """Dispatch every item of a prepared batch.

        Raises:
            BatchAbortedError: If a batch-fatal fault stopped dispatch
        """
        options = options or BatchOptions()
        cancel_event = cancel_event or threading.Event()
        batch_id = aggregator.batch_id
        queue: deque[BridgeItem] = deque(aggregator.items)
        in_flight: dict[Future[ExecutionOutcome], BridgeItem] = {}
        fatal: BatchFatalError | None = None
        start = self._clock.monotonic()

        with bound_batch_context(batch_id), self._spans.batch_span(
            batch_id, total=aggregator.total, concurrency=options.concurrency
        ) as span:
            self._events.emit(BatchStarted(batch_id=batch_id, total=aggregator.total, concurrency=options.concurrency))
            slog.info("batch_started", total=aggregator.total, concurrency=options.concurrency)

            with ThreadPoolExecutor(
                max_workers=options.concurrency,
                thread_name_prefix=f"{batch_id}-worker",
            ) as pool:
                while queue or in_flight:
                    while queue and len(in_flight) < options.concurrency:
                        if fatal is not None or cancel_event.is_set():
                            break
                        item = queue.popleft()
                        # Each task gets its own context copy: a Context cannot be entered by two threads
                        context = contextvars.copy_context()
                        future = pool.submit(context.run, self._execute_item, aggregator, item, options)
                        in_flight[future] = item

                    if not in_flight:
                        break

                    done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                    for future in done:
                        item = in_flight.pop(future)
                        try:
                            future.result()
                        except BatchFatalError as e:
                            if fatal is None:
                                fatal = e
                                slog.error("batch_fatal_fault", token_id=item.token_id, error=str(e))

            if fatal is not None:
                status = BatchStatus.ABORTED
                fault: FaultKind | None = fatal.kind
            elif queue:
                status = BatchStatus.CANCELLED
                fault = FaultKind.BATCH_CANCELLED
            else:
                status = BatchStatus.COMPLETED
                fault = None

            progress = aggregator.finish(status)
            duration = self._clock.monotonic() - start
            span.set_attribute("batch.status", status.value)
            span.set_attribute("batch.completed", progress.completed)
            span.set_attribute("batch.failed", progress.failed)

            self._events.emit(
                BatchFinished(
                    batch_id=batch_id,
                    status=status,
                    total=progress.total,
                    completed=progress.completed,
                    failed=progress.failed,
                    duration_seconds=duration,
                    fault=fault,
                )
            )
            slog.info(
                "batch_finished",
                status=status.value,
                completed=progress.completed,
                failed=progress.failed,
                not_dispatched=len(queue),
                duration_seconds=round(duration, 3),
            )

        if fatal is not None:
            raise BatchAbortedError(progress, fatal) from fatal
        return progress

    def _execute_item(
        self,
        aggregator: ProgressAggregator,
        item: BridgeItem,
        options: BatchOptions,
    ) -> ExecutionOutcome:
        batch_id = aggregator.batch_id

        def report(target: BridgeItem, new_status: ItemStatus, **fields: Any) -> ItemSnapshot | None:
            snapshot = aggregator.apply_transition(target, new_status, **fields)
            if snapshot is not None:
                self._events.emit(
                    ItemTransitioned(
                        batch_id=batch_id,
                        token_id=snapshot.token_id,
                        status=snapshot.status,
                        transaction_hash=snapshot.transaction_hash,
                        error=snapshot.error,
                        fault=snapshot.fault,
                    )
                )
            return snapshot

        with structlog.contextvars.bound_contextvars(token_id=item.token_id):
            return self._executor.execute(item, report, timeout_seconds=options.per_item_timeout_seconds)


def _resolve_destination(item: BridgeItem, destination: DestinationSpec) -> DestinationContext:
    if isinstance(destination, DestinationContext):
        return destination
    if destination is not None:
        try:
            return destination[item.token_id]
        except KeyError:
            raise ValueError(f"No destination given for token {item.token_id}") from None
    if item.destination is None:
        raise ValueError(f"No destination given for token {item.token_id}")
    return item.destination
