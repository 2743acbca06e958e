# src/bridgeline/engine/service.py
"""BridgeService - the entry point embedding applications call.

start_batch() returns immediately with a BatchHandle; the batch runs on a
background thread. The service remembers every item it has ever bridged,
which is what makes resubmission safe:

- a token id in a running batch is always rejected
- a token id that already succeeded is always rejected
- a token id that failed earlier is rejected unless the batch options set
  retry_failed_on_submit, in which case a copy of the item is reset with
  retry() and queued again (so it is validated again)

A batch never shares BridgeItem objects with another batch. The items of a
finished batch stay exactly as that batch left them, so its handle keeps
reporting the same progress after the token ids are resubmitted.
"""

from __future__ import annotations

import logging
import dataclasses
import threading
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from types import TracebackType

import structlog

from bridgeline.contracts.enums import ItemStatus
from bridgeline.contracts.errors import BatchConflictError
from bridgeline.contracts.items import BridgeItem, ItemSnapshot
from bridgeline.contracts.progress import BatchBridgeProgress
from bridgeline.contracts.protocols import ProgressObserver
from bridgeline.core.config import BatchOptions
from bridgeline.engine.aggregator import ProgressAggregator
from bridgeline.engine.orchestrator import BatchOrchestrator, DestinationSpec, new_batch_id

logger = logging.getLogger(__name__)
slog = structlog.get_logger(__name__)


class BatchHandle:
    """Reference to a batch started by BridgeService."""

    def __init__(
        self,
        aggregator: ProgressAggregator,
        future: Future[BatchBridgeProgress],
        cancel_event: threading.Event,
        options: BatchOptions,
    ) -> None:
        self._aggregator = aggregator
        self._future = future
        self._cancel_event = cancel_event
        self._options = options

    @property
    def batch_id(self) -> str:
        return self._aggregator.batch_id

    @property
    def options(self) -> BatchOptions:
        return self._options

    @property
    def cancelled(self) -> bool:
        """Whether cancellation was requested (the batch may still be draining)."""
        return self._cancel_event.is_set()

    def progress(self) -> BatchBridgeProgress:
        """Latest snapshot; safe to call at any time."""
        return self._aggregator.snapshot()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: float | None = None) -> BatchBridgeProgress:
        """Block until the batch stops and return its final snapshot.

        Raises:
            TimeoutError: If the batch is still running after ``timeout`` seconds
            BatchAbortedError: If a batch-fatal fault stopped the batch
        """
        return self._future.result(timeout=timeout)

    def __repr__(self) -> str:
        return f"BatchHandle(batch_id={self.batch_id!r}, done={self.done()})"


class BridgeService:
    """Starts, observes and cancels bridge batches.

    Example:
        with BridgeService(orchestrator) as service:
            handle = service.start_batch(["1", "2"], destination)
            service.subscribe(handle, render_progress)
            final = handle.result()
    """

    def __init__(self, orchestrator: BatchOrchestrator, *, max_parallel_batches: int = 4) -> None:
        """Initialize service.

        Args:
            orchestrator: Orchestrator running each batch
            max_parallel_batches: Background threads running batches
        """
        if max_parallel_batches < 1:
            raise ValueError(f"max_parallel_batches must be >= 1, got {max_parallel_batches}")
        self._orchestrator = orchestrator
        self._pool = ThreadPoolExecutor(max_workers=max_parallel_batches, thread_name_prefix="bridge-batch")
        self._lock = threading.Lock()
        self._items: dict[str, BridgeItem] = {}
        self._running: set[str] = set()
        self._handles: dict[str, BatchHandle] = {}

    def start_batch(
        self,
        token_ids: Sequence[str],
        destination: DestinationSpec,
        options: BatchOptions | None = None,
    ) -> BatchHandle:
        """Queue a batch and start it in the background.

        Args:
            token_ids: Token ids in dispatch order
            destination: One destination, or a token id -> destination mapping
            options: Batch options (defaults when omitted)

        Raises:
            BatchConflictError: If any token id cannot be queued; nothing
                is queued in that case
            ValueError: If a token id has no destination
        """
        options = options or BatchOptions()
        with self._lock:
            items = self._claim(list(token_ids), options)
            aggregator = self._orchestrator.prepare(items, destination, batch_id=new_batch_id())
            for item in items:
                self._items[item.token_id] = item
            self._running.update(item.token_id for item in items)

            cancel_event = threading.Event()
            future = self._pool.submit(self._run, aggregator, options, cancel_event)
            handle = BatchHandle(aggregator, future, cancel_event, options)
            self._handles[handle.batch_id] = handle

        slog.info("batch_queued", batch_id=handle.batch_id, total=len(items), concurrency=options.concurrency)
        return handle

    def cancel(self, handle: BatchHandle) -> None:
        """Stop dispatching new items; in-flight items still finish."""
        if not handle.done():
            slog.info("batch_cancel_requested", batch_id=handle.batch_id)
        handle._cancel_event.set()

    def subscribe(self, handle: BatchHandle, on_update: ProgressObserver) -> None:
        """Register an observer; it receives the current snapshot immediately."""
        handle._aggregator.subscribe(on_update)

    def retry_failed(self, handle: BatchHandle, options: BatchOptions | None = None) -> BatchHandle:
        """Resubmit the retryable failures of a finished batch as a new batch.

        Each item goes back to its previous destination.

        Raises:
            ValueError: If the batch is still running or has no retryable failures
            BatchConflictError: If an item was resubmitted elsewhere meanwhile
        """
        if not handle.done():
            raise ValueError(f"Batch {handle.batch_id} is still running")

        progress = handle.progress()
        token_ids = [
            entry.token_id
            for entry in progress.results
            if not entry.success and entry.fault is not None and entry.fault.retryable
        ]
        if not token_ids:
            raise ValueError(f"Batch {handle.batch_id} has no retryable failures")

        base = options or handle.options
        retry_options = base.model_copy(update={"retry_failed_on_submit": True})
        destinations = {}
        for token_id in token_ids:
            previous = progress.item(token_id).destination
            if previous is None:
                raise ValueError(f"No destination recorded for token {token_id}")
            destinations[token_id] = previous
        logger.info("Retrying %d failed items of batch %s", len(token_ids), handle.batch_id)
        return self.start_batch(token_ids, destinations, retry_options)

    def item(self, token_id: str) -> ItemSnapshot:
        """Latest known state of an item across all batches.

        Raises:
            KeyError: If the service never saw the token id
        """
        with self._lock:
            return self._items[token_id].snapshot()

    def handles(self) -> list[BatchHandle]:
        with self._lock:
            return list(self._handles.values())

    def shutdown(self, *, wait: bool = True, cancel_running: bool = False) -> None:
        """Stop accepting work; optionally cancel running batches."""
        if cancel_running:
            for handle in self.handles():
                self.cancel(handle)
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> BridgeService:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.shutdown(wait=True, cancel_running=exc_type is not None)

    def _claim(self, token_ids: list[str], options: BatchOptions) -> list[BridgeItem]:
        """Check every token id against the registry, then build the batch items.

        All conflicts are collected before anything is changed, and known
        items are copied rather than reset in place, so a rejected submission
        leaves the registry untouched. Caller holds the lock.
        """
        duplicates = sorted({t for t in token_ids if token_ids.count(t) > 1})
        if duplicates:
            raise BatchConflictError("Duplicate token ids in batch", duplicates)

        running = [t for t in token_ids if t in self._running]
        if running:
            raise BatchConflictError("Token ids already in a running batch", running)

        succeeded: list[str] = []
        failed: list[str] = []
        for token_id in token_ids:
            known = self._items.get(token_id)
            if known is None:
                continue
            if known.status == ItemStatus.SUCCESS:
                succeeded.append(token_id)
            elif known.status == ItemStatus.FAILED:
                failed.append(token_id)
        if succeeded:
            raise BatchConflictError("Token ids already bridged", succeeded)
        if failed and not options.retry_failed_on_submit:
            raise BatchConflictError(
                "Token ids failed in an earlier batch (set retry_failed_on_submit to re-queue them)", failed
            )

        items: list[BridgeItem] = []
        for token_id in token_ids:
            known = self._items.get(token_id)
            if known is not None and known.status == ItemStatus.FAILED:
                requeued = dataclasses.replace(known)
                requeued.retry()
                items.append(requeued)
            elif known is not None:
                # Never dispatched (its batch was cancelled or aborted first)
                items.append(dataclasses.replace(known))
            else:
                items.append(BridgeItem(token_id=token_id))
        return items

    def _run(
        self,
        aggregator: ProgressAggregator,
        options: BatchOptions,
        cancel_event: threading.Event,
    ) -> BatchBridgeProgress:
        try:
            return self._orchestrator.run(aggregator, options, cancel_event)
        finally:
            with self._lock:
                self._running.difference_update(item.token_id for item in aggregator.items)
