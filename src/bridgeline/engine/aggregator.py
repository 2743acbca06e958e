# src/bridgeline/engine/aggregator.py
"""ProgressAggregator - the single source of truth for batch progress.

apply_transition() is the only way an item's status changes while a batch
runs. Under one re-entrant lock it:
1. applies the item's state-machine transition
2. recomputes ``current`` (the in-flight item that moved most recently)
3. counts a terminal item exactly once and appends its result
4. checks the batch invariants
5. delivers an immutable snapshot to every observer

Holding the lock across delivery makes deliveries strictly ordered and
never concurrent, so an observer sees counters that only move forward.
Observers must not block for long: every worker thread waits on them.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from threading import RLock
from typing import Any

import structlog

from bridgeline.contracts.enums import BatchStatus, ItemStatus
from bridgeline.contracts.errors import OrchestrationInvariantError
from bridgeline.contracts.items import BridgeItem, ItemSnapshot
from bridgeline.contracts.progress import BatchBridgeProgress, BridgeResultEntry
from bridgeline.contracts.protocols import ProgressObserver

logger = logging.getLogger(__name__)
slog = structlog.get_logger(__name__)


class ProgressAggregator:
    """Owns the mutable progress state of one batch.

    Example:
        aggregator = ProgressAggregator("batch-001", items)
        aggregator.subscribe(lambda progress: print(progress.completed, progress.total))
        aggregator.apply_transition(items[0], ItemStatus.APPROVING)
    """

    def __init__(
        self,
        batch_id: str,
        items: Sequence[BridgeItem],
        observers: Sequence[ProgressObserver] = (),
    ) -> None:
        self._batch_id = batch_id
        self._items = list(items)
        self._by_id = {item.token_id: item for item in self._items}
        if len(self._by_id) != len(self._items):
            raise OrchestrationInvariantError(f"Batch {batch_id} contains duplicate token ids")

        self._lock = RLock()
        self._observers: list[ProgressObserver] = list(observers)
        self._completed = 0
        self._failed = 0
        self._results: list[BridgeResultEntry] = []
        self._recorded: set[str] = set()
        # Insertion order tracks recency; the last key is ``current``
        self._in_flight: dict[str, None] = {}
        self._status = BatchStatus.RUNNING

    @property
    def batch_id(self) -> str:
        return self._batch_id

    @property
    def items(self) -> list[BridgeItem]:
        """Items in input order. Mutate them only through apply_transition()."""
        return list(self._items)

    @property
    def total(self) -> int:
        return len(self._items)

    def subscribe(self, observer: ProgressObserver) -> None:
        """Register an observer and hand it the current snapshot immediately."""
        with self._lock:
            self._observers.append(observer)
            self._deliver(observer, self._build_snapshot())

    def snapshot(self) -> BatchBridgeProgress:
        with self._lock:
            return self._build_snapshot()

    def apply_transition(self, item: BridgeItem, new_status: ItemStatus, **fields: Any) -> ItemSnapshot | None:
        """Apply one item transition and publish the resulting progress.

        Args:
            item: An item of this batch
            new_status: Requested status
            **fields: Payload for BridgeItem.transition()

        Returns:
            The item's snapshot, or None when the event was ignored (a
            duplicate terminal event, or re-attaching the same tx hash)

        Raises:
            IllegalTransitionError: If the state machine rejects the transition
            OrchestrationInvariantError: If the item is foreign to this batch
                or a batch invariant would break
        """
        with self._lock:
            if self._by_id.get(item.token_id) is not item:
                raise OrchestrationInvariantError(f"Item {item.token_id} is not part of batch {self._batch_id}")
            if self._status != BatchStatus.RUNNING:
                raise OrchestrationInvariantError(
                    f"Batch {self._batch_id} is {self._status}; cannot move {item.token_id} to {new_status}"
                )

            if new_status.is_terminal and item.token_id in self._recorded:
                slog.warning(
                    "duplicate_terminal_event_ignored",
                    batch_id=self._batch_id,
                    token_id=item.token_id,
                    recorded_status=item.status.value,
                    requested_status=new_status.value,
                )
                return None

            if not item.transition(new_status, **fields):
                return None

            if new_status.is_in_flight:
                self._in_flight.pop(item.token_id, None)
                self._in_flight[item.token_id] = None
            else:
                self._in_flight.pop(item.token_id, None)

            if new_status.is_terminal:
                self._record_terminal(item)

            progress = self._build_snapshot()
            self._check_invariants(progress)
            self._publish(progress)
            return item.snapshot()

    def finish(self, status: BatchStatus) -> BatchBridgeProgress:
        """Set the final batch status and publish one last snapshot.

        Raises:
            OrchestrationInvariantError: If the batch already finished, an
                item is still in flight, or COMPLETED is claimed with
                items left pending
        """
        if status == BatchStatus.RUNNING:
            raise ValueError("finish() requires a final status")
        with self._lock:
            if self._status != BatchStatus.RUNNING:
                raise OrchestrationInvariantError(f"Batch {self._batch_id} already finished as {self._status}")
            if self._in_flight:
                raise OrchestrationInvariantError(
                    f"Batch {self._batch_id} cannot finish with items in flight: {', '.join(self._in_flight)}"
                )
            if status == BatchStatus.COMPLETED and len(self._recorded) != self.total:
                raise OrchestrationInvariantError(
                    f"Batch {self._batch_id} cannot complete: {self.total - len(self._recorded)} items never ran"
                )
            self._status = status
            progress = self._build_snapshot()
            self._publish(progress)
            return progress

    def _record_terminal(self, item: BridgeItem) -> None:
        self._recorded.add(item.token_id)
        success = item.status == ItemStatus.SUCCESS
        if success:
            self._completed += 1
        else:
            self._failed += 1
        self._results.append(
            BridgeResultEntry(
                token_id=item.token_id,
                success=success,
                transaction_hash=item.transaction_hash,
                guid=item.guid,
                error=item.error,
                fault=item.fault,
            )
        )

    def _build_snapshot(self) -> BatchBridgeProgress:
        current = None
        if self._in_flight:
            current = self._by_id[next(reversed(self._in_flight))].snapshot()
        return BatchBridgeProgress(
            batch_id=self._batch_id,
            total=self.total,
            completed=self._completed,
            failed=self._failed,
            current=current,
            results=tuple(self._results),
            items=tuple(item.snapshot() for item in self._items),
            status=self._status,
        )

    def _check_invariants(self, progress: BatchBridgeProgress) -> None:
        finished = progress.completed + progress.failed
        if finished > progress.total:
            raise OrchestrationInvariantError(
                f"Batch {self._batch_id}: completed + failed ({finished}) exceeds total ({progress.total})"
            )
        if len(progress.results) != finished:
            raise OrchestrationInvariantError(
                f"Batch {self._batch_id}: {len(progress.results)} results for {finished} terminal items"
            )

    def _publish(self, progress: BatchBridgeProgress) -> None:
        for observer in list(self._observers):
            self._deliver(observer, progress)

    def _deliver(self, observer: ProgressObserver, progress: BatchBridgeProgress) -> None:
        try:
            observer(progress)
        except Exception:
            # A broken observer must never affect the batch
            logger.exception("Progress observer %r failed for batch %s", observer, self._batch_id)
