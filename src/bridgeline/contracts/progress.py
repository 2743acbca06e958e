"""Batch progress snapshots.

BatchBridgeProgress is what observers receive. It is frozen and built from
tuples, so a snapshot never aliases the aggregator's mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass

from bridgeline.contracts.enums import BatchStatus, FaultKind
from bridgeline.contracts.items import ItemSnapshot


@dataclass(frozen=True, slots=True)
class BridgeResultEntry:
    """Terminal outcome of one item, appended when the item finishes."""

    token_id: str
    success: bool
    transaction_hash: str | None = None
    guid: str | None = None
    error: str | None = None
    fault: FaultKind | None = None


@dataclass(frozen=True, slots=True)
class BatchBridgeProgress:
    """Immutable progress snapshot for one batch.

    Invariants (checked by the aggregator before publishing):
    - completed + failed <= total
    - len(results) == completed + failed
    - no token_id appears twice in results

    Attributes:
        batch_id: Identifier of the batch
        total: Number of items in the batch, fixed at creation
        completed: Items that reached SUCCESS
        failed: Items that reached FAILED
        current: The in-flight item that transitioned most recently, or None
        results: Terminal outcomes in the order items finished
        items: Every item in input order
        status: Batch status
    """

    batch_id: str
    total: int
    completed: int = 0
    failed: int = 0
    current: ItemSnapshot | None = None
    results: tuple[BridgeResultEntry, ...] = ()
    items: tuple[ItemSnapshot, ...] = ()
    status: BatchStatus = BatchStatus.RUNNING

    @property
    def pending(self) -> int:
        """Items not yet terminal (queued or in flight)."""
        return self.total - self.completed - self.failed

    @property
    def finished(self) -> bool:
        return self.status != BatchStatus.RUNNING

    @property
    def succeeded_ids(self) -> tuple[str, ...]:
        return tuple(r.token_id for r in self.results if r.success)

    @property
    def failed_ids(self) -> tuple[str, ...]:
        return tuple(r.token_id for r in self.results if not r.success)

    def item(self, token_id: str) -> ItemSnapshot:
        """Look up one item's snapshot.

        Raises:
            KeyError: If token_id is not part of this batch.
        """
        for snapshot in self.items:
            if snapshot.token_id == token_id:
                return snapshot
        raise KeyError(token_id)
