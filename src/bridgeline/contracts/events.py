"""Observability events for batch execution.

These domain events are emitted by the orchestrator on the event bus and
consumed by CLI formatters. They are separate from progress snapshots:
snapshots describe state, events describe what just happened.
"""

from dataclasses import dataclass

from bridgeline.contracts.enums import BatchStatus, FaultKind, ItemStatus


@dataclass(frozen=True, slots=True)
class BatchStarted:
    """Emitted once dispatch is about to begin.

    Attributes:
        batch_id: Identifier of the batch
        total: Number of items in the batch
        concurrency: Maximum items in flight at once
    """

    batch_id: str
    total: int
    concurrency: int


@dataclass(frozen=True, slots=True)
class ItemTransitioned:
    """Emitted after an item's status changed and progress was updated."""

    batch_id: str
    token_id: str
    status: ItemStatus
    transaction_hash: str | None = None
    error: str | None = None
    fault: FaultKind | None = None


@dataclass(frozen=True, slots=True)
class BatchFinished:
    """Emitted when a batch stops, whatever the reason.

    fault is set for CANCELLED (batch-cancelled) and ABORTED batches.
    """

    batch_id: str
    status: BatchStatus
    total: int
    completed: int
    failed: int
    duration_seconds: float
    fault: FaultKind | None = None
