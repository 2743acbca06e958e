"""All status codes, fault kinds and phases used across subsystem boundaries.

Item status is a closed set: every transition is checked against the table
in contracts/items.py, never by open string comparison.
"""

from enum import StrEnum


class ItemStatus(StrEnum):
    """Lifecycle status of a single bridge item.

    SUCCESS and FAILED are terminal. FAILED can only leave via an explicit
    retry, which resets the item to PENDING.
    """

    PENDING = "pending"
    APPROVING = "approving"
    BRIDGING = "bridging"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.SUCCESS, ItemStatus.FAILED)

    @property
    def is_in_flight(self) -> bool:
        return self in (ItemStatus.APPROVING, ItemStatus.BRIDGING)


class BatchStatus(StrEnum):
    """Status of a batch as a whole.

    Values:
        RUNNING: Items are still being dispatched or are in flight
        COMPLETED: Every item reached a terminal status
        CANCELLED: Dispatch stopped on a cancellation signal
        ABORTED: Dispatch stopped on a batch-fatal fault
    """

    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


class FaultKind(StrEnum):
    """Classified reason an item (or a batch) failed.

    Every per-item failure carries exactly one of these. CHAIN_UNAVAILABLE
    is batch-fatal: the in-flight item fails with it and dispatch stops.
    BATCH_CANCELLED never appears on an item; it describes a batch that
    stopped dispatching on request.
    """

    APPROVAL_REJECTED = "approval-rejected"
    APPROVAL_FAILED = "approval-failed"
    VALIDATION_FAILED = "validation-failed"
    SIMULATION_UNAVAILABLE = "simulation-unavailable"
    BRIDGE_SUBMISSION_FAILED = "bridge-submission-failed"
    BRIDGE_CONFIRMATION_TIMEOUT = "bridge-confirmation-timeout"
    NETWORK_MISMATCH = "network-mismatch"
    BATCH_CANCELLED = "batch-cancelled"
    CHAIN_UNAVAILABLE = "chain-unavailable"

    @property
    def retryable(self) -> bool:
        """Whether resubmitting the item later can reasonably succeed."""
        return self in _RETRYABLE_FAULTS


_RETRYABLE_FAULTS = frozenset(
    {
        FaultKind.APPROVAL_REJECTED,
        FaultKind.SIMULATION_UNAVAILABLE,
        FaultKind.BRIDGE_SUBMISSION_FAILED,
        FaultKind.BRIDGE_CONFIRMATION_TIMEOUT,
        FaultKind.NETWORK_MISMATCH,
        FaultKind.CHAIN_UNAVAILABLE,
    }
)


class ExecutionPhase(StrEnum):
    """Step of the executor protocol in which a fault was raised.

    Used by the fault classifier to pick the phase-appropriate FaultKind
    for exceptions that carry no classification of their own.
    """

    NETWORK_CHECK = "network_check"
    APPROVAL = "approval"
    SIMULATION = "simulation"
    SUBMISSION = "submission"
    CONFIRMATION = "confirmation"
