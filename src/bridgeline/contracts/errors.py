"""Error and fault schema contracts.

Exception types raised across the chain-capability / executor /
orchestrator boundaries, plus TypedDict payloads for structured fault
records in logs and events.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NotRequired, TypedDict

from bridgeline.contracts.enums import FaultKind

if TYPE_CHECKING:
    from bridgeline.contracts.progress import BatchBridgeProgress


class FaultRecord(TypedDict):
    """Schema for a classified per-item fault.

    Emitted in structured logs and ItemTransitioned events when an item fails.
    """

    kind: str  # FaultKind value, e.g. "validation-failed"
    message: str  # Human-readable failure reason
    retryable: bool
    exception_type: NotRequired[str]  # Class name of the underlying exception


# =============================================================================
# Raw capability errors
# =============================================================================


class ChainError(Exception):
    """Raised by a chain capability when a call fails.

    Carries the provider error code (EIP-1193 style, e.g. 4001 for a user
    rejection) when one is available. The executor classifies these into
    a FaultKind based on the phase in which they were raised.
    """

    def __init__(self, message: str, *, code: int | str | None = None) -> None:
        self.code = code
        super().__init__(message)


class ChainTimeoutError(ChainError):
    """Raised when an awaited chain operation exceeds its timeout."""


class SimulationUnavailableError(ChainError):
    """Raised when the forked-simulation infrastructure cannot be reached."""


# =============================================================================
# Classified per-item faults
# =============================================================================


class BridgeFault(Exception):
    """A per-item fault already classified into the fault taxonomy.

    Capabilities may raise subclasses directly when they know the exact
    kind (e.g. a wallet reporting the user declined). Everything else is
    classified by the executor.
    """

    kind: FaultKind = FaultKind.BRIDGE_SUBMISSION_FAILED

    def __init__(self, message: str, *, kind: FaultKind | None = None) -> None:
        if kind is not None:
            self.kind = kind
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def to_record(self) -> FaultRecord:
        record: FaultRecord = {
            "kind": self.kind.value,
            "message": str(self),
            "retryable": self.retryable,
        }
        if self.__cause__ is not None:
            record["exception_type"] = type(self.__cause__).__name__
        return record


class ApprovalRejectedError(BridgeFault):
    """The user or wallet declined the approval transaction."""

    kind = FaultKind.APPROVAL_REJECTED


class ApprovalFailedError(BridgeFault):
    """The approval transaction reverted on chain."""

    kind = FaultKind.APPROVAL_FAILED


class ValidationFailedError(BridgeFault):
    """The PreCrime verdict for the item was negative."""

    kind = FaultKind.VALIDATION_FAILED


class BridgeSubmissionError(BridgeFault):
    """The bridge transaction could not be submitted or reverted."""

    kind = FaultKind.BRIDGE_SUBMISSION_FAILED


class ConfirmationTimeoutError(BridgeFault):
    """The bridge transaction was not confirmed within the item's timeout.

    The transaction may still confirm later; the item stays failed.
    """

    kind = FaultKind.BRIDGE_CONFIRMATION_TIMEOUT


class NetworkMismatchError(BridgeFault):
    """The wallet's active chain is not the batch's source chain."""

    kind = FaultKind.NETWORK_MISMATCH

    def __init__(self, expected_chain_id: int, actual_chain_id: int) -> None:
        self.expected_chain_id = expected_chain_id
        self.actual_chain_id = actual_chain_id
        super().__init__(f"active network changed: expected chain {expected_chain_id}, wallet is on chain {actual_chain_id}")


# =============================================================================
# Batch-level faults
# =============================================================================


class BatchFatalError(Exception):
    """A fault that makes further dispatch in the batch pointless.

    The orchestrator stops dispatching new items, lets in-flight items reach
    a terminal status, then raises BatchAbortedError.
    """

    kind: FaultKind = FaultKind.CHAIN_UNAVAILABLE


class ChainUnavailableError(BatchFatalError):
    """The chain-interaction capability is lost entirely."""


class BatchAbortedError(Exception):
    """Raised by the orchestrator when a batch-fatal fault stopped the batch.

    Attributes:
        progress: Final snapshot; already-terminal results are intact
        cause: The batch-fatal fault that stopped dispatch
    """

    def __init__(self, progress: BatchBridgeProgress, cause: BatchFatalError) -> None:
        self.progress = progress
        self.cause = cause
        super().__init__(
            f"Batch {progress.batch_id} aborted after {progress.completed + progress.failed}/{progress.total} items: {cause}"
        )


class BatchConflictError(ValueError):
    """Raised when a submission contains token ids that cannot be queued."""

    def __init__(self, message: str, token_ids: list[str]) -> None:
        self.token_ids = token_ids
        super().__init__(f"{message}: {', '.join(token_ids)}")


# =============================================================================
# Programming errors
# =============================================================================


class IllegalTransitionError(Exception):
    """Raised when a status transition violates the item state machine."""

    def __init__(self, token_id: str, current: str, requested: str, reason: str | None = None) -> None:
        self.token_id = token_id
        self.current = current
        self.requested = requested
        message = f"Item {token_id}: illegal transition {current} -> {requested}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class OrchestrationInvariantError(Exception):
    """Raised when aggregate progress would violate a batch invariant.

    Indicates a bug in the engine, never a chain or user condition.
    """
