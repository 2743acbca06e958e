"""Shared contracts for cross-boundary data types.

All dataclasses, enums, protocols and exceptions that cross subsystem
boundaries are defined here.

This package is a LEAF MODULE with no outbound dependencies to core/engine.
Settings classes (BatchOptions, BridgeSettings, ...) are NOT re-exported
here - import them from bridgeline.core.config.
"""

from bridgeline.contracts.chain import (
    ApprovalReceipt,
    BridgeSubmission,
    Confirmation,
    DestinationContext,
    SimulationTrace,
)
from bridgeline.contracts.enums import BatchStatus, ExecutionPhase, FaultKind, ItemStatus
from bridgeline.contracts.errors import (
    ApprovalFailedError,
    ApprovalRejectedError,
    BatchAbortedError,
    BatchConflictError,
    BatchFatalError,
    BridgeFault,
    BridgeSubmissionError,
    ChainError,
    ChainTimeoutError,
    ChainUnavailableError,
    ConfirmationTimeoutError,
    FaultRecord,
    IllegalTransitionError,
    NetworkMismatchError,
    OrchestrationInvariantError,
    SimulationUnavailableError,
    ValidationFailedError,
)
from bridgeline.contracts.events import BatchFinished, BatchStarted, ItemTransitioned
from bridgeline.contracts.items import ALLOWED_TRANSITIONS, BridgeItem, ItemSnapshot
from bridgeline.contracts.progress import BatchBridgeProgress, BridgeResultEntry
from bridgeline.contracts.protocols import ChainClient, ProgressObserver, WalletSession
from bridgeline.contracts.validation import SIMULATION_UNAVAILABLE, PreCrimeValidationResult

__all__ = [
    "ALLOWED_TRANSITIONS",
    "SIMULATION_UNAVAILABLE",
    "ApprovalFailedError",
    "ApprovalReceipt",
    "ApprovalRejectedError",
    "BatchAbortedError",
    "BatchBridgeProgress",
    "BatchConflictError",
    "BatchFatalError",
    "BatchFinished",
    "BatchStarted",
    "BatchStatus",
    "BridgeFault",
    "BridgeItem",
    "BridgeResultEntry",
    "BridgeSubmission",
    "BridgeSubmissionError",
    "ChainClient",
    "ChainError",
    "ChainTimeoutError",
    "ChainUnavailableError",
    "Confirmation",
    "ConfirmationTimeoutError",
    "DestinationContext",
    "ExecutionPhase",
    "FaultKind",
    "FaultRecord",
    "IllegalTransitionError",
    "ItemSnapshot",
    "ItemStatus",
    "ItemTransitioned",
    "NetworkMismatchError",
    "OrchestrationInvariantError",
    "PreCrimeValidationResult",
    "ProgressObserver",
    "SimulationTrace",
    "SimulationUnavailableError",
    "ValidationFailedError",
    "WalletSession",
]
