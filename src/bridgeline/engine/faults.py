# src/bridgeline/engine/faults.py
"""Fault classification.

Chain capabilities raise whatever their transport raises. The executor
hands every exception caught at its boundary to classify_fault(), which
maps it onto exactly one FaultKind so a failed item is always explained by
the taxonomy and never by an unclassified exception.

Order of precedence:
1. Already-classified BridgeFault: kept as-is
2. User rejection (EIP-1193 code 4001, "user rejected", "user denied")
3. Network switched under the wallet ("network changed")
4. Timeouts: the timeout kind of the phase (an awaited approval,
   submission or confirmation times out as bridge-confirmation-timeout)
5. Simulation infrastructure errors
6. The phase default
"""

from bridgeline.contracts.enums import ExecutionPhase, FaultKind
from bridgeline.contracts.errors import (
    BridgeFault,
    ChainError,
    ChainTimeoutError,
    SimulationUnavailableError,
)

_USER_REJECTION_CODES = frozenset({4001, "4001", "ACTION_REJECTED"})
_USER_REJECTION_MARKERS = ("user rejected", "user denied", "rejected by user")
_NETWORK_CHANGED_MARKERS = ("network changed", "chain changed", "chainid mismatch")

_PHASE_DEFAULTS: dict[ExecutionPhase, FaultKind] = {
    ExecutionPhase.NETWORK_CHECK: FaultKind.NETWORK_MISMATCH,
    ExecutionPhase.APPROVAL: FaultKind.APPROVAL_FAILED,
    ExecutionPhase.SIMULATION: FaultKind.SIMULATION_UNAVAILABLE,
    ExecutionPhase.SUBMISSION: FaultKind.BRIDGE_SUBMISSION_FAILED,
    ExecutionPhase.CONFIRMATION: FaultKind.BRIDGE_SUBMISSION_FAILED,
}

_PHASE_TIMEOUTS: dict[ExecutionPhase, FaultKind] = {
    ExecutionPhase.NETWORK_CHECK: FaultKind.NETWORK_MISMATCH,
    ExecutionPhase.APPROVAL: FaultKind.BRIDGE_CONFIRMATION_TIMEOUT,
    ExecutionPhase.SIMULATION: FaultKind.SIMULATION_UNAVAILABLE,
    ExecutionPhase.SUBMISSION: FaultKind.BRIDGE_CONFIRMATION_TIMEOUT,
    ExecutionPhase.CONFIRMATION: FaultKind.BRIDGE_CONFIRMATION_TIMEOUT,
}


def _is_user_rejection(exc: BaseException, message: str) -> bool:
    code = exc.code if isinstance(exc, ChainError) else None
    if code in _USER_REJECTION_CODES:
        return True
    return any(marker in message for marker in _USER_REJECTION_MARKERS)


def _describe(exc: BaseException) -> str:
    text = str(exc)
    return text if text else type(exc).__name__


def classify_fault(exc: BaseException, phase: ExecutionPhase) -> BridgeFault:
    """Map an exception raised during ``phase`` onto a classified fault.

    The returned fault has the original exception as its __cause__.
    """
    if isinstance(exc, BridgeFault):
        return exc

    message = _describe(exc)
    lowered = message.lower()

    if _is_user_rejection(exc, lowered):
        kind = FaultKind.APPROVAL_REJECTED if phase == ExecutionPhase.APPROVAL else FaultKind.BRIDGE_SUBMISSION_FAILED
        message = f"rejected by user: {message}"
    elif any(marker in lowered for marker in _NETWORK_CHANGED_MARKERS):
        kind = FaultKind.NETWORK_MISMATCH
    elif isinstance(exc, ChainTimeoutError | TimeoutError):
        kind = _PHASE_TIMEOUTS[phase]
        message = f"{phase.value} timed out: {message}"
    elif isinstance(exc, SimulationUnavailableError):
        kind = FaultKind.SIMULATION_UNAVAILABLE
    else:
        kind = _PHASE_DEFAULTS[phase]

    fault = BridgeFault(message, kind=kind)
    fault.__cause__ = exc
    return fault
