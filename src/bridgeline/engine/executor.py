# src/bridgeline/engine/executor.py
"""BridgeExecutor - drives one item through approve, validate and bridge.

Protocol for one item, in order:
1. report APPROVING, check the wallet is on the source chain
2. approve the bridge contract for the token (or reuse an existing approval)
3. run the PreCrime gate; a negative verdict fails the item here
4. re-check the network, report BRIDGING, submit, attach the tx hash
5. await confirmation, report SUCCESS with the message GUID

Every status change goes through the ``report`` callback, which the
orchestrator wires to the progress aggregator. The executor never mutates
an item directly.

Fault boundary: every per-item exception is classified into a FaultKind
and turned into a FAILED item; it never escapes execute(). The exceptions
are:
- BatchFatalError: the item is failed with chain-unavailable, then the
  error is re-raised so the orchestrator can stop dispatching
- IllegalTransitionError / OrchestrationInvariantError: engine bugs,
  re-raised unchanged

The executor never retries. Retrying a failed item is a batch-level
decision made by the service.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from bridgeline.contracts.chain import ApprovalReceipt
from bridgeline.contracts.enums import ExecutionPhase, FaultKind, ItemStatus
from bridgeline.contracts.errors import (
    ApprovalFailedError,
    BatchFatalError,
    BridgeFault,
    BridgeSubmissionError,
    ChainTimeoutError,
    IllegalTransitionError,
    NetworkMismatchError,
    OrchestrationInvariantError,
    ValidationFailedError,
)
from bridgeline.contracts.items import BridgeItem, ItemSnapshot
from bridgeline.contracts.validation import PreCrimeValidationResult
from bridgeline.engine.clock import DEFAULT_CLOCK, Clock, Deadline
from bridgeline.engine.faults import classify_fault
from bridgeline.engine.spans import SpanFactory

if TYPE_CHECKING:
    from bridgeline.contracts.protocols import ChainClient, WalletSession
    from bridgeline.engine.gate import PreCrimeGate

logger = logging.getLogger(__name__)
slog = structlog.get_logger(__name__)


TransitionReporter = Callable[..., ItemSnapshot | None]
"""report(item, new_status, **fields): applies one transition through the aggregator.

Returns the item snapshot, or None when the transition was ignored.
"""


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """Terminal result of executing one item."""

    token_id: str
    success: bool
    transaction_hash: str | None = None
    guid: str | None = None
    error: str | None = None
    fault: FaultKind | None = None

    @classmethod
    def from_item(cls, item: BridgeItem) -> ExecutionOutcome:
        return cls(
            token_id=item.token_id,
            success=item.status == ItemStatus.SUCCESS,
            transaction_hash=item.transaction_hash,
            guid=item.guid,
            error=item.error,
            fault=item.fault,
        )


class BridgeExecutor:
    """Executes the approve and bridge protocol for single items.

    Stateless between items: one executor is shared by every worker thread
    of a batch.

    Example:
        executor = BridgeExecutor(chain, wallet, gate, source_chain_id=1)
        outcome = executor.execute(item, aggregator.apply_transition, timeout_seconds=600.0)
    """

    def __init__(
        self,
        chain: ChainClient,
        wallet: WalletSession,
        gate: PreCrimeGate,
        *,
        source_chain_id: int,
        clock: Clock | None = None,
        span_factory: SpanFactory | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            chain: Chain-interaction capability for the source chain
            wallet: Signing session; its active chain is checked before each commit
            gate: PreCrime gate consulted before bridging
            source_chain_id: Chain id every item is bridged from
            clock: Clock measuring the per-item budget (default: system clock)
            span_factory: Span factory for tracing
        """
        self._chain = chain
        self._wallet = wallet
        self._gate = gate
        self._source_chain_id = source_chain_id
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._spans = span_factory or SpanFactory()

    def execute(
        self,
        item: BridgeItem,
        report: TransitionReporter,
        *,
        timeout_seconds: float,
    ) -> ExecutionOutcome:
        """Run the protocol for one PENDING item until it is terminal.

        Args:
            item: Item to bridge; must be PENDING and carry a destination
            report: Transition callback (the aggregator's entry point)
            timeout_seconds: Budget shared by all awaited chain calls

        Returns:
            ExecutionOutcome mirroring the terminal item

        Raises:
            BatchFatalError: After the item was failed with chain-unavailable
        """
        destination = item.destination
        if destination is None:
            raise OrchestrationInvariantError(f"Item {item.token_id} has no destination")

        deadline = Deadline(self._clock, timeout_seconds)
        token_id = item.token_id
        phase = ExecutionPhase.NETWORK_CHECK

        with self._spans.item_span(token_id, attempt=item.attempt, destination=destination.name) as span:
            report(item, ItemStatus.APPROVING)
            try:
                self._check_network()

                phase = ExecutionPhase.APPROVAL
                receipt = self._approve(token_id, deadline)

                phase = ExecutionPhase.SIMULATION
                verdict = self._gate.validate(item, destination, timeout=self._remaining(deadline, phase))
                if not verdict.passed:
                    return self._reject(item, report, verdict)

                phase = ExecutionPhase.NETWORK_CHECK
                self._check_network()
                report(item, ItemStatus.BRIDGING, approval=receipt, pre_crime_result=verdict)

                phase = ExecutionPhase.SUBMISSION
                with self._spans.chain_span("submit_bridge", token_id):
                    submission = self._chain.submit_bridge(
                        token_id, destination, timeout=self._remaining(deadline, phase)
                    )
                report(item, ItemStatus.BRIDGING, transaction_hash=submission.transaction_hash)
                slog.info(
                    "bridge_submitted",
                    token_id=token_id,
                    destination=destination.name,
                    transaction_hash=submission.transaction_hash,
                )

                phase = ExecutionPhase.CONFIRMATION
                with self._spans.chain_span("await_confirmation", token_id):
                    confirmation = self._chain.await_confirmation(
                        submission.transaction_hash, timeout=self._remaining(deadline, phase)
                    )
                if confirmation.reverted:
                    raise BridgeSubmissionError(f"bridge transaction {confirmation.transaction_hash} reverted")
                report(item, ItemStatus.SUCCESS, guid=confirmation.guid)

            except (IllegalTransitionError, OrchestrationInvariantError):
                raise
            except BatchFatalError as e:
                fault = BridgeFault(f"chain unavailable during {phase.value}: {e}", kind=e.kind)
                fault.__cause__ = e
                self._fail(item, report, fault, phase)
                span.set_attribute("item.status", item.status.value)
                raise
            except Exception as e:
                self._fail(item, report, classify_fault(e, phase), phase)

            span.set_attribute("item.status", item.status.value)

        if item.status == ItemStatus.SUCCESS:
            slog.info("item_succeeded", token_id=token_id, transaction_hash=item.transaction_hash, guid=item.guid)
        return ExecutionOutcome.from_item(item)

    def _check_network(self) -> None:
        actual = self._wallet.active_chain_id()
        if actual != self._source_chain_id:
            raise NetworkMismatchError(self._source_chain_id, actual)

    def _approve(self, token_id: str, deadline: Deadline) -> ApprovalReceipt:
        with self._spans.chain_span("needs_approval", token_id):
            required = self._chain.needs_approval(token_id)
        if not required:
            logger.debug("Token %s already approved for bridging", token_id)
            return ApprovalReceipt.not_required(token_id)

        with self._spans.chain_span("submit_approval", token_id):
            receipt = self._chain.submit_approval(
                token_id, timeout=self._remaining(deadline, ExecutionPhase.APPROVAL)
            )
        if receipt.reverted:
            raise ApprovalFailedError(f"approval transaction {receipt.transaction_hash or '<unknown>'} reverted")
        slog.debug("approval_confirmed", token_id=token_id, transaction_hash=receipt.transaction_hash)
        return receipt

    @staticmethod
    def _remaining(deadline: Deadline, phase: ExecutionPhase) -> float:
        remaining = deadline.remaining()
        if remaining <= 0.0:
            raise ChainTimeoutError(f"per-item budget of {deadline.budget_seconds:g}s exhausted before {phase.value}")
        return remaining

    def _reject(
        self,
        item: BridgeItem,
        report: TransitionReporter,
        verdict: PreCrimeValidationResult,
    ) -> ExecutionOutcome:
        """Fail an item whose PreCrime verdict did not pass, keeping the verdict for inspection."""
        error = verdict.error or "PreCrime validation failed"
        if verdict.unavailable:
            fault = BridgeFault(error, kind=FaultKind.SIMULATION_UNAVAILABLE)
        else:
            fault = ValidationFailedError(error)
        report(item, ItemStatus.FAILED, error=str(fault), fault=fault.kind, pre_crime_result=verdict)
        slog.warning("item_failed", token_id=item.token_id, phase=ExecutionPhase.SIMULATION.value, **fault.to_record())
        return ExecutionOutcome.from_item(item)

    @staticmethod
    def _fail(
        item: BridgeItem,
        report: TransitionReporter,
        fault: BridgeFault,
        phase: ExecutionPhase,
    ) -> None:
        report(item, ItemStatus.FAILED, error=str(fault), fault=fault.kind)
        slog.warning("item_failed", token_id=item.token_id, phase=phase.value, **fault.to_record())
