# src/bridgeline/engine/gate.py
"""PreCrimeGate - validates an item against a forked destination chain.

The gate asks the chain capability to simulate the item's delivery on a
fork of the destination chain and turns the raw trace into a
PreCrimeValidationResult. It never mutates chain state and keeps no state
of its own, so validating the same item against an unchanged destination
yields the same verdict.

Determinism caveat: the fork is taken at the destination's latest block,
so two validations straddling a block that changes relevant state (peer
configuration, token ownership, paused contracts) can disagree. That is
accepted; the verdict always reflects the state at simulation time.

Fail-closed policy: when the simulation cannot run (infrastructure down,
timeout) the verdict is is_valid=False, success=False with an error
starting "simulation unavailable". An inconclusive simulation is never
treated as a pass.
"""

import logging

import structlog

from bridgeline.contracts.chain import DestinationContext, SimulationTrace
from bridgeline.contracts.errors import ChainError, ChainTimeoutError, SimulationUnavailableError
from bridgeline.contracts.items import BridgeItem
from bridgeline.contracts.protocols import ChainClient
from bridgeline.contracts.validation import PreCrimeValidationResult
from bridgeline.engine.retry import MaxRetriesExceeded, RetryConfig, RetryManager
from bridgeline.engine.spans import SpanFactory

logger = logging.getLogger(__name__)
slog = structlog.get_logger(__name__)

# Errors that mean "the simulator could not answer", as opposed to a verdict
_INFRASTRUCTURE_ERRORS: tuple[type[BaseException], ...] = (
    SimulationUnavailableError,
    ChainTimeoutError,
    TimeoutError,
    ConnectionError,
)

DEFAULT_SIMULATION_TIMEOUT = 60.0


def _is_infrastructure_error(error: BaseException) -> bool:
    return isinstance(error, _INFRASTRUCTURE_ERRORS)


class PreCrimeGate:
    """Runs forked simulations and interprets their traces.

    Example:
        gate = PreCrimeGate(chain, retry_config=RetryConfig.no_retry())
        verdict = gate.validate(item, destination, timeout=30.0)
        if not verdict.passed:
            ...
    """

    def __init__(
        self,
        chain: ChainClient,
        *,
        retry_config: RetryConfig | None = None,
        gas_warning_ratio: float = 0.9,
        span_factory: SpanFactory | None = None,
        retry_manager: RetryManager | None = None,
    ) -> None:
        """Initialize gate.

        Args:
            chain: Capability providing forked_simulate()
            retry_config: Attempts for the simulation call (default: single attempt)
            gas_warning_ratio: Share of the gas limit above which a warning is added
            span_factory: Span factory for tracing
            retry_manager: Prebuilt manager (overrides retry_config; tests inject one with a no-op sleep)
        """
        self._chain = chain
        self._retry = retry_manager or RetryManager(retry_config or RetryConfig.no_retry())
        self._gas_warning_ratio = gas_warning_ratio
        self._spans = span_factory or SpanFactory()

    def validate(
        self,
        item: BridgeItem,
        destination: DestinationContext,
        *,
        timeout: float = DEFAULT_SIMULATION_TIMEOUT,
    ) -> PreCrimeValidationResult:
        """Simulate the item's transfer on the destination fork and return a verdict.

        Infrastructure faults become a fail-closed verdict. Any other
        ChainError raised by the simulator is treated the same way: the
        simulation did not produce a trace, so nothing can be said to pass.
        """
        token_id = item.token_id

        def on_retry(attempt: int, error: BaseException) -> None:
            slog.warning(
                "simulation_retry",
                token_id=token_id,
                destination=destination.name,
                attempt=attempt,
                error=str(error),
            )

        with self._spans.gate_span(token_id) as span:
            try:
                trace = self._retry.execute_with_retry(
                    lambda: self._simulate(token_id, destination, timeout),
                    is_retryable=_is_infrastructure_error,
                    on_retry=on_retry,
                )
            except MaxRetriesExceeded as e:
                verdict = PreCrimeValidationResult.unavailable_because(str(e.last_error) or type(e.last_error).__name__)
            except (ChainError, *_INFRASTRUCTURE_ERRORS) as e:
                verdict = PreCrimeValidationResult.unavailable_because(str(e) or type(e).__name__)
            else:
                verdict = self.interpret(trace)

            span.set_attribute("gate.is_valid", verdict.is_valid)
            span.set_attribute("gate.success", verdict.success)

        if verdict.passed:
            slog.info("precrime_passed", token_id=token_id, destination=destination.name, warnings=list(verdict.warnings))
        else:
            slog.warning("precrime_rejected", token_id=token_id, destination=destination.name, error=verdict.error)
        return verdict

    def _simulate(self, token_id: str, destination: DestinationContext, timeout: float) -> SimulationTrace:
        with self._spans.chain_span("forked_simulate", token_id):
            return self._chain.forked_simulate(token_id, destination, timeout=timeout)

    def interpret(self, trace: SimulationTrace) -> PreCrimeValidationResult:
        """Turn a raw simulation trace into a verdict.

        is_valid: no revert and no protocol-invariant violation.
        success: the return path reports success and nothing reverted.
        """
        warnings = list(trace.warnings)
        if trace.gas_used is not None and trace.gas_limit:
            ratio = trace.gas_used / trace.gas_limit
            if ratio > self._gas_warning_ratio:
                warnings.append(
                    f"simulated receive used {trace.gas_used} of {trace.gas_limit} gas ({ratio:.0%}); "
                    "delivery may run out of gas if destination state changes"
                )

        is_valid = not trace.reverted and not trace.violations
        success = trace.return_success and not trace.reverted
        if is_valid and success:
            return PreCrimeValidationResult.passed_with(warnings=warnings, simulation_result=trace.output)

        if trace.reverted:
            error = f"revert: {trace.revert_reason}" if trace.revert_reason else "revert"
        elif trace.violations:
            error = f"invariant violated: {'; '.join(trace.violations)}"
        else:
            error = "simulation reported failure"
        return PreCrimeValidationResult.rejected(
            error,
            is_valid=is_valid,
            success=success,
            warnings=warnings,
            simulation_result=trace.output,
        )
