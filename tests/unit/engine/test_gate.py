# tests/unit/engine/test_gate.py
"""Tests for the PreCrime validation gate."""

import pytest

from bridgeline.contracts.chain import DestinationContext, SimulationTrace
from bridgeline.contracts.errors import ChainError, ChainTimeoutError, SimulationUnavailableError
from bridgeline.engine.gate import PreCrimeGate
from bridgeline.engine.retry import RetryConfig, RetryManager
from bridgeline.testing import make_item, make_trace


class StubSimulator:
    """Minimal ChainClient returning queued traces or raising queued errors."""

    def __init__(self, *outcomes: SimulationTrace | BaseException) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[tuple[str, float]] = []

    def forked_simulate(self, token_id: str, destination: DestinationContext, *, timeout: float) -> SimulationTrace:
        self.calls.append((token_id, timeout))
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _gate(simulator: StubSimulator, attempts: int = 1) -> PreCrimeGate:
    return PreCrimeGate(
        simulator,  # type: ignore[arg-type]
        retry_manager=RetryManager(RetryConfig(max_attempts=attempts), sleep=lambda _: None),
    )


class TestInterpretation:
    def test_clean_trace_passes(self, destination: DestinationContext) -> None:
        verdict = _gate(StubSimulator(make_trace(output={"ok": True}))).validate(make_item(), destination)

        assert verdict.passed
        assert verdict.error is None
        assert verdict.simulation_result == {"ok": True}

    def test_revert(self, destination: DestinationContext) -> None:
        trace = make_trace(reverted=True, revert_reason="ONFT: paused", return_success=False)
        verdict = _gate(StubSimulator(trace)).validate(make_item(), destination)

        assert verdict.is_valid is False
        assert verdict.success is False
        assert verdict.error == "revert: ONFT: paused"

    def test_invariant_violation(self, destination: DestinationContext) -> None:
        trace = make_trace(violations=("peer mismatch", "supply changed"))
        verdict = _gate(StubSimulator(trace)).validate(make_item(), destination)

        assert verdict.is_valid is False
        assert verdict.success is True
        assert verdict.error == "invariant violated: peer mismatch; supply changed"

    def test_return_path_failure(self, destination: DestinationContext) -> None:
        verdict = _gate(StubSimulator(make_trace(return_success=False))).validate(make_item(), destination)

        assert verdict.is_valid is True
        assert verdict.success is False
        assert verdict.error == "simulation reported failure"

    def test_trace_warnings_kept(self, destination: DestinationContext) -> None:
        verdict = _gate(StubSimulator(make_trace(warnings=("recipient is a contract",)))).validate(make_item(), destination)
        assert verdict.passed
        assert verdict.warnings == ("recipient is a contract",)

    def test_gas_warning(self, destination: DestinationContext) -> None:
        verdict = _gate(StubSimulator(make_trace(gas_used=95_000, gas_limit=100_000))).validate(make_item(), destination)

        assert verdict.passed
        assert len(verdict.warnings) == 1
        assert "95%" in verdict.warnings[0]

    def test_no_gas_warning_below_ratio(self, destination: DestinationContext) -> None:
        verdict = _gate(StubSimulator(make_trace(gas_used=50_000, gas_limit=100_000))).validate(make_item(), destination)
        assert verdict.warnings == ()

    def test_same_trace_same_verdict(self, destination: DestinationContext) -> None:
        gate = _gate(StubSimulator(make_trace(violations=("peer mismatch",))))
        item = make_item()
        assert gate.validate(item, destination) == gate.validate(item, destination)


class TestFailClosed:
    @pytest.mark.parametrize(
        "error",
        [
            SimulationUnavailableError("fork failed"),
            ChainTimeoutError("slow"),
            TimeoutError("slow"),
            ConnectionRefusedError("refused"),
            ChainError("unexpected rpc error"),
        ],
    )
    def test_infrastructure_fault_is_not_a_pass(self, error: BaseException, destination: DestinationContext) -> None:
        verdict = _gate(StubSimulator(error)).validate(make_item(), destination)

        assert verdict.is_valid is False
        assert verdict.success is False
        assert verdict.unavailable
        assert verdict.error is not None
        assert verdict.error.startswith("simulation unavailable")

    def test_single_attempt_by_default(self, destination: DestinationContext) -> None:
        simulator = StubSimulator(SimulationUnavailableError("down"))
        PreCrimeGate(simulator).validate(make_item(), destination)  # type: ignore[arg-type]
        assert len(simulator.calls) == 1

    def test_retries_then_passes(self, destination: DestinationContext) -> None:
        simulator = StubSimulator(SimulationUnavailableError("down"), make_trace())
        verdict = _gate(simulator, attempts=3).validate(make_item(), destination)

        assert verdict.passed
        assert len(simulator.calls) == 2

    def test_retries_exhausted(self, destination: DestinationContext) -> None:
        simulator = StubSimulator(SimulationUnavailableError("down"))
        verdict = _gate(simulator, attempts=3).validate(make_item(), destination)

        assert verdict.error == "simulation unavailable: down"
        assert len(simulator.calls) == 3

    def test_negative_verdict_not_retried(self, destination: DestinationContext) -> None:
        simulator = StubSimulator(make_trace(reverted=True, revert_reason="paused", return_success=False))
        _gate(simulator, attempts=3).validate(make_item(), destination)
        assert len(simulator.calls) == 1

    def test_timeout_forwarded(self, destination: DestinationContext) -> None:
        simulator = StubSimulator(make_trace())
        _gate(simulator).validate(make_item("5"), destination, timeout=12.5)
        assert simulator.calls == [("5", 12.5)]
