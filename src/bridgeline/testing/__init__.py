"""Test infrastructure for bridgeline.

Factories for constructing production types with sensible defaults.
When a contract type's constructor changes, update the factory here.
Tests that use factories need ZERO changes.

This package also contains:
- scripted_chain: in-memory ChainClient and WalletSession driven by per-token scripts

Usage:
    from bridgeline.testing import make_destination, make_item, make_trace
    from bridgeline.testing import make_engine
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from bridgeline.contracts.chain import ApprovalReceipt, DestinationContext, SimulationTrace
from bridgeline.contracts.items import BridgeItem
from bridgeline.contracts.validation import PreCrimeValidationResult

if TYPE_CHECKING:
    from bridgeline.core.events import EventBusProtocol
    from bridgeline.engine.clock import Clock
    from bridgeline.engine.orchestrator import BatchOrchestrator
    from bridgeline.testing.scripted_chain import ScriptedChain, ScriptedWallet, TokenScript

SOURCE_CHAIN_ID = 11155111


# =============================================================================
# Chain value types
# =============================================================================


def make_destination(
    name: str = "base-sepolia",
    *,
    chain_id: int = 84532,
    endpoint_id: int = 40245,
    recipient: str = "0x" + "22" * 20,
    **overrides: Any,
) -> DestinationContext:
    """Build a DestinationContext."""
    return DestinationContext(
        chain_id=chain_id,
        name=name,
        endpoint_id=endpoint_id,
        recipient=recipient,
        **overrides,
    )


def make_trace(**overrides: Any) -> SimulationTrace:
    """Build a SimulationTrace; a clean pass unless overridden.

    Usage:
        trace = make_trace()
        trace = make_trace(reverted=True, revert_reason="paused", return_success=False)
    """
    return SimulationTrace(**overrides)


def make_receipt(token_id: str = "1", **overrides: Any) -> ApprovalReceipt:
    return ApprovalReceipt(token_id=token_id, transaction_hash=overrides.pop("transaction_hash", "0xapprove"), **overrides)


def make_passed_verdict(*warnings: str) -> PreCrimeValidationResult:
    return PreCrimeValidationResult.passed_with(warnings=warnings)


# =============================================================================
# Items
# =============================================================================


def make_item(token_id: str = "1", **overrides: Any) -> BridgeItem:
    """Build a PENDING BridgeItem with a destination."""
    overrides.setdefault("destination", make_destination())
    return BridgeItem(token_id=token_id, **overrides)


# =============================================================================
# Engine wiring
# =============================================================================


def make_engine(
    scripts: dict[str, TokenScript] | None = None,
    *,
    default: TokenScript | None = None,
    event_bus: EventBusProtocol | None = None,
    clock: Clock | None = None,
    simulation_attempts: int = 1,
) -> tuple[BatchOrchestrator, ScriptedChain, ScriptedWallet]:
    """Wire a scripted chain, wallet, gate, executor and orchestrator.

    Retries inside the gate never sleep.

    Usage:
        orchestrator, chain, wallet = make_engine({"2": TokenScript(simulation="revert")})
        progress = orchestrator.run_batch(["1", "2", "3"], make_destination())
    """
    from bridgeline.engine.executor import BridgeExecutor
    from bridgeline.engine.gate import PreCrimeGate
    from bridgeline.engine.orchestrator import BatchOrchestrator
    from bridgeline.engine.retry import RetryConfig, RetryManager
    from bridgeline.testing.scripted_chain import ScriptedChain, ScriptedChainConfig, ScriptedWallet, TokenScript

    config = ScriptedChainConfig(default=default or TokenScript(), tokens=scripts or {})
    chain = ScriptedChain(config, sleep=lambda _: None)
    wallet = ScriptedWallet(chain_id=SOURCE_CHAIN_ID)
    retry = RetryManager(RetryConfig(max_attempts=simulation_attempts), sleep=lambda _: None)
    gate = PreCrimeGate(chain, retry_manager=retry)
    executor = BridgeExecutor(chain, wallet, gate, source_chain_id=SOURCE_CHAIN_ID, clock=clock)
    return BatchOrchestrator(executor, event_bus=event_bus), chain, wallet
