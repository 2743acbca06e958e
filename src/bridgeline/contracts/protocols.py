"""Protocols for the external collaborators the engine orchestrates.

The engine never talks to a blockchain directly. A ChainClient supplies
approvals, submissions, confirmations and forked simulations; a
WalletSession supplies the signing identity and the active network.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from bridgeline.contracts.chain import (
        ApprovalReceipt,
        BridgeSubmission,
        Confirmation,
        DestinationContext,
        SimulationTrace,
    )
    from bridgeline.contracts.progress import BatchBridgeProgress


@runtime_checkable
class ChainClient(Protocol):
    """Chain-interaction capability for the source chain.

    Every awaited method takes a timeout in seconds. Implementations raise:
    - ChainTimeoutError when the timeout elapses
    - ChainError (or a BridgeFault subclass) for call failures
    - SimulationUnavailableError when forked simulation cannot run
    - ChainUnavailableError when the capability is lost entirely
    """

    def needs_approval(self, token_id: str) -> bool:
        """Whether the bridge contract still needs approval for the token."""
        ...

    def submit_approval(self, token_id: str, *, timeout: float) -> ApprovalReceipt:
        """Submit the approval transaction and wait for its receipt."""
        ...

    def submit_bridge(self, token_id: str, destination: DestinationContext, *, timeout: float) -> BridgeSubmission:
        """Broadcast the bridge transaction."""
        ...

    def await_confirmation(self, transaction_hash: str, *, timeout: float) -> Confirmation:
        """Wait for the bridge transaction to be mined."""
        ...

    def forked_simulate(self, token_id: str, destination: DestinationContext, *, timeout: float) -> SimulationTrace:
        """Simulate delivery on a fork of the destination chain. Must not mutate real state."""
        ...


@runtime_checkable
class WalletSession(Protocol):
    """Signing identity and network context supplied by the wallet layer."""

    @property
    def address(self) -> str:
        """Address of the signing account."""
        ...

    def active_chain_id(self) -> int:
        """Chain id the wallet is currently connected to."""
        ...


ProgressObserver = Callable[["BatchBridgeProgress"], None]
"""Receives an immutable snapshot after every progress mutation."""
