"""Value types exchanged with the chain-interaction capability.

These answer: "What did the chain tell us?" They are frozen because they
are attached to items and copied into progress snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class DestinationContext:
    """Where an item is being bridged to.

    Attributes:
        chain_id: EVM chain id of the destination network
        name: Human-readable chain name (used in logs and CLI output)
        endpoint_id: LayerZero endpoint id (EID) of the destination
        recipient: Address receiving the NFT on the destination chain
        contract_address: Destination ONFT contract (peer) address
        pre_crime_address: PreCrime contract used for simulation, if any
    """

    chain_id: int
    name: str
    endpoint_id: int
    recipient: str
    contract_address: str | None = None
    pre_crime_address: str | None = None


@dataclass(frozen=True, slots=True)
class ApprovalReceipt:
    """Receipt for the approval step of one item.

    already_approved=True means no transaction was needed (the bridge
    contract was approved for the token or for the whole collection).
    """

    token_id: str
    transaction_hash: str | None = None
    reverted: bool = False
    already_approved: bool = False

    @classmethod
    def not_required(cls, token_id: str) -> ApprovalReceipt:
        return cls(token_id=token_id, already_approved=True)


@dataclass(frozen=True, slots=True)
class BridgeSubmission:
    """A broadcast bridge transaction."""

    token_id: str
    transaction_hash: str


@dataclass(frozen=True, slots=True)
class Confirmation:
    """Outcome of awaiting a bridge transaction.

    guid is the cross-chain message id when the source chain emitted one.
    """

    transaction_hash: str
    reverted: bool = False
    guid: str | None = None
    block_number: int | None = None


@dataclass(frozen=True, slots=True)
class SimulationTrace:
    """Raw output of simulating an item's delivery on a forked destination.

    Attributes:
        reverted: The simulated call reverted
        revert_reason: Decoded revert reason, when available
        return_success: The call's return path reports overall success
        violations: Protocol invariants the simulation found violated
        warnings: Non-fatal anomalies reported by the simulator
        gas_used: Gas consumed by the simulated receive, if measured
        gas_limit: Gas available to the receive on the destination
        output: Opaque simulator output kept for diagnostics
    """

    reverted: bool = False
    revert_reason: str | None = None
    return_success: bool = True
    violations: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    gas_used: int | None = None
    gas_limit: int | None = None
    output: Any = field(default=None, compare=False)
