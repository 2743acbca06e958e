"""Bridge items and their state machine.

Lifecycle:
    pending -> approving -> bridging -> success
                   |            |
                   +------------+--> failed

success and failed are terminal. failed can be re-queued with retry(),
which resets the item to pending and drops everything learned about the
previous attempt, including the PreCrime verdict: destination state may
have changed, so the item must be validated again.

BridgeItem is mutable but is only ever mutated through the progress
aggregator's single entry point; everything handed to observers is an
ItemSnapshot.
"""

from __future__ import annotations

from dataclasses import dataclass

from bridgeline.contracts.chain import ApprovalReceipt, DestinationContext
from bridgeline.contracts.enums import FaultKind, ItemStatus
from bridgeline.contracts.errors import IllegalTransitionError
from bridgeline.contracts.validation import PreCrimeValidationResult

ALLOWED_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({ItemStatus.APPROVING}),
    ItemStatus.APPROVING: frozenset({ItemStatus.BRIDGING, ItemStatus.FAILED}),
    # bridging -> bridging only attaches the submitted transaction hash
    ItemStatus.BRIDGING: frozenset({ItemStatus.BRIDGING, ItemStatus.SUCCESS, ItemStatus.FAILED}),
    ItemStatus.SUCCESS: frozenset(),
    ItemStatus.FAILED: frozenset(),
}


@dataclass(frozen=True, slots=True)
class ItemSnapshot:
    """Immutable view of a BridgeItem at one point in time."""

    token_id: str
    status: ItemStatus
    destination: DestinationContext | None = None
    transaction_hash: str | None = None
    guid: str | None = None
    error: str | None = None
    fault: FaultKind | None = None
    pre_crime_result: PreCrimeValidationResult | None = None
    approval: ApprovalReceipt | None = None
    attempt: int = 0


@dataclass(slots=True)
class BridgeItem:
    """One NFT moving from the source chain to a destination chain."""

    token_id: str
    destination: DestinationContext | None = None
    status: ItemStatus = ItemStatus.PENDING
    transaction_hash: str | None = None
    guid: str | None = None
    error: str | None = None
    fault: FaultKind | None = None
    pre_crime_result: PreCrimeValidationResult | None = None
    approval: ApprovalReceipt | None = None
    attempt: int = 0

    def __post_init__(self) -> None:
        if not self.token_id:
            raise ValueError("token_id must be a non-empty string")

    def transition(
        self,
        new_status: ItemStatus,
        *,
        approval: ApprovalReceipt | None = None,
        pre_crime_result: PreCrimeValidationResult | None = None,
        transaction_hash: str | None = None,
        guid: str | None = None,
        error: str | None = None,
        fault: FaultKind | None = None,
    ) -> bool:
        """Apply one state-machine transition.

        All guards are checked before any field is written, so a rejected
        transition leaves the item untouched.

        Returns:
            False when the call was a no-op (re-attaching the same
            transaction hash), True otherwise.

        Raises:
            IllegalTransitionError: If the transition or its payload
                violates the state machine.
        """
        current = self.status
        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise IllegalTransitionError(self.token_id, current, new_status)

        if new_status == ItemStatus.FAILED:
            if error is None or fault is None:
                raise IllegalTransitionError(self.token_id, current, new_status, "failure requires error and fault")
        elif error is not None or fault is not None:
            raise IllegalTransitionError(self.token_id, current, new_status, "error is only set on failure")

        if guid is not None and new_status != ItemStatus.SUCCESS:
            raise IllegalTransitionError(self.token_id, current, new_status, "guid is only set on success")

        if transaction_hash is not None and self.transaction_hash not in (None, transaction_hash):
            raise IllegalTransitionError(
                self.token_id,
                current,
                new_status,
                f"transaction hash is immutable (already {self.transaction_hash})",
            )

        if current == ItemStatus.BRIDGING and new_status == ItemStatus.BRIDGING:
            if transaction_hash is None:
                raise IllegalTransitionError(self.token_id, current, new_status, "re-entry only attaches a transaction hash")
            if approval is not None or pre_crime_result is not None:
                raise IllegalTransitionError(self.token_id, current, new_status, "verdict is fixed once bridging")
            if self.transaction_hash == transaction_hash:
                return False

        if current == ItemStatus.APPROVING and new_status == ItemStatus.BRIDGING:
            receipt = approval if approval is not None else self.approval
            if receipt is None or receipt.reverted:
                raise IllegalTransitionError(self.token_id, current, new_status, "no successful approval receipt")
            verdict = pre_crime_result if pre_crime_result is not None else self.pre_crime_result
            if verdict is None or not verdict.passed:
                raise IllegalTransitionError(self.token_id, current, new_status, "PreCrime verdict did not pass")

        if current == ItemStatus.BRIDGING and pre_crime_result is not None:
            raise IllegalTransitionError(self.token_id, current, new_status, "verdict is fixed once bridging")

        self.status = new_status
        if approval is not None:
            self.approval = approval
        if pre_crime_result is not None:
            self.pre_crime_result = pre_crime_result
        if transaction_hash is not None:
            self.transaction_hash = transaction_hash
        if guid is not None:
            self.guid = guid
        if error is not None:
            self.error = error
            self.fault = fault
        return True

    def retry(self) -> None:
        """Re-queue a failed item.

        Clears everything tied to the previous attempt, token_id and
        destination are kept.

        Raises:
            IllegalTransitionError: If the item is not FAILED.
        """
        if self.status != ItemStatus.FAILED:
            raise IllegalTransitionError(self.token_id, self.status, ItemStatus.PENDING, "retry is only allowed from failed")
        self.status = ItemStatus.PENDING
        self.transaction_hash = None
        self.guid = None
        self.error = None
        self.fault = None
        self.pre_crime_result = None
        self.approval = None
        self.attempt += 1

    def snapshot(self) -> ItemSnapshot:
        return ItemSnapshot(
            token_id=self.token_id,
            status=self.status,
            destination=self.destination,
            transaction_hash=self.transaction_hash,
            guid=self.guid,
            error=self.error,
            fault=self.fault,
            pre_crime_result=self.pre_crime_result,
            approval=self.approval,
            attempt=self.attempt,
        )
