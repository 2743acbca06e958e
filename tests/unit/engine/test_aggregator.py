# tests/unit/engine/test_aggregator.py
"""Tests for ProgressAggregator."""

import logging
import threading

import pytest

from bridgeline.contracts.enums import BatchStatus, FaultKind, ItemStatus
from bridgeline.contracts.errors import IllegalTransitionError, OrchestrationInvariantError
from bridgeline.contracts.items import BridgeItem
from bridgeline.contracts.progress import BatchBridgeProgress
from bridgeline.engine.aggregator import ProgressAggregator
from bridgeline.testing import make_item, make_passed_verdict, make_receipt
from tests.helpers.progress import ProgressRecorder


def _items(*token_ids: str) -> list[BridgeItem]:
    return [make_item(token_id) for token_id in token_ids]


def _succeed(aggregator: ProgressAggregator, item: BridgeItem, tx_hash: str = "0xabc") -> None:
    aggregator.apply_transition(item, ItemStatus.APPROVING)
    aggregator.apply_transition(item, ItemStatus.BRIDGING, approval=make_receipt(item.token_id), pre_crime_result=make_passed_verdict())
    aggregator.apply_transition(item, ItemStatus.BRIDGING, transaction_hash=tx_hash)
    aggregator.apply_transition(item, ItemStatus.SUCCESS)


def _fail(aggregator: ProgressAggregator, item: BridgeItem) -> None:
    aggregator.apply_transition(item, ItemStatus.APPROVING)
    aggregator.apply_transition(item, ItemStatus.FAILED, error="approval reverted", fault=FaultKind.APPROVAL_FAILED)


class TestSubscribe:
    def test_subscribe_delivers_current_snapshot(self, recorder: ProgressRecorder) -> None:
        aggregator = ProgressAggregator("b-1", _items("1", "2"))
        aggregator.subscribe(recorder)

        assert len(recorder.snapshots) == 1
        assert recorder.last.total == 2
        assert recorder.last.completed == 0
        assert recorder.last.status == BatchStatus.RUNNING

    def test_every_transition_published(self, recorder: ProgressRecorder) -> None:
        items = _items("1")
        aggregator = ProgressAggregator("b-1", items, observers=[recorder])

        _succeed(aggregator, items[0])

        assert [s.item("1").status for s in recorder.snapshots] == [
            ItemStatus.APPROVING,
            ItemStatus.BRIDGING,
            ItemStatus.BRIDGING,
            ItemStatus.SUCCESS,
        ]

    def test_failing_observer_is_isolated(self, recorder: ProgressRecorder, caplog: pytest.LogCaptureFixture) -> None:
        def broken(progress: BatchBridgeProgress) -> None:
            raise RuntimeError("observer bug")

        items = _items("1")
        aggregator = ProgressAggregator("b-1", items, observers=[broken, recorder])

        with caplog.at_level(logging.ERROR):
            _succeed(aggregator, items[0])

        assert recorder.last.completed == 1
        assert "observer" in caplog.text.lower()
        assert any(record.exc_info for record in caplog.records)


class TestCounters:
    def test_counts_and_results(self) -> None:
        items = _items("1", "2", "3")
        aggregator = ProgressAggregator("b-1", items)

        _succeed(aggregator, items[0])
        _fail(aggregator, items[1])
        progress = aggregator.snapshot()

        assert progress.completed == 1
        assert progress.failed == 1
        assert progress.pending == 1
        assert [r.token_id for r in progress.results] == ["1", "2"]
        assert progress.results[0].success
        assert progress.results[0].transaction_hash == "0xabc"
        assert progress.results[1].fault == FaultKind.APPROVAL_FAILED

    def test_duplicate_terminal_event_ignored(self) -> None:
        items = _items("1")
        aggregator = ProgressAggregator("b-1", items)
        _fail(aggregator, items[0])

        result = aggregator.apply_transition(items[0], ItemStatus.FAILED, error="late", fault=FaultKind.APPROVAL_FAILED)

        assert result is None
        progress = aggregator.snapshot()
        assert progress.failed == 1
        assert len(progress.results) == 1
        assert progress.results[0].error == "approval reverted"

    def test_same_hash_reattach_not_published(self, recorder: ProgressRecorder) -> None:
        items = _items("1")
        aggregator = ProgressAggregator("b-1", items, observers=[recorder])
        aggregator.apply_transition(items[0], ItemStatus.APPROVING)
        aggregator.apply_transition(items[0], ItemStatus.BRIDGING, approval=make_receipt(), pre_crime_result=make_passed_verdict())
        aggregator.apply_transition(items[0], ItemStatus.BRIDGING, transaction_hash="0xabc")
        published = len(recorder.snapshots)

        assert aggregator.apply_transition(items[0], ItemStatus.BRIDGING, transaction_hash="0xabc") is None
        assert len(recorder.snapshots) == published

    def test_illegal_transition_propagates_and_leaves_state(self) -> None:
        items = _items("1")
        aggregator = ProgressAggregator("b-1", items)

        with pytest.raises(IllegalTransitionError):
            aggregator.apply_transition(items[0], ItemStatus.SUCCESS)

        assert aggregator.snapshot().item("1").status == ItemStatus.PENDING


class TestCurrent:
    def test_current_tracks_latest_in_flight(self) -> None:
        items = _items("1", "2")
        aggregator = ProgressAggregator("b-1", items)

        aggregator.apply_transition(items[0], ItemStatus.APPROVING)
        aggregator.apply_transition(items[1], ItemStatus.APPROVING)
        assert aggregator.snapshot().current is not None
        assert aggregator.snapshot().current.token_id == "2"  # type: ignore[union-attr]

        aggregator.apply_transition(items[0], ItemStatus.BRIDGING, approval=make_receipt("1"), pre_crime_result=make_passed_verdict())
        assert aggregator.snapshot().current.token_id == "1"  # type: ignore[union-attr]

    def test_current_falls_back_when_item_finishes(self) -> None:
        items = _items("1", "2")
        aggregator = ProgressAggregator("b-1", items)
        aggregator.apply_transition(items[0], ItemStatus.APPROVING)
        aggregator.apply_transition(items[1], ItemStatus.APPROVING)

        aggregator.apply_transition(items[1], ItemStatus.FAILED, error="x", fault=FaultKind.APPROVAL_FAILED)

        assert aggregator.snapshot().current.token_id == "1"  # type: ignore[union-attr]

    def test_current_none_when_idle(self) -> None:
        items = _items("1")
        aggregator = ProgressAggregator("b-1", items)
        _succeed(aggregator, items[0])
        assert aggregator.snapshot().current is None


class TestGuards:
    def test_foreign_item_rejected(self) -> None:
        aggregator = ProgressAggregator("b-1", _items("1"))
        with pytest.raises(OrchestrationInvariantError, match="not part of batch"):
            aggregator.apply_transition(make_item("1"), ItemStatus.APPROVING)

    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(OrchestrationInvariantError):
            ProgressAggregator("b-1", _items("1", "1"))


class TestFinish:
    def test_finish_completed(self, recorder: ProgressRecorder) -> None:
        items = _items("1")
        aggregator = ProgressAggregator("b-1", items, observers=[recorder])
        _succeed(aggregator, items[0])

        progress = aggregator.finish(BatchStatus.COMPLETED)

        assert progress.status == BatchStatus.COMPLETED
        assert recorder.last.finished

    def test_cannot_complete_with_pending_items(self) -> None:
        aggregator = ProgressAggregator("b-1", _items("1"))
        with pytest.raises(OrchestrationInvariantError, match="never ran"):
            aggregator.finish(BatchStatus.COMPLETED)

    def test_cancelled_with_pending_items(self) -> None:
        progress = ProgressAggregator("b-1", _items("1", "2")).finish(BatchStatus.CANCELLED)
        assert progress.status == BatchStatus.CANCELLED
        assert progress.total == 2
        assert progress.results == ()

    def test_cannot_finish_with_items_in_flight(self) -> None:
        items = _items("1")
        aggregator = ProgressAggregator("b-1", items)
        aggregator.apply_transition(items[0], ItemStatus.APPROVING)
        with pytest.raises(OrchestrationInvariantError, match="in flight"):
            aggregator.finish(BatchStatus.CANCELLED)

    def test_finish_once(self) -> None:
        aggregator = ProgressAggregator("b-1", [])
        aggregator.finish(BatchStatus.COMPLETED)
        with pytest.raises(OrchestrationInvariantError):
            aggregator.finish(BatchStatus.COMPLETED)

    def test_no_transitions_after_finish(self) -> None:
        items = _items("1")
        aggregator = ProgressAggregator("b-1", items)
        aggregator.finish(BatchStatus.CANCELLED)
        with pytest.raises(OrchestrationInvariantError):
            aggregator.apply_transition(items[0], ItemStatus.APPROVING)


def test_concurrent_transitions_are_serialized() -> None:
    """Deliveries never overlap and counters never go backwards."""
    items = _items(*(str(i) for i in range(40)))
    active = 0
    overlaps = 0
    seen: list[int] = []
    guard = threading.Lock()

    def observer(progress: BatchBridgeProgress) -> None:
        nonlocal active, overlaps
        with guard:
            active += 1
            if active > 1:
                overlaps += 1
        seen.append(progress.completed + progress.failed)
        with guard:
            active -= 1

    aggregator = ProgressAggregator("b-1", items, observers=[observer])
    threads = [threading.Thread(target=_succeed, args=(aggregator, item, f"0x{item.token_id}")) for item in items]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert overlaps == 0
    assert seen == sorted(seen)
    assert aggregator.snapshot().completed == 40
