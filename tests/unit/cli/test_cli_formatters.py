"""Tests for CLI event formatters."""

import json

import pytest

from bridgeline.cli_formatters import create_console_formatters, create_json_formatters, subscribe_formatters
from bridgeline.contracts.enums import BatchStatus, FaultKind, ItemStatus
from bridgeline.contracts.events import BatchFinished, BatchStarted, ItemTransitioned
from bridgeline.core.events import EventBus


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


class TestConsoleFormatters:
    def test_batch_lifecycle(self, bus: EventBus, capsys: pytest.CaptureFixture[str]) -> None:
        subscribe_formatters(bus, create_console_formatters())

        bus.emit(BatchStarted(batch_id="b-1", total=3, concurrency=1))
        bus.emit(ItemTransitioned(batch_id="b-1", token_id="1", status=ItemStatus.BRIDGING, transaction_hash="0xabc"))
        bus.emit(
            ItemTransitioned(
                batch_id="b-1",
                token_id="2",
                status=ItemStatus.FAILED,
                error="revert: paused",
                fault=FaultKind.VALIDATION_FAILED,
            )
        )
        bus.emit(
            BatchFinished(
                batch_id="b-1",
                status=BatchStatus.CANCELLED,
                total=3,
                completed=1,
                failed=1,
                duration_seconds=1.5,
                fault=FaultKind.BATCH_CANCELLED,
            )
        )

        captured = capsys.readouterr()
        assert "[b-1] Bridging 3 item(s), concurrency 1" in captured.out
        assert "#1: bridging (tx 0xabc)" in captured.out
        assert "#2: ✗ validation-failed: revert: paused" in captured.err
        assert "Batch CANCELLED" in captured.out
        assert "1 not dispatched" in captured.out


class TestJsonFormatters:
    def test_one_object_per_event(self, bus: EventBus, capsys: pytest.CaptureFixture[str]) -> None:
        subscribe_formatters(bus, create_json_formatters())

        bus.emit(BatchStarted(batch_id="b-1", total=1, concurrency=1))
        bus.emit(ItemTransitioned(batch_id="b-1", token_id="1", status=ItemStatus.SUCCESS, transaction_hash="0xabc"))
        bus.emit(
            BatchFinished(
                batch_id="b-1",
                status=BatchStatus.COMPLETED,
                total=1,
                completed=1,
                failed=0,
                duration_seconds=0.25,
            )
        )

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert [line["event"] for line in lines] == ["batch_started", "item_transitioned", "batch_finished"]
        assert lines[1] == {
            "event": "item_transitioned",
            "batch_id": "b-1",
            "token_id": "1",
            "status": "success",
            "transaction_hash": "0xabc",
            "error": None,
            "fault": None,
        }
        assert lines[2]["fault"] is None
