# src/bridgeline/cli_formatters.py
"""CLI event formatter factories for batch execution output.

Provides factory functions that return event handler maps for console
(human-readable) and JSON (structured) output formats. Each factory
returns a dict mapping event types to handler callables, suitable for
subscribing to an EventBus.
"""

from __future__ import annotations

import json
from collections.abc import Callable

import typer

from bridgeline.contracts.enums import BatchStatus, ItemStatus
from bridgeline.contracts.events import BatchFinished, BatchStarted, ItemTransitioned
from bridgeline.core.events import EventBusProtocol

_STATUS_SYMBOLS = {
    BatchStatus.COMPLETED: "✓",
    BatchStatus.CANCELLED: "⚠",
    BatchStatus.ABORTED: "✗",
    BatchStatus.RUNNING: "…",
}


def create_console_formatters() -> dict[type, Callable[..., None]]:
    """Create console formatters for human-readable CLI output."""

    def _format_batch_started(event: BatchStarted) -> None:
        typer.echo(f"[{event.batch_id}] Bridging {event.total} item(s), concurrency {event.concurrency}...")

    def _format_item_transitioned(event: ItemTransitioned) -> None:
        if event.status == ItemStatus.APPROVING:
            typer.echo(f"  #{event.token_id}: approving")
        elif event.status == ItemStatus.BRIDGING:
            tx_info = f" (tx {event.transaction_hash})" if event.transaction_hash else ""
            typer.echo(f"  #{event.token_id}: bridging{tx_info}")
        elif event.status == ItemStatus.SUCCESS:
            typer.echo(f"  #{event.token_id}: ✓ bridged")
        elif event.status == ItemStatus.FAILED:
            fault = event.fault.value if event.fault is not None else "unknown"
            typer.echo(f"  #{event.token_id}: ✗ {fault}: {event.error}", err=True)

    def _format_batch_finished(event: BatchFinished) -> None:
        symbol = _STATUS_SYMBOLS[event.status]
        not_run = event.total - event.completed - event.failed
        skipped = f" | {not_run} not dispatched" if not_run else ""
        typer.echo(
            f"\n{symbol} Batch {event.status.value.upper()}: "
            f"{event.total} items | "
            f"✓{event.completed} bridged | "
            f"✗{event.failed} failed"
            f"{skipped} | "
            f"{event.duration_seconds:.2f}s total"
        )

    return {
        BatchStarted: _format_batch_started,
        ItemTransitioned: _format_item_transitioned,
        BatchFinished: _format_batch_finished,
    }


def create_json_formatters() -> dict[type, Callable[..., None]]:
    """Create JSON formatters for structured CLI output (one object per line)."""

    def _format_batch_started_json(event: BatchStarted) -> None:
        typer.echo(
            json.dumps(
                {
                    "event": "batch_started",
                    "batch_id": event.batch_id,
                    "total": event.total,
                    "concurrency": event.concurrency,
                }
            )
        )

    def _format_item_transitioned_json(event: ItemTransitioned) -> None:
        typer.echo(
            json.dumps(
                {
                    "event": "item_transitioned",
                    "batch_id": event.batch_id,
                    "token_id": event.token_id,
                    "status": event.status.value,
                    "transaction_hash": event.transaction_hash,
                    "error": event.error,
                    "fault": event.fault.value if event.fault is not None else None,
                }
            )
        )

    def _format_batch_finished_json(event: BatchFinished) -> None:
        typer.echo(
            json.dumps(
                {
                    "event": "batch_finished",
                    "batch_id": event.batch_id,
                    "status": event.status.value,
                    "total": event.total,
                    "completed": event.completed,
                    "failed": event.failed,
                    "duration_seconds": event.duration_seconds,
                    "fault": event.fault.value if event.fault is not None else None,
                }
            )
        )

    return {
        BatchStarted: _format_batch_started_json,
        ItemTransitioned: _format_item_transitioned_json,
        BatchFinished: _format_batch_finished_json,
    }


def subscribe_formatters(
    event_bus: EventBusProtocol,
    formatters: dict[type, Callable[..., None]],
) -> None:
    """Subscribe all formatters to the event bus."""
    for event_type, handler in formatters.items():
        event_bus.subscribe(event_type, handler)
