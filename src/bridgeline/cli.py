# src/bridgeline/cli.py
"""bridgeline Command Line Interface.

Entry point for the bridgeline CLI tool.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from bridgeline import __version__
from bridgeline.contracts.errors import BatchAbortedError, BatchConflictError
from bridgeline.contracts.progress import BatchBridgeProgress
from bridgeline.core.config import BatchOptions, BridgeSettings, load_settings

__all__ = [
    "app",
    "load_settings",  # Re-exported from config for convenience
]

app = typer.Typer(
    name="bridgeline",
    help="bridgeline: Batch NFT bridging with PreCrime validation.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"bridgeline version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    return load_dotenv(override=False)  # Don't override existing env vars


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # Existence is checked in _load_dotenv for a better message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """bridgeline: Batch NFT bridging with PreCrime validation."""
    from bridgeline.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")
    ctx.obj = {"verbose": verbose, "json_logs": json_logs}

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _format_validation_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted validation error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    panel = Panel(
        content,
        title=f"[red bold]❌ {title}[/]",
        border_style="red",
        padding=(0, 1),
    )
    console.print(panel)


def _validation_details(error: ValidationError) -> list[str]:
    return [f"{'.'.join(str(x) for x in e['loc'])}: {e['msg']}" for e in error.errors()]


def _load_or_exit(settings_path: Path) -> BridgeSettings:
    """Load settings, rendering any problem as a formatted error and exiting 1."""
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _format_validation_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if hasattr(e, "problem") else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings_path}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        # ValidationError subclasses ValueError, so it must be handled first
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=_validation_details(e),
            hint="Check field names, types, and required values.",
        )
        raise typer.Exit(1) from None


@app.command()
def validate(
    settings: Path = typer.Argument(..., help="Path to settings YAML file."),
) -> None:
    """Validate bridge configuration without running."""
    config = _load_or_exit(settings.expanduser())

    typer.echo("✅ Bridge configuration valid!")
    typer.echo(f"  Source: {config.source.name} (chain {config.source.chain_id})")
    for name, destination in config.destinations.items():
        marker = " (default)" if name == config.default_destination else ""
        typer.echo(f"  Destination: {name} (chain {destination.chain_id}, eid {destination.endpoint_id}){marker}")
    typer.echo(f"  Chain plugin: {config.chain.plugin}")
    typer.echo(
        f"  Batch: concurrency {config.batch.concurrency}, per-item timeout {config.batch.per_item_timeout_seconds:g}s"
    )


@app.command()
def run(
    ctx: typer.Context,
    settings: Path = typer.Argument(..., help="Path to settings YAML file."),
    token_ids: list[str] = typer.Option(
        ...,
        "--token-id",
        "-t",
        help="Token id to bridge (repeat for a batch; dispatched in the given order).",
    ),
    destination: str | None = typer.Option(
        None,
        "--destination",
        "-d",
        help="Destination name from settings (default: default_destination).",
    ),
    concurrency: int | None = typer.Option(
        None,
        "--concurrency",
        "-c",
        help="Override batch.concurrency (values > 1 need nonce_serialized_externally).",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Emit one JSON object per event on stdout.",
    ),
) -> None:
    """Bridge a batch of tokens.

    Exits 0 when every item bridged, 1 otherwise.
    """
    from bridgeline.cli_formatters import create_console_formatters, create_json_formatters, subscribe_formatters
    from bridgeline.cli_helpers import build_orchestrator, instantiate_chain_from_config
    from bridgeline.core.events import EventBus
    from bridgeline.core.logging import configure_logging

    config = _load_or_exit(settings.expanduser())

    cli_flags: dict[str, Any] = ctx.obj or {}
    if not cli_flags.get("verbose") and not cli_flags.get("json_logs"):
        configure_logging(json_output=config.logging.json_output, level=config.logging.level)

    try:
        target = config.destination(destination)
    except KeyError as e:
        _format_validation_error(
            title="Unknown Destination",
            message=str(e.args[0]),
            hint=f"Configured destinations: {', '.join(sorted(config.destinations))}",
        )
        raise typer.Exit(1) from None

    options = config.batch
    if concurrency is not None:
        try:
            options = BatchOptions.model_validate({**config.batch.model_dump(), "concurrency": concurrency})
        except ValidationError as e:
            _format_validation_error(
                title="Invalid Batch Options",
                message="--concurrency rejected",
                details=_validation_details(e),
            )
            raise typer.Exit(1) from None

    try:
        chain, wallet = instantiate_chain_from_config(config)
    except (ValueError, ValidationError) as e:
        _format_validation_error(
            title="Chain Plugin Configuration Error",
            message=str(e),
            hint="Check chain.options match the plugin's requirements.",
        )
        raise typer.Exit(1) from None

    event_bus = EventBus()
    subscribe_formatters(event_bus, create_json_formatters() if json_output else create_console_formatters())
    orchestrator = build_orchestrator(config, chain, wallet, event_bus=event_bus)

    try:
        progress = orchestrator.run_batch(token_ids, target, options)
    except BatchConflictError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    except BatchAbortedError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    if not json_output:
        _print_failures(progress)
    if progress.failed or progress.pending:
        raise typer.Exit(1)


def _print_failures(progress: BatchBridgeProgress) -> None:
    failures = [entry for entry in progress.results if not entry.success]
    if not failures:
        return
    typer.echo("\nFailed items:", err=True)
    for entry in failures:
        retry_hint = " (retryable)" if entry.fault is not None and entry.fault.retryable else ""
        fault = entry.fault.value if entry.fault is not None else "unknown"
        typer.echo(f"  #{entry.token_id}: {fault}{retry_hint}: {entry.error}", err=True)


if __name__ == "__main__":
    app()
