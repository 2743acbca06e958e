# src/bridgeline/core/logging.py
"""Structured logging configuration for bridgeline.

Uses structlog for structured logging alongside OpenTelemetry spans.

Both structlog and stdlib logging are routed through one
ProcessorFormatter, so modules using logging.getLogger(__name__) and
modules using structlog.get_logger(__name__) produce the same output
(JSON or console). Batch identifiers are bound with structlog.contextvars
and appear on every record emitted while a batch runs.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Chain client libraries log every RPC round trip at DEBUG. Keep them at
# WARNING even when bridgeline itself runs in DEBUG mode.
_NOISY_LOGGERS: tuple[str, ...] = (
    "web3",
    "web3.providers",
    "web3.RequestManager",
    "websockets",
    "urllib3",
    "urllib3.connectionpool",
    "httpx",
    "httpcore",
    "opentelemetry",
    "opentelemetry.sdk",
)


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Drop ProcessorFormatter bookkeeping fields from output.

    ProcessorFormatter always adds _record and _from_structlog; del (not
    pop) because a missing key means the integration is broken.
    """
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog and stdlib logging for bridgeline.

    Args:
        json_output: If True, output JSON. If False, human-readable.
        level: Log level (DEBUG, INFO, WARNING, ERROR).
    """
    log_level = getattr(logging, level.upper())

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        final_processors: list[Any] = [
            _remove_internal_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors = [
            _remove_internal_fields,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests reconfigure logging; cached loggers would keep the old chain
        cache_logger_on_first_use=False,
    )

    # Logs go to stderr so `bridgeline run --json` keeps stdout machine-readable
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        ProcessorFormatter(
            processors=final_processors,
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers = []
    root.addHandler(handler)
    root.setLevel(log_level)

    # Never make noisy loggers less restrictive than the root level
    noisy_level = max(log_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(noisy_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound structlog logger.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


@contextmanager
def bound_batch_context(batch_id: str, **extra: Any) -> Iterator[None]:
    """Bind batch_id (and any extra keys) to every log record in this context.

    Worker threads do not inherit contextvars from the dispatching thread;
    the orchestrator submits each item through contextvars.copy_context().
    """
    tokens = structlog.contextvars.bind_contextvars(batch_id=batch_id, **extra)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
