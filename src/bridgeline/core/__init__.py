# src/bridgeline/core/__init__.py
"""Core infrastructure: Configuration, Events, Logging."""

from bridgeline.core.config import (
    BatchOptions,
    BridgeSettings,
    ChainSettings,
    DestinationSettings,
    GateSettings,
    LoggingSettings,
    SourceChainSettings,
    TelemetrySettings,
    load_settings,
    resolve_config,
)
from bridgeline.core.events import EventBus, EventBusProtocol, NullEventBus
from bridgeline.core.logging import bound_batch_context, configure_logging, get_logger

__all__ = [
    "BatchOptions",
    "BridgeSettings",
    "ChainSettings",
    "DestinationSettings",
    "EventBus",
    "EventBusProtocol",
    "GateSettings",
    "LoggingSettings",
    "NullEventBus",
    "SourceChainSettings",
    "TelemetrySettings",
    "bound_batch_context",
    "configure_logging",
    "get_logger",
    "load_settings",
    "resolve_config",
]
