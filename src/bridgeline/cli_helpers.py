"""CLI helper functions for wiring the engine from settings."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bridgeline.contracts.protocols import ChainClient, WalletSession
    from bridgeline.core.config import BridgeSettings
    from bridgeline.core.events import EventBusProtocol
    from bridgeline.engine.orchestrator import BatchOrchestrator


def instantiate_chain_from_config(config: "BridgeSettings") -> "tuple[ChainClient, WalletSession]":
    """Build the chain capability and wallet session named in settings.

    Only the in-memory "scripted" plugin ships with bridgeline. Its wallet
    starts on the configured source chain.

    Raises:
        ValueError: If the chain plugin is unknown
        pydantic.ValidationError: If the plugin options are invalid
    """
    if config.chain.plugin == "scripted":
        from bridgeline.testing.scripted_chain import ScriptedChain, ScriptedChainConfig, ScriptedWallet

        chain = ScriptedChain(ScriptedChainConfig(**config.chain.options))
        return chain, ScriptedWallet(chain_id=config.source.chain_id)

    raise ValueError(f"Unknown chain plugin: {config.chain.plugin}")


def build_orchestrator(
    config: "BridgeSettings",
    chain: "ChainClient",
    wallet: "WalletSession",
    *,
    event_bus: "EventBusProtocol | None" = None,
) -> "BatchOrchestrator":
    """Wire gate, executor and orchestrator from validated settings.

    Tracing uses the globally configured OpenTelemetry tracer provider when
    telemetry.tracing_enabled is set; without an SDK installed that tracer
    is a no-op.
    """
    from bridgeline.engine.executor import BridgeExecutor
    from bridgeline.engine.gate import PreCrimeGate
    from bridgeline.engine.orchestrator import BatchOrchestrator
    from bridgeline.engine.retry import RetryConfig
    from bridgeline.engine.spans import SpanFactory

    span_factory = SpanFactory()
    if config.telemetry.tracing_enabled:
        from opentelemetry import trace

        span_factory = SpanFactory(tracer=trace.get_tracer(config.telemetry.service_name))

    gate = PreCrimeGate(
        chain,
        retry_config=RetryConfig.from_settings(config.gate),
        gas_warning_ratio=config.gate.gas_warning_ratio,
        span_factory=span_factory,
    )
    executor = BridgeExecutor(
        chain,
        wallet,
        gate,
        source_chain_id=config.source.chain_id,
        span_factory=span_factory,
    )
    return BatchOrchestrator(executor, event_bus=event_bus, span_factory=span_factory)
