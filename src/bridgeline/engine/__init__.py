# src/bridgeline/engine/__init__.py
"""Batch bridge engine: gate, executor, orchestrator, aggregator and service.

Example:
    from bridgeline.engine import BatchOrchestrator, BridgeExecutor, PreCrimeGate

    gate = PreCrimeGate(chain)
    executor = BridgeExecutor(chain, wallet, gate, source_chain_id=11155111)
    progress = BatchOrchestrator(executor).run_batch(["1", "2"], destination)
"""

from bridgeline.engine.aggregator import ProgressAggregator
from bridgeline.engine.clock import DEFAULT_CLOCK, Clock, Deadline, MockClock, SystemClock
from bridgeline.engine.executor import BridgeExecutor, ExecutionOutcome, TransitionReporter
from bridgeline.engine.faults import classify_fault
from bridgeline.engine.gate import PreCrimeGate
from bridgeline.engine.orchestrator import BatchOrchestrator, new_batch_id
from bridgeline.engine.retry import MaxRetriesExceeded, RetryConfig, RetryManager
from bridgeline.engine.service import BatchHandle, BridgeService
from bridgeline.engine.spans import SpanFactory

__all__ = [
    "DEFAULT_CLOCK",
    "BatchHandle",
    "BatchOrchestrator",
    "BridgeExecutor",
    "BridgeService",
    "Clock",
    "Deadline",
    "ExecutionOutcome",
    "MaxRetriesExceeded",
    "MockClock",
    "PreCrimeGate",
    "ProgressAggregator",
    "RetryConfig",
    "RetryManager",
    "SpanFactory",
    "SystemClock",
    "TransitionReporter",
    "classify_fault",
    "new_batch_id",
]
