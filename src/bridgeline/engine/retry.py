# src/bridgeline/engine/retry.py
"""RetryManager: Retry logic with tenacity integration.

Used by the PreCrime gate around the read-only forked-simulation call,
where an infrastructure hiccup is worth a second try. State-changing chain
calls (approval, bridge submission) are never retried here: once a
transaction is broadcast it cannot be safely re-sent, so retrying a failed
item is a batch-level decision (see BridgeService.retry_failed).
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

if TYPE_CHECKING:
    from bridgeline.core.config import GateSettings

T = TypeVar("T")


class MaxRetriesExceeded(Exception):
    """Raised when max retry attempts are exceeded."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Max retries ({attempts}) exceeded: {last_error}")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    max_attempts is the TOTAL number of tries, not the number of retries.
    So max_attempts=3 means: try, retry, retry (3 total).
    """

    max_attempts: int = 3
    base_delay: float = 0.5  # seconds
    max_delay: float = 10.0  # seconds
    jitter: float = 0.25  # seconds
    exponential_base: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    @classmethod
    def no_retry(cls) -> "RetryConfig":
        """Factory for no-retry configuration (single attempt)."""
        return cls(max_attempts=1)

    @classmethod
    def from_settings(cls, settings: "GateSettings") -> "RetryConfig":
        """Factory from the gate's validated settings model."""
        return cls(
            max_attempts=settings.simulation_attempts,
            base_delay=settings.initial_delay_seconds,
            max_delay=settings.max_delay_seconds,
            exponential_base=settings.exponential_base,
        )


class RetryManager:
    """Runs an operation with exponential backoff and jitter.

    Example:
        manager = RetryManager(RetryConfig(max_attempts=3))

        trace = manager.execute_with_retry(
            lambda: chain.forked_simulate(token_id, destination, timeout=30.0),
            is_retryable=lambda e: isinstance(e, SimulationUnavailableError),
            on_retry=lambda attempt, error: logger.warning(...),
        )
    """

    def __init__(self, config: RetryConfig, *, sleep: Callable[[float], None] = time.sleep) -> None:
        """Initialize with config.

        Args:
            config: Retry configuration
            sleep: Sleep function used between attempts (tests pass a no-op)
        """
        self._config = config
        self._sleep = sleep

    @property
    def config(self) -> RetryConfig:
        return self._config

    def execute_with_retry(
        self,
        operation: Callable[[], T],
        *,
        is_retryable: Callable[[BaseException], bool],
        on_retry: Callable[[int, BaseException], None] | None = None,
    ) -> T:
        """Execute operation with retry logic.

        Args:
            operation: Operation to execute
            is_retryable: Function to check if error is retryable
            on_retry: Optional callback (attempt, error) before each retry;
                attempt is the 1-based number of the attempt that failed

        Returns:
            Result of operation

        Raises:
            MaxRetriesExceeded: If every attempt failed with a retryable error
            Exception: The first non-retryable error, unchanged
        """
        attempt = 0
        last_error: BaseException | None = None

        try:
            for attempt_state in Retrying(
                stop=stop_after_attempt(self._config.max_attempts),
                wait=wait_exponential_jitter(
                    initial=self._config.base_delay,
                    max=self._config.max_delay,
                    exp_base=self._config.exponential_base,
                    jitter=self._config.jitter,
                ),
                retry=retry_if_exception(is_retryable),
                sleep=self._sleep,
                reraise=False,
            ):
                with attempt_state:
                    attempt = attempt_state.retry_state.attempt_number
                    try:
                        return operation()
                    except Exception as e:
                        last_error = e
                        # Only announce a retry that will actually happen
                        if is_retryable(e) and on_retry and attempt < self._config.max_attempts:
                            on_retry(attempt, e)
                        raise

        except RetryError as e:
            final_error = last_error or e.last_attempt.exception()
            assert final_error is not None, "RetryError without exception is impossible"
            raise MaxRetriesExceeded(attempt, final_error) from e

        raise RuntimeError("Unexpected state in retry loop")  # pragma: no cover
