# src/bridgeline/engine/clock.py
"""Clock abstraction for testable timeout logic.

Per-item timeouts are a budget shared by every awaited chain call of that
item (approval receipt, simulation, confirmation). The executor measures
the budget through a Clock so tests can exhaust it without sleeping.

Production code uses SystemClock (the default). Tests inject MockClock.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Abstract monotonic clock.

    Implementations:
    - SystemClock: Uses time.monotonic() (production)
    - MockClock: Returns controllable times (testing)
    """

    def monotonic(self) -> float:
        """Return monotonic time in seconds."""
        ...


class SystemClock:
    """Production clock using time.monotonic()."""

    def monotonic(self) -> float:
        return time.monotonic()


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(start=0.0)
        deadline = Deadline(clock, budget_seconds=1.0)
        clock.advance(1.5)
        assert deadline.expired
    """

    def __init__(self, start: float = 0.0) -> None:
        self._current = start

    def monotonic(self) -> float:
        return self._current

    def advance(self, seconds: float) -> None:
        """Advance mock time by specified seconds.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += seconds

    def set(self, value: float) -> None:
        """Set mock time to an absolute value (may go backwards; tests only)."""
        self._current = value


class Deadline:
    """A time budget started at construction.

    Example:
        deadline = Deadline(clock, budget_seconds=300.0)
        receipt = chain.submit_approval(token_id, timeout=deadline.remaining())
    """

    __slots__ = ("_budget", "_clock", "_expires_at")

    def __init__(self, clock: Clock, budget_seconds: float) -> None:
        if budget_seconds <= 0:
            raise ValueError(f"budget_seconds must be positive, got {budget_seconds}")
        self._clock = clock
        self._budget = budget_seconds
        self._expires_at = clock.monotonic() + budget_seconds

    @property
    def budget_seconds(self) -> float:
        return self._budget

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self._expires_at - self._clock.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
