"""PreCrime validation verdicts.

A verdict has two independent flags:
- is_valid: the simulated call did not revert and obeys protocol invariants
- success: the call's return path indicates overall success

An item is only allowed into BRIDGING when both are true.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

SIMULATION_UNAVAILABLE = "simulation unavailable"


@dataclass(frozen=True, slots=True)
class PreCrimeValidationResult:
    """Verdict of simulating one item's execution on its destination chain.

    Use the factory methods to create instances; they keep the
    "error is set whenever a flag is false" rule in one place.
    """

    is_valid: bool
    success: bool
    error: str | None = None
    warnings: tuple[str, ...] = ()
    simulation_result: Any = None

    def __post_init__(self) -> None:
        if not self.passed and self.error is None:
            raise ValueError("A failing PreCrimeValidationResult must carry an error")

    @property
    def passed(self) -> bool:
        """Gate discipline: both flags must hold."""
        return self.is_valid and self.success

    @property
    def unavailable(self) -> bool:
        """True when the verdict is fail-closed because simulation could not run."""
        return self.error is not None and self.error.startswith(SIMULATION_UNAVAILABLE)

    @classmethod
    def passed_with(
        cls,
        *,
        warnings: Iterable[str] = (),
        simulation_result: Any = None,
    ) -> PreCrimeValidationResult:
        return cls(
            is_valid=True,
            success=True,
            warnings=tuple(warnings),
            simulation_result=simulation_result,
        )

    @classmethod
    def rejected(
        cls,
        error: str,
        *,
        is_valid: bool = False,
        success: bool = False,
        warnings: Iterable[str] = (),
        simulation_result: Any = None,
    ) -> PreCrimeValidationResult:
        if is_valid and success:
            raise ValueError("rejected() requires at least one failing flag")
        return cls(
            is_valid=is_valid,
            success=success,
            error=error,
            warnings=tuple(warnings),
            simulation_result=simulation_result,
        )

    @classmethod
    def unavailable_because(cls, detail: str | None = None) -> PreCrimeValidationResult:
        """Fail-closed verdict for when the simulation infrastructure faulted."""
        error = SIMULATION_UNAVAILABLE if not detail else f"{SIMULATION_UNAVAILABLE}: {detail}"
        return cls(is_valid=False, success=False, error=error)
