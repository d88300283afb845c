"""Value-or-error result type returned by pipeline phases."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Literal, TypeVar

T = TypeVar("T")

Severity = Literal["warning", "error"]


@dataclass(frozen=True)
class PhaseResult(Generic[T]):
    """Outcome of one pipeline phase.

    Exactly one of ``value`` or ``error`` is meaningful. A failed phase
    carries the severity the orchestrator should record it with: warnings
    degrade the run, errors make it unsuccessful.

    Attributes:
        phase: Human-readable phase name used in messages.
        value: Phase output when it succeeded.
        error: Failure description when it did not.
        severity: How the failure is recorded.
        warnings: Non-fatal messages produced by a successful phase.
    """

    phase: str
    value: T | None = None
    error: str | None = None
    severity: Severity = "warning"
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, phase: str, value: T, warnings: tuple[str, ...] = ()) -> PhaseResult[T]:
        return cls(phase=phase, value=value, warnings=warnings)

    @classmethod
    def failure(
        cls, phase: str, error: BaseException | str, severity: Severity = "warning"
    ) -> PhaseResult[T]:
        message = error if isinstance(error, str) else f"{type(error).__name__}: {error}"
        return cls(phase=phase, error=message, severity=severity)

    def message(self) -> str:
        """Failure message prefixed with the phase name."""
        return f"{self.phase} failed: {self.error}"
