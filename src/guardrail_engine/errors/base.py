"""
Base error classes for guardrail-engine.

Provides a layered error hierarchy:
- GuardrailEngineError: Base class for all library errors
- ValidationError: Malformed persona or engine configuration
- GuardrailError: A guardrail misbehaved (bad return value)
- CircuitOpenError: The pipeline circuit breaker rejected the call
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ErrorContext:
    """Structured error context for diagnostics.

    Provides actionable information for debugging and error handling.
    """

    field_path: str | None = None
    """Path to the problematic field (e.g., 'guardrails.spam.max_repeats')"""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'validation', 'guardrail', 'resilience')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.field_path:
            parts.append(f"at '{self.field_path}'")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class GuardrailEngineError(Exception):
    """Base class for all guardrail-engine errors.

    Attributes:
        message: Human-readable error message
        context: Optional structured error context
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> GuardrailEngineError:
        """Add a hint to this error."""
        self.context.hint = hint
        return self


class ValidationError(GuardrailEngineError):
    """Invalid configuration handed to the engine.

    Raised when:
    - A persona configuration has a non-list ``enabled`` entry
    - A persona catalog file is malformed
    - Engine settings are out of range
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        field: str | None = None,
        expected: Any = None,
        actual: Any = None,
    ) -> None:
        ctx = context or ErrorContext(source="validation")
        if field:
            ctx.field_path = field
        if expected is not None:
            ctx.details["expected"] = expected
        if actual is not None:
            ctx.details["actual"] = actual
        super().__init__(message, ctx)
        self.field = field
        self.expected = expected
        self.actual = actual


class GuardrailError(GuardrailEngineError):
    """A guardrail failed in a way the registry can attribute to it."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        guardrail: str | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="guardrail")
        if guardrail:
            ctx.details["guardrail"] = guardrail
        super().__init__(message, ctx)
        self.guardrail = guardrail


class CircuitOpenError(GuardrailEngineError):
    """Raised when the circuit is open and the pipeline call is rejected."""

    def __init__(
        self,
        message: str = "Circuit breaker is open",
        time_until_retry: float | None = None,
    ) -> None:
        ctx = ErrorContext(source="resilience")
        if time_until_retry is not None:
            ctx.details["time_until_retry"] = round(time_until_retry, 3)
        super().__init__(message, ctx)
        self.time_until_retry = time_until_retry
