"""
Error hierarchy for guardrail-engine.
"""

from guardrail_engine.errors.base import (
    CircuitOpenError,
    ErrorContext,
    GuardrailEngineError,
    GuardrailError,
    ValidationError,
)

__all__ = [
    "CircuitOpenError",
    "ErrorContext",
    "GuardrailEngineError",
    "GuardrailError",
    "ValidationError",
]
