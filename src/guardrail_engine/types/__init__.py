"""
Data models for guardrail-engine.
"""

from guardrail_engine.types.config import GuardrailConfig, PersonaGuardrailConfig
from guardrail_engine.types.context import GuardrailContext, Snippet
from guardrail_engine.types.result import (
    GuardrailCategory,
    GuardrailResult,
    GuardrailSeverity,
)

__all__ = [
    "GuardrailCategory",
    "GuardrailConfig",
    "GuardrailContext",
    "GuardrailResult",
    "GuardrailSeverity",
    "PersonaGuardrailConfig",
    "Snippet",
]
