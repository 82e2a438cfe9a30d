"""guardrail-engine: pluggable guardrails for AI assistant queries.

Every inbound query is checked by an ordered, per-persona set of
guardrails before retrieval and generation run. The first block wins;
failures of the pipeline itself fail open behind a circuit breaker.
"""
from __future__ import annotations

from guardrail_engine.cache import CacheBackend, MemoryCache, NullCache
from guardrail_engine.config import EngineConfig
from guardrail_engine.defaults import check_guardrails, create_default_registry
from guardrail_engine.errors import (
    CircuitOpenError,
    GuardrailEngineError,
    GuardrailError,
    ValidationError,
)
from guardrail_engine.guardrails import (
    Guardrail,
    LengthGuardrail,
    OffTopicGuardrail,
    PatternGuardrail,
    PIIGuardrail,
    ProfanityGuardrail,
    RelevanceGuardrail,
    SafetyGuardrail,
    SpamGuardrail,
)
from guardrail_engine.personas import load_default_personas, load_persona_file
from guardrail_engine.registry import GuardrailRegistry
from guardrail_engine.resilience import CircuitBreaker, CircuitBreakerConfig
from guardrail_engine.types import (
    GuardrailCategory,
    GuardrailConfig,
    GuardrailContext,
    GuardrailResult,
    GuardrailSeverity,
    PersonaGuardrailConfig,
    Snippet,
)

__version__ = "0.1.0"

__all__ = [
    # Cache
    "CacheBackend",
    # Resilience
    "CircuitBreaker",
    "CircuitBreakerConfig",
    # Errors
    "CircuitOpenError",
    # Config
    "EngineConfig",
    # Guardrails
    "Guardrail",
    "GuardrailCategory",
    "GuardrailConfig",
    "GuardrailContext",
    "GuardrailEngineError",
    "GuardrailError",
    # Registry
    "GuardrailRegistry",
    # Types
    "GuardrailResult",
    "GuardrailSeverity",
    "LengthGuardrail",
    "MemoryCache",
    "NullCache",
    "OffTopicGuardrail",
    "PIIGuardrail",
    "PatternGuardrail",
    "PersonaGuardrailConfig",
    "ProfanityGuardrail",
    "RelevanceGuardrail",
    "SafetyGuardrail",
    "Snippet",
    "SpamGuardrail",
    "ValidationError",
    # Version
    "__version__",
    "check_guardrails",
    "create_default_registry",
    "load_default_personas",
    "load_persona_file",
]
