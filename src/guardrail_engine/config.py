"""
Engine-wide settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from guardrail_engine.errors import ValidationError
from guardrail_engine.resilience import CircuitBreakerConfig


@dataclass
class EngineConfig:
    """Settings for a :class:`~guardrail_engine.registry.GuardrailRegistry`.

    Attributes:
        cache_ttl_seconds: TTL for cached allowed verdicts
        cache_timeout_seconds: Bound on every cache call
        default_persona: Persona used when the caller names none
        breaker: Pipeline circuit breaker settings
    """

    cache_ttl_seconds: float = 60.0
    cache_timeout_seconds: float = 0.25
    default_persona: str = "default"
    breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)

    def __post_init__(self) -> None:
        if self.cache_ttl_seconds <= 0:
            raise ValidationError(
                "cache_ttl_seconds must be positive",
                field="cache_ttl_seconds",
                actual=self.cache_ttl_seconds,
            )
        if self.cache_timeout_seconds <= 0:
            raise ValidationError(
                "cache_timeout_seconds must be positive",
                field="cache_timeout_seconds",
                actual=self.cache_timeout_seconds,
            )
        if not self.default_persona:
            raise ValidationError("default_persona must be non-empty", field="default_persona")

    @classmethod
    def default(cls) -> EngineConfig:
        """Create default configuration."""
        return cls()

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Create configuration from environment variables.

        Reads ``GUARDRAILS_CACHE_TTL_SECS``, ``GUARDRAILS_CACHE_TIMEOUT_SECS``
        and ``GUARDRAILS_DEFAULT_PERSONA``, plus the breaker variables read
        by :meth:`CircuitBreakerConfig.from_env`.
        """
        return cls(
            cache_ttl_seconds=float(os.getenv("GUARDRAILS_CACHE_TTL_SECS", "60")),
            cache_timeout_seconds=float(os.getenv("GUARDRAILS_CACHE_TIMEOUT_SECS", "0.25")),
            default_persona=os.getenv("GUARDRAILS_DEFAULT_PERSONA", "default"),
            breaker=CircuitBreakerConfig.from_env(),
        )
