"""
Resilience layer: the circuit breaker that bounds the guardrail pipeline.
"""

from guardrail_engine.errors import CircuitOpenError
from guardrail_engine.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    CircuitStats,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitOpenError",
    "CircuitState",
    "CircuitStats",
]
