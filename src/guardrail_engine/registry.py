"""
Guardrail registry: registration, persona configuration and evaluation.

The registry runs a persona's guardrails in a fixed order and stops at the
first block. Individual guardrail failures are isolated (safety fails
closed, everything else is skipped); failures of the pipeline as a whole
fail open behind a circuit breaker so a broken guardrail stack never takes
the assistant down with it.
"""

from __future__ import annotations

import asyncio
import inspect
import threading
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from guardrail_engine.cache import verdict_key
from guardrail_engine.config import EngineConfig
from guardrail_engine.errors import GuardrailError, ValidationError
from guardrail_engine.resilience import CircuitBreaker, CircuitOpenError
from guardrail_engine.telemetry import (
    CACHE_HIT,
    GUARDRAIL_CHECK,
    GUARDRAIL_ERROR,
    GuardrailMetrics,
    MetricsSnapshot,
    get_logger,
    guardrail_key,
)
from guardrail_engine.types import (
    GuardrailCategory,
    GuardrailConfig,
    GuardrailContext,
    GuardrailResult,
    GuardrailSeverity,
    PersonaGuardrailConfig,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from guardrail_engine.cache import CacheBackend
    from guardrail_engine.guardrails import Guardrail
    from guardrail_engine.telemetry import GuardrailLogger

SAFETY_ERROR_REASON = "Safety validation system error. Query cannot be processed."


def order_guardrails(guardrails: Sequence[Guardrail]) -> list[Guardrail]:
    """Execution order for a persona's guardrails.

    Safety guardrails run first and relevance guardrails run before
    off-topic ones. Everything else keeps its configured relative order.
    Applying the ordering twice gives the same result.
    """
    ordered = [g for g in guardrails if g.category == GuardrailCategory.SAFETY]
    ordered += [g for g in guardrails if g.category != GuardrailCategory.SAFETY]

    categories = [g.category for g in ordered]
    if GuardrailCategory.RELEVANCE in categories and GuardrailCategory.OFF_TOPIC in categories:
        first_off_topic = categories.index(GuardrailCategory.OFF_TOPIC)
        late = {
            i for i in range(first_off_topic, len(ordered))
            if ordered[i].category == GuardrailCategory.RELEVANCE
        }
        if late:
            # Positions, not identities: a guardrail may appear more than once
            moved = [g for i, g in enumerate(ordered) if i in late]
            rest = [g for i, g in enumerate(ordered) if i not in late]
            ordered = rest[:first_off_topic] + moved + rest[first_off_topic:]

    return ordered


class GuardrailRegistry:
    """Registry and evaluator for guardrails.

    Example:
        >>> registry = GuardrailRegistry(cache=MemoryCache())
        >>> registry.register(SafetyGuardrail())
        >>> registry.register(PIIGuardrail())
        >>> registry.configure_persona("support", {"enabled": ["safety", "pii"]})
        >>> result = await registry.check(
        ...     GuardrailContext(query="my email is a@b.co", session_id="s1"),
        ...     persona="support",
        ... )
        >>> result.allowed
        False
    """

    def __init__(
        self,
        cache: CacheBackend | None = None,
        config: EngineConfig | None = None,
        logger: GuardrailLogger | None = None,
        metrics: GuardrailMetrics | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            cache: Verdict cache; None disables result caching
            config: Engine settings
            logger: Logger override
            metrics: Metrics collector override
            breaker: Pipeline circuit breaker override
        """
        self._cache = cache
        self._config = config or EngineConfig.default()
        self._logger = logger or get_logger("guardrail_engine.registry")
        self._metrics = metrics or GuardrailMetrics()
        self._breaker = breaker or CircuitBreaker(
            "guardrails", self._config.breaker, logger=self._logger
        )

        self._lock = threading.Lock()
        self._guardrails: dict[str, Guardrail] = {}
        self._personas: dict[str, PersonaGuardrailConfig] = {}

    @property
    def config(self) -> EngineConfig:
        """Engine settings."""
        return self._config

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Breaker guarding the pipeline."""
        return self._breaker

    @property
    def metrics(self) -> GuardrailMetrics:
        """Underlying metrics collector."""
        return self._metrics

    # Registration

    def register(self, guardrail: Guardrail) -> GuardrailRegistry:
        """Register a guardrail, replacing any with the same name.

        Returns:
            Self for chaining
        """
        with self._lock:
            replaced = guardrail.name in self._guardrails
            self._guardrails[guardrail.name] = guardrail

        if replaced:
            self._logger.warning("Guardrail already registered, overwriting", guardrail=guardrail.name)
        self._logger.info(
            "Registered guardrail",
            guardrail=guardrail.name,
            category=guardrail.category.value,
        )
        return self

    def unregister(self, name: str) -> bool:
        """Remove a guardrail.

        Returns:
            True if it was registered
        """
        with self._lock:
            return self._guardrails.pop(name, None) is not None

    def get(self, name: str) -> Guardrail | None:
        """Look up a guardrail by name."""
        with self._lock:
            return self._guardrails.get(name)

    def list(self) -> list[Guardrail]:
        """All guardrails in registration order."""
        with self._lock:
            return list(self._guardrails.values())

    def list_by_category(self, category: GuardrailCategory | str) -> list[Guardrail]:
        """Guardrails of one category."""
        category = GuardrailCategory(category)
        return [g for g in self.list() if g.category == category]

    def __len__(self) -> int:
        with self._lock:
            return len(self._guardrails)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._guardrails

    # Personas

    def configure_persona(
        self,
        persona: str,
        config: PersonaGuardrailConfig | Mapping[str, Any],
    ) -> PersonaGuardrailConfig:
        """Set which guardrails a persona runs and how they are configured.

        Names that are not registered are dropped with a warning, and repeated
        names are kept once, at their first position. The persona name is
        stored lower-cased; configuring it again replaces the previous entry.

        Args:
            persona: Persona name
            config: Persona configuration or an equivalent mapping

        Returns:
            The stored configuration

        Raises:
            ValidationError: If ``enabled`` is not a list or the mapping is malformed
        """
        if not persona:
            raise ValidationError("Persona name must be non-empty", field="persona")

        parsed = self._parse_persona_config(persona, config)

        names = list(dict.fromkeys(parsed.enabled))
        with self._lock:
            unknown = [name for name in names if name not in self._guardrails]
            enabled = [name for name in names if name in self._guardrails]

        if unknown:
            self._logger.warning(
                "Persona references unknown guardrails",
                persona=persona,
                unknown=unknown,
            )

        stored = PersonaGuardrailConfig(enabled=enabled, guardrails=dict(parsed.guardrails))
        key = persona.lower()
        with self._lock:
            self._personas[key] = stored

        self._logger.info("Configured guardrails for persona", persona=key, enabled=enabled)
        return stored

    @staticmethod
    def _parse_persona_config(
        persona: str,
        config: PersonaGuardrailConfig | Mapping[str, Any],
    ) -> PersonaGuardrailConfig:
        if isinstance(config, PersonaGuardrailConfig):
            return config

        if not isinstance(config, Mapping):
            raise ValidationError(
                f"Persona config for '{persona}' must be a mapping",
                field=persona,
                expected="mapping",
                actual=type(config).__name__,
            )

        enabled = config.get("enabled")
        if not isinstance(enabled, list):
            raise ValidationError(
                "Persona config must have an enabled list",
                field="enabled",
                expected="list",
                actual=type(enabled).__name__,
            )

        try:
            return PersonaGuardrailConfig.model_validate(dict(config))
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid persona config for '{persona}': {e.error_count()} error(s)",
                field=persona,
                actual=e.errors(include_url=False),
            ) from e

    def get_persona_config(self, persona: str | None) -> PersonaGuardrailConfig | None:
        """Configuration for a persona, case-insensitively."""
        if not persona:
            return None
        with self._lock:
            return self._personas.get(persona.lower())

    def personas(self) -> list[str]:
        """Configured persona names."""
        with self._lock:
            return list(self._personas)

    # Evaluation

    async def check(
        self,
        context: GuardrailContext,
        persona: str | None = None,
    ) -> GuardrailResult:
        """Evaluate a query against a persona's guardrails.

        Never raises for pipeline failures: an open breaker, a timeout or
        an unexpected error yields an allowed result flagged ``degraded``.

        Args:
            context: Query, snippets and session details
            persona: Persona override; falls back to ``context.persona``

        Returns:
            The first blocking result, or an allowed result
        """
        start = time.perf_counter()
        persona_name = (persona or context.persona or self._config.default_persona).lower()
        cache_key = verdict_key(persona_name, context.query)

        cached = await self._read_cache(cache_key)
        if cached is not None:
            self._metrics.record(CACHE_HIT, cached.category, _elapsed_ms(start), cached.allowed)
            return cached

        try:
            result = await self._breaker.execute(
                lambda: self._execute_guardrails(context, persona_name)
            )
        except Exception as e:
            message = _describe_failure(e)
            self._logger.error(
                "Guardrail check failed, allowing query",
                error=message,
                persona=persona_name,
                session_id=context.session_id,
                breaker_state=self._breaker.state.value,
            )
            self._metrics.record(
                GUARDRAIL_ERROR,
                GuardrailCategory.CUSTOM,
                _elapsed_ms(start),
                allowed=True,
                error=True,
            )
            return GuardrailResult.allow(GuardrailCategory.CUSTOM, degraded=True, error=message)

        if result.allowed:
            await self._write_cache(cache_key, result)

        self._metrics.record(GUARDRAIL_CHECK, result.category, _elapsed_ms(start), result.allowed)
        return result

    async def _execute_guardrails(
        self,
        context: GuardrailContext,
        persona_name: str,
    ) -> GuardrailResult:
        persona_config = self.get_persona_config(persona_name)

        with self._lock:
            if persona_config is None:
                selected = list(self._guardrails.values())
            else:
                selected = [
                    self._guardrails[name]
                    for name in persona_config.enabled
                    if name in self._guardrails
                ]

        for guardrail in order_guardrails(selected):
            config = (
                persona_config.config_for(guardrail.name)
                if persona_config is not None
                else GuardrailConfig.default()
            )
            if not config.enabled:
                continue

            key = guardrail_key(guardrail.name)
            check_start = time.perf_counter()
            try:
                result = await self._run_guardrail(guardrail, context, config)
            except Exception as e:
                self._logger.error(
                    "Guardrail raised an error",
                    guardrail=guardrail.name,
                    error=str(e) or type(e).__name__,
                    session_id=context.session_id,
                )
                self._metrics.record(key, GuardrailCategory.CUSTOM, 0.0, allowed=False, error=True)

                if guardrail.category == GuardrailCategory.SAFETY:
                    return GuardrailResult.block(
                        GuardrailCategory.SAFETY,
                        SAFETY_ERROR_REASON,
                        GuardrailSeverity.CRITICAL,
                        guardrail=guardrail.name,
                    )
                continue

            latency_ms = _elapsed_ms(check_start)
            self._metrics.record(key, result.category, latency_ms, result.allowed)

            if not result.allowed:
                self._logger.warning(
                    "Query blocked by guardrail",
                    guardrail=guardrail.name,
                    category=result.category.value,
                    severity=result.severity.value if result.severity else None,
                    session_id=context.session_id,
                    latency_ms=round(latency_ms, 3),
                )
                return result

        return GuardrailResult.allow(GuardrailCategory.CUSTOM)

    @staticmethod
    async def _run_guardrail(
        guardrail: Guardrail,
        context: GuardrailContext,
        config: GuardrailConfig,
    ) -> GuardrailResult:
        """Invoke a guardrail, accepting synchronous implementations too."""
        result: Any = guardrail.check(context, config)
        if inspect.isawaitable(result):
            result = await result

        if not isinstance(result, GuardrailResult):
            raise GuardrailError(
                f"Guardrail returned {type(result).__name__}, expected GuardrailResult",
                guardrail=guardrail.name,
            )
        return result

    async def _read_cache(self, key: str) -> GuardrailResult | None:
        if self._cache is None:
            return None
        try:
            value = await asyncio.wait_for(
                self._cache.get(key), self._config.cache_timeout_seconds
            )
            if value is None:
                return None
            if isinstance(value, GuardrailResult):
                return value
            return GuardrailResult.model_validate(value)
        except Exception as e:
            self._logger.warning(
                "Cache read failed for guardrails, continuing",
                error=str(e) or type(e).__name__,
            )
            return None

    async def _write_cache(self, key: str, result: GuardrailResult) -> None:
        if self._cache is None:
            return
        try:
            await asyncio.wait_for(
                self._cache.set(key, result.to_dict(), ttl=self._config.cache_ttl_seconds),
                self._config.cache_timeout_seconds,
            )
        except Exception as e:
            self._logger.warning(
                "Cache write failed for guardrails",
                error=str(e) or type(e).__name__,
            )

    # Administration

    def get_metrics(self) -> dict[str, MetricsSnapshot]:
        """Per-key counters with p50/p95/p99 latency in milliseconds."""
        return self._metrics.snapshot()

    def clear_metrics(self) -> None:
        """Reset all metrics."""
        self._metrics.reset()

    def reset_circuit(self) -> None:
        """Force the pipeline breaker closed."""
        self._breaker.reset()

    async def close(self) -> None:
        """Release resources held by registered guardrails."""
        for guardrail in self.list():
            close = getattr(guardrail, "close", None)
            if not callable(close):
                continue
            try:
                result = close()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._logger.warning(
                    "Failed to close guardrail",
                    guardrail=guardrail.name,
                    error=str(e) or type(e).__name__,
                )

    def __repr__(self) -> str:
        return (
            f"GuardrailRegistry(guardrails={len(self)}, personas={len(self.personas())}, "
            f"breaker={self._breaker.state.value})"
        )


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _describe_failure(error: Exception) -> str:
    if isinstance(error, CircuitOpenError):
        return error.message
    if isinstance(error, asyncio.TimeoutError):
        return "Guardrail pipeline timed out"
    return str(error) or type(error).__name__
