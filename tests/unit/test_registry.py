"""Tests for GuardrailRegistry."""

from __future__ import annotations

import asyncio

import pytest

from guardrail_engine.cache import MemoryCache, verdict_key
from guardrail_engine.config import EngineConfig
from guardrail_engine.errors import ValidationError
from guardrail_engine.guardrails import Guardrail
from guardrail_engine.registry import SAFETY_ERROR_REASON, GuardrailRegistry, order_guardrails
from guardrail_engine.resilience import CircuitBreakerConfig, CircuitState
from guardrail_engine.types import (
    GuardrailCategory,
    GuardrailContext,
    GuardrailResult,
    GuardrailSeverity,
    PersonaGuardrailConfig,
)


class SpyGuardrail(Guardrail):
    """Guardrail with a fixed verdict that counts its calls."""

    category = GuardrailCategory.CUSTOM

    def __init__(
        self,
        name: str,
        category: GuardrailCategory = GuardrailCategory.CUSTOM,
        block: bool = False,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name  # type: ignore[misc]
        self.category = category  # type: ignore[misc]
        self._block = block
        self._error = error
        self._delay = delay
        self.calls = 0
        self.configs: list = []
        self.closed = False

    async def check(self, context, config=None):
        self.calls += 1
        self.configs.append(config)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        if self._block:
            return self.block(f"blocked by {self.name}", GuardrailSeverity.MEDIUM)
        return self.allow()

    def close(self) -> None:
        self.closed = True


class SyncGuardrail(Guardrail):
    """Guardrail implemented synchronously."""

    name = "sync"
    category = GuardrailCategory.CUSTOM

    def check(self, context, config=None):  # type: ignore[override]
        return self.block("sync block")


class AsyncClosingGuardrail(SpyGuardrail):
    """Guardrail with an async close."""

    async def close(self) -> None:  # type: ignore[override]
        self.closed = True


def ctx(query: str = "How do I export my video?", **kwargs) -> GuardrailContext:
    return GuardrailContext(query=query, session_id="s1", **kwargs)


class TestRegistration:
    """Tests for registering and looking up guardrails."""

    def test_register_and_get(self, registry: GuardrailRegistry) -> None:
        """Test guardrails are retrievable by name."""
        spy = SpyGuardrail("spy")
        registry.register(spy)
        assert registry.get("spy") is spy
        assert registry.get("missing") is None
        assert "spy" in registry
        assert len(registry) == 1

    def test_register_overwrites(self, registry: GuardrailRegistry, log_stream) -> None:
        """Test re-registering a name replaces the guardrail and warns."""
        registry.register(SpyGuardrail("spy"))
        replacement = SpyGuardrail("spy")
        registry.register(replacement)
        assert registry.get("spy") is replacement
        assert len(registry) == 1
        assert "already registered" in log_stream.getvalue()

    def test_unregister(self, registry: GuardrailRegistry) -> None:
        """Test unregister reports whether anything was removed."""
        registry.register(SpyGuardrail("spy"))
        assert registry.unregister("spy") is True
        assert registry.unregister("spy") is False

    def test_list_by_category(self, registry: GuardrailRegistry) -> None:
        """Test filtering by category."""
        registry.register(SpyGuardrail("a", GuardrailCategory.SAFETY))
        registry.register(SpyGuardrail("b", GuardrailCategory.PII))
        registry.register(SpyGuardrail("c", GuardrailCategory.SAFETY))

        assert [g.name for g in registry.list()] == ["a", "b", "c"]
        assert [g.name for g in registry.list_by_category(GuardrailCategory.SAFETY)] == ["a", "c"]
        assert [g.name for g in registry.list_by_category("pii")] == ["b"]


class TestPersonaConfiguration:
    """Tests for configure_persona."""

    def test_unknown_guardrails_dropped(self, registry: GuardrailRegistry, log_stream) -> None:
        """Test names that are not registered are filtered out."""
        registry.register(SpyGuardrail("safety", GuardrailCategory.SAFETY))
        registry.configure_persona("x", {"enabled": ["safety", "not_a_real_guardrail"]})

        assert registry.get_persona_config("x").enabled == ["safety"]
        assert "not_a_real_guardrail" in log_stream.getvalue()

    def test_enabled_must_be_list(self, registry: GuardrailRegistry) -> None:
        """Test a non-list enabled entry is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            registry.configure_persona("x", {"enabled": "safety"})
        assert exc_info.value.field == "enabled"

    def test_malformed_guardrail_config(self, registry: GuardrailRegistry) -> None:
        """Test malformed per-guardrail config is rejected."""
        with pytest.raises(ValidationError):
            registry.configure_persona("x", {"enabled": [], "guardrails": {"spam": "off"}})

    def test_case_insensitive(self, registry: GuardrailRegistry) -> None:
        """Test personas are stored and looked up lower-cased."""
        registry.register(SpyGuardrail("spy"))
        registry.configure_persona("Moderator", PersonaGuardrailConfig(enabled=["spy"]))

        assert registry.personas() == ["moderator"]
        assert registry.get_persona_config("MODERATOR").enabled == ["spy"]
        assert registry.get_persona_config("") is None
        assert registry.get_persona_config(None) is None

    def test_reconfigure_replaces(self, registry: GuardrailRegistry) -> None:
        """Test configuring a persona twice keeps the latest config."""
        registry.register(SpyGuardrail("a"))
        registry.register(SpyGuardrail("b"))
        registry.configure_persona("p", {"enabled": ["a"]})
        registry.configure_persona("p", {"enabled": ["b"]})
        assert registry.get_persona_config("p").enabled == ["b"]


class TestOrdering:
    """Tests for order_guardrails."""

    def test_safety_first_relevance_before_off_topic(self) -> None:
        """Test the fixed ordering rules."""
        guardrails = [
            SpyGuardrail("off_topic", GuardrailCategory.OFF_TOPIC),
            SpyGuardrail("pii", GuardrailCategory.PII),
            SpyGuardrail("relevance", GuardrailCategory.RELEVANCE),
            SpyGuardrail("safety", GuardrailCategory.SAFETY),
            SpyGuardrail("length", GuardrailCategory.LENGTH),
        ]
        ordered = [g.name for g in order_guardrails(guardrails)]
        assert ordered == ["safety", "relevance", "off_topic", "pii", "length"]

    def test_idempotent(self) -> None:
        """Test ordering an ordered list changes nothing."""
        guardrails = [
            SpyGuardrail("length", GuardrailCategory.LENGTH),
            SpyGuardrail("off_topic", GuardrailCategory.OFF_TOPIC),
            SpyGuardrail("safety", GuardrailCategory.SAFETY),
            SpyGuardrail("relevance", GuardrailCategory.RELEVANCE),
        ]
        once = order_guardrails(guardrails)
        assert order_guardrails(once) == once

    def test_repeated_relevance_still_precedes_off_topic(self) -> None:
        """Test a guardrail listed twice cannot push relevance behind off_topic."""
        relevance = SpyGuardrail("relevance", GuardrailCategory.RELEVANCE)
        off_topic = SpyGuardrail("off_topic", GuardrailCategory.OFF_TOPIC)
        ordered = [g.name for g in order_guardrails([relevance, off_topic, relevance])]
        assert ordered.index("relevance") < ordered.index("off_topic")

    def test_persona_duplicates_kept_once(self, registry: GuardrailRegistry) -> None:
        """Test repeated enabled names are stored once, first position wins."""
        registry.register(SpyGuardrail("relevance", GuardrailCategory.RELEVANCE))
        registry.register(SpyGuardrail("off_topic", GuardrailCategory.OFF_TOPIC))

        stored = registry.configure_persona(
            "p", {"enabled": ["relevance", "off_topic", "relevance"]}
        )
        assert stored.enabled == ["relevance", "off_topic"]

        selected = [registry.get(name) for name in stored.enabled]
        assert [g.name for g in order_guardrails(selected)] == ["relevance", "off_topic"]

    @pytest.mark.asyncio
    async def test_duplicate_names_run_once(self, registry: GuardrailRegistry) -> None:
        """Test a guardrail listed twice runs once per check."""
        spy = SpyGuardrail("a")
        registry.register(spy)
        registry.configure_persona("p", {"enabled": ["a", "a"]})

        await registry.check(ctx(), persona="p")
        assert spy.calls == 1

    def test_other_guardrails_keep_order(self) -> None:
        """Test unrelated guardrails keep their relative order."""
        guardrails = [SpyGuardrail(n) for n in ("c", "a", "b")]
        assert [g.name for g in order_guardrails(guardrails)] == ["c", "a", "b"]


class TestCheck:
    """Tests for GuardrailRegistry.check."""

    @pytest.mark.asyncio
    async def test_all_pass(self, registry: GuardrailRegistry) -> None:
        """Test a passing pipeline returns an allowed custom result."""
        registry.register(SpyGuardrail("a"))
        result = await registry.check(ctx())
        assert result.allowed is True
        assert result.category == GuardrailCategory.CUSTOM
        assert result.degraded is False

    @pytest.mark.asyncio
    async def test_short_circuit(self, registry: GuardrailRegistry, log_stream) -> None:
        """Test the first block stops evaluation."""
        first = SpyGuardrail("first", block=True)
        second = SpyGuardrail("second")
        registry.register(first).register(second)

        result = await registry.check(ctx())

        assert result.allowed is False
        assert result.reason == "blocked by first"
        assert second.calls == 0
        assert "Query blocked by guardrail" in log_stream.getvalue()

    @pytest.mark.asyncio
    async def test_safety_runs_first(self, registry: GuardrailRegistry) -> None:
        """Test safety blocks win even when configured last."""
        pii = SpyGuardrail("pii", GuardrailCategory.PII, block=True)
        safety = SpyGuardrail("safety", GuardrailCategory.SAFETY, block=True)
        registry.register(pii).register(safety)
        registry.configure_persona("default", {"enabled": ["pii", "safety"]})

        result = await registry.check(ctx())
        assert result.category == GuardrailCategory.SAFETY
        assert pii.calls == 0

    @pytest.mark.asyncio
    async def test_persona_selects_guardrails(self, registry: GuardrailRegistry) -> None:
        """Test only the persona's guardrails run."""
        a, b = SpyGuardrail("a"), SpyGuardrail("b", block=True)
        registry.register(a).register(b)
        registry.configure_persona("only_a", {"enabled": ["a"]})

        assert (await registry.check(ctx(), persona="only_a")).allowed is True
        assert (await registry.check(ctx(persona="ONLY_A"))).allowed is True
        assert b.calls == 0

    @pytest.mark.asyncio
    async def test_unconfigured_persona_runs_everything(self, registry: GuardrailRegistry) -> None:
        """Test a persona without config runs every registered guardrail."""
        a, b = SpyGuardrail("a"), SpyGuardrail("b")
        registry.register(a).register(b)
        await registry.check(ctx(), persona="nobody")
        assert (a.calls, b.calls) == (1, 1)

    @pytest.mark.asyncio
    async def test_disabled_guardrail_skipped(self, registry: GuardrailRegistry) -> None:
        """Test disabled guardrails neither run nor record metrics."""
        a = SpyGuardrail("a", block=True)
        registry.register(a)
        registry.configure_persona(
            "default", {"enabled": ["a"], "guardrails": {"a": {"enabled": False}}}
        )

        assert (await registry.check(ctx())).allowed is True
        assert a.calls == 0
        assert "guardrail:a" not in registry.get_metrics()

    @pytest.mark.asyncio
    async def test_guardrail_receives_config(self, registry: GuardrailRegistry) -> None:
        """Test the persona's guardrail config is passed through."""
        a = SpyGuardrail("a")
        registry.register(a)
        registry.configure_persona(
            "default", {"enabled": ["a"], "guardrails": {"a": {"max_repeats": 7}}}
        )
        await registry.check(ctx())
        assert a.configs[0].get("max_repeats") == 7

    @pytest.mark.asyncio
    async def test_sync_guardrail(self, registry: GuardrailRegistry) -> None:
        """Test synchronous check implementations are accepted."""
        registry.register(SyncGuardrail())
        result = await registry.check(ctx())
        assert result.allowed is False
        assert result.reason == "sync block"

    @pytest.mark.asyncio
    async def test_guardrail_error_skipped(self, registry: GuardrailRegistry) -> None:
        """Test a failing non-safety guardrail is skipped and metered."""
        broken = SpyGuardrail("broken", error=RuntimeError("boom"))
        after = SpyGuardrail("after")
        registry.register(broken).register(after)

        result = await registry.check(ctx())

        assert result.allowed is True
        assert after.calls == 1
        metrics = registry.get_metrics()["guardrail:broken"]
        assert metrics.errors == 1
        assert metrics.latencies == [0.0]

    @pytest.mark.asyncio
    async def test_safety_error_fails_closed(self, registry: GuardrailRegistry) -> None:
        """Test a failing safety guardrail blocks the query."""
        registry.register(SpyGuardrail("safety", GuardrailCategory.SAFETY, error=RuntimeError("x")))
        result = await registry.check(ctx())
        assert result.allowed is False
        assert result.category == GuardrailCategory.SAFETY
        assert result.severity == GuardrailSeverity.CRITICAL
        assert result.reason == SAFETY_ERROR_REASON

    @pytest.mark.asyncio
    async def test_invalid_return_is_an_error(self, registry: GuardrailRegistry) -> None:
        """Test a guardrail returning a non-result is treated as failing."""

        class Bad(SpyGuardrail):
            async def check(self, context, config=None):
                return {"allowed": False}

        registry.register(Bad("bad"))
        result = await registry.check(ctx())
        assert result.allowed is True
        assert registry.get_metrics()["guardrail:bad"].errors == 1


class TestCaching:
    """Tests for verdict caching."""

    @pytest.mark.asyncio
    async def test_allowed_results_cached(self) -> None:
        """Test a cached allowed verdict skips the guardrails."""
        cache = MemoryCache()
        registry = GuardrailRegistry(cache=cache)
        spy = SpyGuardrail("a")
        registry.register(spy)

        first = await registry.check(ctx())
        second = await registry.check(ctx("  HOW DO I EXPORT MY VIDEO?  "))

        assert first == second
        assert spy.calls == 1
        assert registry.get_metrics()["cache_hit"].total_checks == 1
        stored = await cache.get(verdict_key("default", "how do i export my video?"))
        assert stored == {"allowed": True, "category": "custom", "reason": None, "severity": None, "metadata": {}}

    @pytest.mark.asyncio
    async def test_blocked_results_not_cached(self) -> None:
        """Test blocked verdicts are re-evaluated every time."""
        registry = GuardrailRegistry(cache=MemoryCache())
        spy = SpyGuardrail("a", block=True)
        registry.register(spy)

        await registry.check(ctx())
        await registry.check(ctx())
        assert spy.calls == 2
        assert "cache_hit" not in registry.get_metrics()

    @pytest.mark.asyncio
    async def test_cache_is_per_persona(self) -> None:
        """Test personas do not share cached verdicts."""
        registry = GuardrailRegistry(cache=MemoryCache())
        spy = SpyGuardrail("a")
        registry.register(spy)

        await registry.check(ctx(), persona="one")
        await registry.check(ctx(), persona="two")
        assert spy.calls == 2

    @pytest.mark.asyncio
    async def test_slow_cache_is_a_miss(self) -> None:
        """Test cache reads that time out fall through to the pipeline."""

        class SlowCache(MemoryCache):
            async def get(self, key):
                await asyncio.sleep(1)

        registry = GuardrailRegistry(
            cache=SlowCache(), config=EngineConfig(cache_timeout_seconds=0.01)
        )
        spy = SpyGuardrail("a")
        registry.register(spy)

        result = await registry.check(ctx())
        assert result.allowed is True
        assert spy.calls == 1

    @pytest.mark.asyncio
    async def test_broken_cache_write_swallowed(self) -> None:
        """Test cache write errors do not affect the verdict."""

        class ReadOnlyCache(MemoryCache):
            async def set(self, key, value, ttl=None):
                raise ConnectionError("read only")

        registry = GuardrailRegistry(cache=ReadOnlyCache())
        registry.register(SpyGuardrail("a"))
        result = await registry.check(ctx())
        assert result.allowed is True
        assert result.degraded is False


class TestDegradation:
    """Tests for pipeline-level failure handling."""

    @pytest.mark.asyncio
    async def test_pipeline_error_fails_open(self, registry: GuardrailRegistry, monkeypatch) -> None:
        """Test an exception outside guardrails yields a degraded allow."""

        async def explode(context, persona):
            raise RuntimeError("registry broke")

        monkeypatch.setattr(registry, "_execute_guardrails", explode)
        result = await registry.check(ctx())

        assert result.allowed is True
        assert result.degraded is True
        assert result.metadata["error"] == "registry broke"
        assert registry.get_metrics()["guardrail_error"].errors == 1

    @pytest.mark.asyncio
    async def test_pipeline_timeout_fails_open(self) -> None:
        """Test a slow pipeline is cut off by the breaker timeout."""
        config = EngineConfig(breaker=CircuitBreakerConfig(timeout_seconds=0.05))
        registry = GuardrailRegistry(config=config)
        registry.register(SpyGuardrail("slow", delay=1.0))

        result = await registry.check(ctx())
        assert result.degraded is True
        assert result.metadata["error"] == "Guardrail pipeline timed out"

    @pytest.mark.asyncio
    async def test_breaker_opens_and_recovers(self, monkeypatch) -> None:
        """Test consecutive failures trip the breaker until the reset timeout."""
        config = EngineConfig(
            breaker=CircuitBreakerConfig(failure_threshold=3, reset_timeout_seconds=0.1)
        )
        registry = GuardrailRegistry(config=config)
        calls = 0

        async def explode(context, persona):
            nonlocal calls
            calls += 1
            raise RuntimeError("down")

        monkeypatch.setattr(registry, "_execute_guardrails", explode)

        for _ in range(3):
            await registry.check(ctx())
        assert calls == 3
        assert registry.circuit_breaker.state == CircuitState.OPEN

        result = await registry.check(ctx())
        assert result.degraded is True
        assert calls == 3

        await asyncio.sleep(0.15)

        async def healthy(context, persona):
            nonlocal calls
            calls += 1
            return GuardrailResult.allow()

        monkeypatch.setattr(registry, "_execute_guardrails", healthy)
        result = await registry.check(ctx())
        assert result.degraded is False
        assert calls == 4
        assert registry.circuit_breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_reset_circuit(self, monkeypatch) -> None:
        """Test the breaker can be closed manually."""
        config = EngineConfig(breaker=CircuitBreakerConfig(failure_threshold=1, reset_timeout_seconds=60))
        registry = GuardrailRegistry(config=config)

        async def explode(context, persona):
            raise RuntimeError("down")

        monkeypatch.setattr(registry, "_execute_guardrails", explode)
        await registry.check(ctx())
        assert registry.circuit_breaker.is_open

        registry.reset_circuit()
        assert registry.circuit_breaker.is_closed


class TestMetricsAndLifecycle:
    """Tests for metrics access and shutdown."""

    @pytest.mark.asyncio
    async def test_metrics_recorded(self, registry: GuardrailRegistry) -> None:
        """Test pipeline and per-guardrail metrics are recorded."""
        registry.register(SpyGuardrail("a"))
        registry.register(SpyGuardrail("b", GuardrailCategory.PII, block=True))

        await registry.check(ctx())
        await registry.check(ctx("another question here"))

        metrics = registry.get_metrics()
        check = metrics["guardrail_check"]
        assert check.total_checks == 2
        assert check.blocked == 2
        assert check.by_category == {"pii": 2}
        assert check.p50 is not None and check.p99 is not None
        assert metrics["guardrail:a"].allowed == 2
        assert metrics["guardrail:b"].blocked == 2

    @pytest.mark.asyncio
    async def test_clear_metrics(self, registry: GuardrailRegistry) -> None:
        """Test metrics can be reset."""
        registry.register(SpyGuardrail("a"))
        await registry.check(ctx())
        registry.clear_metrics()
        assert registry.get_metrics() == {}

    @pytest.mark.asyncio
    async def test_close_closes_guardrails(self, registry: GuardrailRegistry) -> None:
        """Test close reaches sync and async close methods."""
        sync_spy = SpyGuardrail("sync")
        async_spy = AsyncClosingGuardrail("async")
        registry.register(sync_spy).register(async_spy)

        await registry.close()
        assert sync_spy.closed is True
        assert async_spy.closed is True

    def test_repr(self, registry: GuardrailRegistry) -> None:
        """Test repr summarizes the registry."""
        assert "breaker=closed" in repr(registry)
