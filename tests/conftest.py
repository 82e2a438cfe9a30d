"""Root pytest fixtures for guardrail-engine tests."""

from __future__ import annotations

import io

import pytest
import pytest_asyncio

from guardrail_engine import GuardrailRegistry, MemoryCache, create_default_registry
from guardrail_engine.telemetry import GuardrailLogger, LogLevel


@pytest.fixture
def cache() -> MemoryCache:
    """Fresh in-memory cache."""
    return MemoryCache()


@pytest_asyncio.fixture
async def default_registry(cache: MemoryCache):
    """Registry with the built-in guardrails and personas."""
    registry = create_default_registry(cache=cache, spam_auto_cleanup=False)
    yield registry
    await registry.close()


@pytest.fixture
def registry() -> GuardrailRegistry:
    """Empty registry without a cache."""
    return GuardrailRegistry()


@pytest.fixture
def log_stream():
    """Route library logs to an in-memory JSON stream for the test."""
    stream = io.StringIO()
    GuardrailLogger.configure(level=LogLevel.DEBUG, format="json", stream=stream)
    yield stream
    GuardrailLogger.configure(level=LogLevel.INFO, format="text")
