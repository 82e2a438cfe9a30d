"""
Ready-made registry with the built-in guardrails and personas.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from guardrail_engine.config import EngineConfig
from guardrail_engine.guardrails import (
    LengthGuardrail,
    OffTopicGuardrail,
    PIIGuardrail,
    ProfanityGuardrail,
    RelevanceGuardrail,
    SafetyGuardrail,
    SpamGuardrail,
)
from guardrail_engine.personas import apply_personas, load_default_personas
from guardrail_engine.registry import GuardrailRegistry
from guardrail_engine.telemetry import get_logger
from guardrail_engine.types import (
    GuardrailCategory,
    GuardrailContext,
    GuardrailResult,
    GuardrailSeverity,
    Snippet,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from guardrail_engine.cache import CacheBackend

logger = get_logger("guardrail_engine")


def create_default_registry(
    cache: CacheBackend | None = None,
    config: EngineConfig | None = None,
    personas: bool = True,
    spam_auto_cleanup: bool = True,
) -> GuardrailRegistry:
    """Build a registry with the seven built-in guardrails.

    Args:
        cache: Shared cache for verdicts and spam counters
        config: Engine settings
        personas: Configure the bundled persona catalog
        spam_auto_cleanup: Run the spam guardrail's periodic prune task

    Returns:
        A registry owned by the caller; call ``close()`` on shutdown
    """
    config = config or EngineConfig.default()
    registry = GuardrailRegistry(cache=cache, config=config)

    registry.register(SafetyGuardrail())
    registry.register(OffTopicGuardrail())
    registry.register(RelevanceGuardrail())
    registry.register(PIIGuardrail())
    registry.register(ProfanityGuardrail())
    registry.register(
        SpamGuardrail(
            cache=cache,
            cache_timeout_seconds=config.cache_timeout_seconds,
            auto_cleanup=spam_auto_cleanup,
        )
    )
    registry.register(LengthGuardrail())

    if personas:
        apply_personas(registry, load_default_personas())

    return registry


async def check_guardrails(
    registry: GuardrailRegistry,
    query: Any,
    snippets: Sequence[Snippet | dict[str, Any]] | None = None,
    persona: str | None = None,
    session_id: str | None = None,
) -> GuardrailResult:
    """Check a raw query, tolerating bad input.

    Empty or non-string queries are rejected without running guardrails.
    Anything unexpected fails open.

    Example:
        >>> result = await check_guardrails(
        ...     registry,
        ...     "How do I export a video?",
        ...     snippets=[{"text": "Export a video from the share menu.", "score": 0.9}],
        ...     session_id="sess-1",
        ... )
    """
    if not isinstance(query, str) or not query.strip():
        return GuardrailResult.block(
            GuardrailCategory.CUSTOM,
            "Invalid query provided",
            GuardrailSeverity.MEDIUM,
        )

    try:
        context = GuardrailContext(
            query=query.strip(),
            snippets=list(snippets or []),
            session_id=session_id,
            persona=persona,
        )
        return await registry.check(context, persona)
    except Exception as e:
        logger.error("Unexpected error in check_guardrails", error=str(e) or type(e).__name__)
        return GuardrailResult.allow(
            GuardrailCategory.CUSTOM,
            error="Guardrail system error, query allowed",
        )
