"""
Production-ready example: Persona guardrails in front of a support assistant.

This example shows how to check user queries before retrieval results are
handed to a language model.

Key features:
- Built-in guardrails and personas
- Custom guardrails
- Verdict caching and metrics
- Fail-open error handling
"""

import asyncio

from guardrail_engine import (
    GuardrailCategory,
    GuardrailSeverity,
    MemoryCache,
    PatternGuardrail,
    check_guardrails,
    create_default_registry,
)
from guardrail_engine.telemetry import GuardrailLogger, LogLevel

SNIPPETS = [
    {"text": "Export a video from the share menu, then choose a resolution.", "score": 0.82, "source": "faq/export"},
    {"text": "Billing settings and invoices are on the account page.", "score": 0.41, "source": "faq/billing"},
]


class NoLinksGuardrail(PatternGuardrail):
    """Rejects queries that paste links."""

    name = "no_links"
    category = GuardrailCategory.CUSTOM
    description = "Rejects queries containing links"

    default_patterns = [r"https?://\S+"]
    severity = GuardrailSeverity.LOW
    message_key = "no_links_message"
    default_message = "Please describe the problem instead of pasting links."


async def main() -> None:
    """Main example demonstrating persona guardrails."""
    GuardrailLogger.configure(level=LogLevel.WARNING, format="text")

    registry = create_default_registry(cache=MemoryCache())

    # ========================================
    # Example 1: Default persona
    # ========================================
    print("=== Example 1: Default Persona ===\n")

    queries = [
        "How do I export a video?",
        "My email is jane@example.com, can you fix my billing?",
        "What is the capital of France?",
        "hi",
    ]

    for query in queries:
        result = await check_guardrails(registry, query, snippets=SNIPPETS, session_id="demo")
        if result.allowed:
            print(f"✓ Allowed: {query}")
        else:
            print(f"✗ Blocked ({result.category.value}, {result.severity.value}): {query}")
            print(f"  - {result.reason}")
    print()

    # ========================================
    # Example 2: Personas change the rules
    # ========================================
    print("=== Example 2: Personas ===\n")

    for persona in ["default", "greeter", "lenient"]:
        result = await check_guardrails(registry, "hi", snippets=SNIPPETS, persona=persona)
        print(f"{persona:>8}: {'allowed' if result.allowed else result.reason}")
    print()

    # ========================================
    # Example 3: Custom guardrail
    # ========================================
    print("=== Example 3: Custom Guardrail ===\n")

    registry.register(NoLinksGuardrail())
    registry.configure_persona("support", {"enabled": ["safety", "no_links", "length"]})

    result = await check_guardrails(
        registry,
        "Export fails, see https://example.com/log.txt",
        snippets=SNIPPETS,
        persona="support",
    )
    print(f"Allowed: {result.allowed}, reason: {result.reason}")
    print()

    # ========================================
    # Example 4: Metrics
    # ========================================
    print("=== Example 4: Metrics ===\n")

    for key, snapshot in sorted(registry.get_metrics().items()):
        print(
            f"{key}: checks={snapshot.total_checks} blocked={snapshot.blocked} "
            f"errors={snapshot.errors} p95={snapshot.p95}"
        )

    await registry.close()


if __name__ == "__main__":
    asyncio.run(main())
