"""
Relevance guardrail: refuses to answer when retrieval found nothing useful.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, ClassVar

from guardrail_engine.guardrails.base import Guardrail, compile_patterns
from guardrail_engine.telemetry import get_logger
from guardrail_engine.types import (
    GuardrailCategory,
    GuardrailConfig,
    GuardrailContext,
    GuardrailResult,
    GuardrailSeverity,
)

if TYPE_CHECKING:
    from guardrail_engine.telemetry import GuardrailLogger

NO_RESULTS_MESSAGE = (
    "I couldn't find relevant information in my knowledge base to answer your "
    "question. I can only answer questions related to our product, support "
    "documentation, and policies."
)
LOW_RELEVANCE_MESSAGE = (
    "I couldn't find relevant information in my knowledge base to answer your question."
)

_NON_WORD = re.compile(r"[^\w\s]")

STOP_WORDS = frozenset({
    "the", "is", "are", "was", "were", "be", "been", "being", "have", "has",
    "had", "do", "does", "did", "will", "would", "should", "could", "can",
    "may", "might", "must", "this", "that", "these", "those", "a", "an",
    "for", "with", "about", "what", "who", "where", "when", "why", "how",
    "to", "of", "in", "on", "at", "by",
})


def meaningful_tokens(query: str) -> list[str]:
    """Lower-cased query words longer than one character, minus stop-words."""
    words = _NON_WORD.sub(" ", query.lower()).split()
    return [w for w in words if len(w) > 1 and w not in STOP_WORDS]


def relevance_ratio(tokens: list[str], text: str) -> float:
    """Fraction of ``tokens`` occurring as substrings of ``text``."""
    if not tokens:
        return 0.0
    haystack = text.lower()
    return sum(1 for token in tokens if token in haystack) / len(tokens)


class RelevanceGuardrail(Guardrail):
    """Validates that retrieved snippets are relevant to the query.

    A query is answerable when at least one snippet shares enough
    meaningful words with it, or when the retriever scored at least one
    snippet highly. Low scores only block on their own when every snippet
    carries one.

    Config options:
        min_score: Retriever score threshold (default 0.2)
        min_relevance_ratio: Token overlap threshold (default 0.2)
        fallback_patterns: Patterns marking canned, non-specific snippets
        no_results_message, low_relevance_message: Message overrides
    """

    name = "relevance"
    category = GuardrailCategory.RELEVANCE
    description = "Validates that retrieved snippets are relevant to the query"

    FALLBACK_PATTERNS: ClassVar[list[str]] = [
        r"business plan includes",
        r"upload.*via web",
        r"suggest.*desktop app",
    ]

    def __init__(self, logger: GuardrailLogger | None = None) -> None:
        self._fallbacks = compile_patterns(self.FALLBACK_PATTERNS)
        self._logger = logger or get_logger("guardrail_engine.guardrails.relevance")

    async def check(
        self,
        context: GuardrailContext,
        config: GuardrailConfig | None = None,
    ) -> GuardrailResult:
        snippets = context.snippets
        min_score = float(self.option(config, "min_score", 0.2))
        min_ratio = float(self.option(config, "min_relevance_ratio", 0.2))
        low_relevance = self.message(config, "low_relevance_message", LOW_RELEVANCE_MESSAGE)

        if not snippets:
            return self.block(
                self.message(config, "no_results_message", NO_RESULTS_MESSAGE),
                GuardrailSeverity.MEDIUM,
                snippet_count=0,
            )

        tokens = meaningful_tokens(context.query)
        if not tokens:
            return self.block(
                self.message(config, "no_results_message", LOW_RELEVANCE_MESSAGE),
                GuardrailSeverity.MEDIUM,
                token_count=0,
            )

        scores = [s.score for s in snippets if s.score is not None]
        if context.has_scores and all(score < min_score for score in scores):
            return self.block(
                low_relevance,
                GuardrailSeverity.MEDIUM,
                max_score=max(scores),
            )

        ratios = [relevance_ratio(tokens, s.text) for s in snippets]
        has_relevant = any(ratio >= min_ratio for ratio in ratios)

        configured = self.option(config, "fallback_patterns", None)
        fallbacks = compile_patterns(configured) if configured else self._fallbacks
        only_fallbacks = all(
            any(pattern.search(s.text) for pattern in fallbacks) for s in snippets
        )
        if only_fallbacks and not has_relevant:
            return self.block(low_relevance, GuardrailSeverity.MEDIUM, fallback_only=True)

        if has_relevant or any(score >= min_score for score in scores):
            return self.allow()

        self._logger.warning(
            "Low relevance between query and snippets",
            session_id=context.session_id,
            query_terms=tokens,
            ratios=[round(r, 3) for r in ratios],
            sources=[s.source for s in snippets],
        )
        return self.block(low_relevance, GuardrailSeverity.MEDIUM, ratios=ratios)
