"""Tests for RelevanceGuardrail."""

import pytest

from guardrail_engine.guardrails import RelevanceGuardrail
from guardrail_engine.guardrails.relevance import meaningful_tokens, relevance_ratio
from guardrail_engine.types import (
    GuardrailCategory,
    GuardrailConfig,
    GuardrailContext,
    GuardrailSeverity,
)


def ctx(query: str, *snippets: dict) -> GuardrailContext:
    return GuardrailContext(query=query, snippets=list(snippets), session_id="s1")


class TestTokenization:
    """Tests for the tokenizer helpers."""

    def test_meaningful_tokens(self) -> None:
        """Test punctuation, stop-words and single letters are dropped."""
        assert meaningful_tokens("What's the API rate-limit?") == ["api", "rate", "limit"]

    def test_stop_words_only(self) -> None:
        """Test a query of stop-words has no meaningful tokens."""
        assert meaningful_tokens("What is the") == []

    def test_relevance_ratio(self) -> None:
        """Test the ratio counts substring matches."""
        assert relevance_ratio(["export", "video"], "Exporting a file") == 0.5
        assert relevance_ratio([], "anything") == 0.0


class TestRelevanceGuardrail:
    """Tests for RelevanceGuardrail.check."""

    @pytest.mark.asyncio
    async def test_no_snippets(self) -> None:
        """Test queries without retrieved snippets are blocked."""
        result = await RelevanceGuardrail().check(ctx("How do I export?"))
        assert result.allowed is False
        assert result.category == GuardrailCategory.RELEVANCE
        assert result.severity == GuardrailSeverity.MEDIUM
        assert "knowledge base" in result.reason
        assert "support documentation" in result.reason

    @pytest.mark.asyncio
    async def test_stop_word_query_blocked(self) -> None:
        """Test a query with no meaningful words is blocked."""
        result = await RelevanceGuardrail().check(
            ctx("what is the", {"text": "what is the plan", "score": 0.9})
        )
        assert result.allowed is False

    @pytest.mark.asyncio
    async def test_all_scores_low(self) -> None:
        """Test uniformly low retriever scores are blocked."""
        result = await RelevanceGuardrail().check(
            ctx(
                "export video settings",
                {"text": "export video settings", "score": 0.1},
                {"text": "video", "score": 0.05},
            )
        )
        assert result.allowed is False
        assert result.metadata["max_score"] == 0.1

    @pytest.mark.asyncio
    async def test_keyword_overlap_allows(self) -> None:
        """Test enough token overlap allows without scores."""
        result = await RelevanceGuardrail().check(
            ctx("export video settings", {"text": "Open settings to change the export format"})
        )
        assert result.allowed is True
        assert result.category == GuardrailCategory.RELEVANCE

    @pytest.mark.asyncio
    async def test_high_score_allows(self) -> None:
        """Test a high retriever score allows without overlap."""
        result = await RelevanceGuardrail().check(
            ctx("refund policy", {"text": "Our terms of service", "score": 0.8})
        )
        assert result.allowed is True

    @pytest.mark.asyncio
    async def test_partial_scores_high_score_allows(self) -> None:
        """Test one high score allows even when other snippets are unscored."""
        result = await RelevanceGuardrail().check(
            ctx(
                "billing refund",
                {"text": "unrelated passage", "score": 0.9},
                {"text": "nothing here"},
            )
        )
        assert result.allowed is True

    @pytest.mark.asyncio
    async def test_partial_low_scores_do_not_block_alone(self) -> None:
        """Test low scores only block outright when every snippet has one."""
        result = await RelevanceGuardrail().check(
            ctx(
                "billing refund",
                {"text": "unrelated passage", "score": 0.05},
                {"text": "nothing here"},
            )
        )
        assert result.allowed is False
        assert "max_score" not in result.metadata
        assert result.metadata["ratios"] == [0.0, 0.0]

    @pytest.mark.asyncio
    async def test_fallback_snippets_blocked(self) -> None:
        """Test canned fallback snippets without overlap are blocked."""
        result = await RelevanceGuardrail().check(
            ctx("cancel membership", {"text": "Our Business plan includes unlimited exports"})
        )
        assert result.allowed is False
        assert result.metadata["fallback_only"] is True

    @pytest.mark.asyncio
    async def test_fallback_snippet_with_overlap_allowed(self) -> None:
        """Test fallback snippets still count when they match the query."""
        result = await RelevanceGuardrail().check(
            ctx("business plan features", {"text": "Our Business plan includes unlimited exports"})
        )
        assert result.allowed is True

    @pytest.mark.asyncio
    async def test_low_relevance_logged(self, log_stream) -> None:
        """Test low relevance blocks log the per-snippet ratios."""
        config = GuardrailConfig(min_relevance_ratio=0.9, low_relevance_message="Not found.")
        result = await RelevanceGuardrail().check(
            ctx("export video settings", {"text": "export only", "source": "faq.md"}), config
        )
        assert result.allowed is False
        assert result.reason == "Not found."
        assert result.metadata["ratios"] == [pytest.approx(1 / 3)]

        output = log_stream.getvalue()
        assert "Low relevance between query and snippets" in output
        assert "faq.md" in output

    @pytest.mark.asyncio
    async def test_min_score_config(self) -> None:
        """Test persona min_score raises the bar."""
        snippet = {"text": "Our terms of service", "score": 0.3}
        guardrail = RelevanceGuardrail()
        assert (await guardrail.check(ctx("refund policy", snippet))).allowed is True

        strict = GuardrailConfig(min_score=0.4, min_relevance_ratio=0.4)
        assert (await guardrail.check(ctx("refund policy", snippet), strict)).allowed is False

    @pytest.mark.asyncio
    async def test_no_results_message_override(self) -> None:
        """Test no_results_message override."""
        result = await RelevanceGuardrail().check(
            ctx("export"), GuardrailConfig(no_results_message="Nothing found.")
        )
        assert result.reason == "Nothing found."
