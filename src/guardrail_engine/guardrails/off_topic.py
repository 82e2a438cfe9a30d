"""
Off-topic guardrail: keeps the assistant on product questions.
"""

from __future__ import annotations

import re
from typing import ClassVar

from guardrail_engine.guardrails.base import Guardrail, compile_patterns
from guardrail_engine.types import (
    GuardrailCategory,
    GuardrailConfig,
    GuardrailContext,
    GuardrailResult,
    GuardrailSeverity,
)

OFF_TOPIC_MESSAGE = (
    "I can only answer questions related to our product, support documentation, "
    "pricing, and policies. I don't have information about general topics, "
    "celebrities, or unrelated subjects."
)

_QUESTION_SHAPE = re.compile(
    r"^(what|who|where|when|why|how)\s+"
    r"(is|are|was|were|does|do|did|can|could|should|will|would)\s+",
    re.IGNORECASE,
)
_ENTITY = re.compile(r"\b(the|a|an)\s+([a-z]+(?:\s+[a-z]+){0,2})", re.IGNORECASE)


class OffTopicGuardrail(Guardrail):
    """Detects queries unrelated to the product or knowledge base.

    Product keywords are checked first: a query mentioning any of them is
    allowed even if it also matches an off-topic pattern.

    Config options:
        product_keywords: Phrases that mark a query as product-related
        off_topic_patterns: Regular expressions for off-topic subjects
        product_terms: Nouns accepted as the subject of a generic question
        off_topic_message: Message override
    """

    name = "off_topic"
    category = GuardrailCategory.OFF_TOPIC
    description = "Detects queries unrelated to the product or knowledge base"

    PRODUCT_KEYWORDS: ClassVar[list[str]] = [
        "plan", "pricing", "feature", "support", "account", "subscription",
        "billing", "export", "video", "upload", "download", "settings",
        "faq", "help", "issue", "bug", "error", "troubleshoot", "problem",
        "how to", "how do i", "can i", "documentation", "guide", "tutorial",
        "api", "integration", "webhook", "email", "notification", "alert",
    ]
    OFF_TOPIC_PATTERNS: ClassVar[list[str]] = [
        # Celebrities and public figures
        r"\b(eminem|beyonce|taylor swift|justin bieber|celebrity|actor|singer|musician|rapper|artist|famous)\b",
        # Encyclopedia-style questions
        r"\b(wikipedia|encyclopedia|define|definition of|what does|meaning of)\b",
        # Weather, news, current events
        r"\b(weather|news|current events|today|stock market|sports|politics|election)\b",
        # History, geography, science
        r"\b(history of|who invented|where is|what country|capital of|science|physics|chemistry|biology)\b",
        # Entertainment
        r"\b(movie|film|tv show|television|netflix|disney|marvel|star wars|game of thrones)\b",
        # General knowledge
        r"\b(what is|who is|tell me about|explain)\b",
    ]
    PRODUCT_TERMS: ClassVar[list[str]] = [
        "product", "service", "app", "platform", "system", "tool",
        "software", "account", "plan", "subscription",
    ]

    def __init__(self) -> None:
        self._patterns = compile_patterns(self.OFF_TOPIC_PATTERNS)

    async def check(
        self,
        context: GuardrailContext,
        config: GuardrailConfig | None = None,
    ) -> GuardrailResult:
        query = context.query.strip().lower()
        message = self.message(config, "off_topic_message", OFF_TOPIC_MESSAGE)

        keywords = self.option(config, "product_keywords", self.PRODUCT_KEYWORDS)
        if any(keyword.lower() in query for keyword in keywords):
            return self.allow()

        configured = self.option(config, "off_topic_patterns", None)
        patterns = compile_patterns(configured) if configured else self._patterns
        for pattern in patterns:
            if pattern.search(query):
                return self.block(message, GuardrailSeverity.MEDIUM, matched_pattern=pattern.pattern)

        # "What is the ..." style questions about something that isn't us
        if _QUESTION_SHAPE.match(query):
            entity_match = _ENTITY.search(query)
            if entity_match:
                entity = entity_match.group(2).lower()
                terms = self.option(config, "product_terms", self.PRODUCT_TERMS)
                if not any(term in entity for term in terms):
                    return self.block(message, GuardrailSeverity.MEDIUM, entity=entity)

        return self.allow()
