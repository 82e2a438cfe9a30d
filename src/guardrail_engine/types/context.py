"""
Input model handed to every guardrail check.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Snippet(BaseModel):
    """A retrieved passage that an answer would be grounded on."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Snippet text")
    score: float | None = Field(default=None, description="Retriever relevance score")
    source: str | None = Field(default=None, description="Source document identifier")


class GuardrailContext(BaseModel):
    """Everything a guardrail may look at for one query.

    Built by the caller after retrieval has run, so the relevance guardrail
    can inspect ``snippets``. Immutable once constructed.

    Example:
        >>> ctx = GuardrailContext(
        ...     query="How do I export my video?",
        ...     snippets=[{"text": "Export videos from the share menu", "score": 0.8}],
        ...     session_id="sess-42",
        ... )
    """

    model_config = ConfigDict(frozen=True)

    query: str = Field(description="Raw user query")
    snippets: list[Snippet] = Field(default_factory=list, description="Retrieved snippets, in rank order")
    session_id: str | None = Field(default=None, description="Conversation/session identifier")
    user_id: str | None = Field(default=None, description="End-user identifier")
    persona: str | None = Field(default=None, description="Persona the caller is speaking as")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Free-form caller metadata")

    @property
    def has_scores(self) -> bool:
        """True when every snippet carries a retriever score."""
        return bool(self.snippets) and all(s.score is not None for s in self.snippets)
