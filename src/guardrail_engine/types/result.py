"""
Verdict model returned by guardrails and by the pipeline.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class GuardrailCategory(str, Enum):
    """Fixed set of guardrail categories."""

    SAFETY = "safety"
    RELEVANCE = "relevance"
    OFF_TOPIC = "off_topic"
    PII = "pii"
    PROFANITY = "profanity"
    SPAM = "spam"
    LENGTH = "length"
    RATE_LIMIT = "rate_limit"
    LANGUAGE = "language"
    CONTENT_MODERATION = "content_moderation"
    PRIVACY = "privacy"
    CUSTOM = "custom"


class GuardrailSeverity(str, Enum):
    """Severity levels for blocking verdicts."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class GuardrailResult(BaseModel):
    """Allow/block verdict with a user-facing reason.

    A blocked result always has a reason, and ``critical`` severity is only
    used for safety blocks.

    Example:
        >>> GuardrailResult.allow(GuardrailCategory.PII)
        >>> GuardrailResult.block(
        ...     GuardrailCategory.PII,
        ...     "Please do not share your e-mail address.",
        ...     GuardrailSeverity.HIGH,
        ...     detected_types=["email address"],
        ... )
    """

    model_config = ConfigDict(use_enum_values=False)

    allowed: bool = Field(description="Whether the query may proceed")
    category: GuardrailCategory = Field(description="Category that produced the verdict")
    reason: str | None = Field(default=None, description="User-facing message")
    severity: GuardrailSeverity | None = Field(default=None, description="Severity of a block")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Extra details")

    @model_validator(mode="after")
    def _check_invariants(self) -> GuardrailResult:
        if not self.allowed and not self.reason:
            raise ValueError("a blocking result must carry a reason")
        if (
            self.severity == GuardrailSeverity.CRITICAL
            and self.category != GuardrailCategory.SAFETY
        ):
            raise ValueError("critical severity is reserved for safety blocks")
        return self

    @classmethod
    def allow(
        cls,
        category: GuardrailCategory = GuardrailCategory.CUSTOM,
        **metadata: Any,
    ) -> GuardrailResult:
        """Create an allowing result."""
        return cls(allowed=True, category=category, metadata=metadata)

    @classmethod
    def block(
        cls,
        category: GuardrailCategory,
        reason: str,
        severity: GuardrailSeverity = GuardrailSeverity.MEDIUM,
        **metadata: Any,
    ) -> GuardrailResult:
        """Create a blocking result."""
        return cls(
            allowed=False,
            category=category,
            reason=reason,
            severity=severity,
            metadata=metadata,
        )

    @property
    def degraded(self) -> bool:
        """True when the verdict came from the fail-open path."""
        return bool(self.metadata.get("degraded"))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary."""
        return self.model_dump(mode="json")
