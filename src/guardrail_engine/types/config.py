"""
Per-guardrail and per-persona configuration models.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GuardrailConfig(BaseModel):
    """Configuration for one guardrail under one persona.

    Only ``enabled`` is common to every guardrail; everything else is a
    guardrail-specific option (``max_repeats``, ``min_score``, message
    overrides, ...) kept as an extra field.

    Example:
        >>> cfg = GuardrailConfig(enabled=True, max_repeats=2, time_window_ms=30000)
        >>> cfg.get("max_repeats", 3)
        2
    """

    model_config = ConfigDict(extra="allow", arbitrary_types_allowed=True)

    enabled: bool = Field(default=True, description="Whether the guardrail runs")

    def get(self, key: str, default: Any = None) -> Any:
        """Read a guardrail-specific option."""
        extra = self.model_extra or {}
        value = extra.get(key)
        return default if value is None else value

    @classmethod
    def default(cls) -> GuardrailConfig:
        """Configuration used when a persona says nothing about a guardrail."""
        return cls(enabled=True)


class PersonaGuardrailConfig(BaseModel):
    """Which guardrails a persona runs, and how each is configured."""

    enabled: list[str] = Field(description="Guardrail names to run, in preferred order")
    guardrails: dict[str, GuardrailConfig] = Field(
        default_factory=dict, description="Per-guardrail configuration overrides"
    )

    def config_for(self, name: str) -> GuardrailConfig:
        """Configuration for ``name``, defaulting to enabled."""
        return self.guardrails.get(name) or GuardrailConfig.default()
