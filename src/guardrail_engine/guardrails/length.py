"""
Length guardrail.
"""

from __future__ import annotations

from guardrail_engine.guardrails.base import Guardrail
from guardrail_engine.types import (
    GuardrailCategory,
    GuardrailConfig,
    GuardrailContext,
    GuardrailResult,
    GuardrailSeverity,
)


class LengthGuardrail(Guardrail):
    """Validates query length is within acceptable limits.

    Lengths are counted in characters of the raw query.

    Config options:
        min_length: Default 3
        max_length: Default 2000
        too_short_message, too_long_message: Message overrides
    """

    name = "length"
    category = GuardrailCategory.LENGTH
    description = "Validates query length is within acceptable limits"

    def __init__(self, min_length: int = 3, max_length: int = 2000) -> None:
        if min_length < 0:
            raise ValueError("min_length must be non-negative")
        if min_length > max_length:
            raise ValueError("min_length cannot be greater than max_length")
        self._min_length = min_length
        self._max_length = max_length

    async def check(
        self,
        context: GuardrailContext,
        config: GuardrailConfig | None = None,
    ) -> GuardrailResult:
        length = len(context.query)
        min_length = int(self.option(config, "min_length", self._min_length))
        max_length = int(self.option(config, "max_length", self._max_length))

        if length < min_length:
            return self.block(
                self.message(
                    config,
                    "too_short_message",
                    f"Please provide a question that is at least {min_length} characters long.",
                ),
                GuardrailSeverity.LOW,
                length=length,
                min_length=min_length,
            )

        if length > max_length:
            return self.block(
                self.message(
                    config,
                    "too_long_message",
                    f"Please keep your question under {max_length} characters. "
                    "You can break it into multiple questions if needed.",
                ),
                GuardrailSeverity.LOW,
                length=length,
                max_length=max_length,
            )

        return self.allow()
