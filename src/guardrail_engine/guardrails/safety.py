"""
Safety guardrail: self-harm, threats and illegal activity.
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

SELF_HARM_MESSAGE = (
    "I'm not equipped to help with self-harm concerns. Please reach out to a "
    "mental health professional or crisis helpline for immediate support."
)
THREAT_MESSAGE = (
    "I cannot assist with queries related to threats or violence. If you have "
    "concerns, please contact appropriate authorities."
)
ILLEGAL_MESSAGE = "I cannot assist with queries related to illegal activities."


class SafetyGuardrail(Guardrail):
    """Detects threats, self-harm and harmful content.

    Tiers are evaluated in priority order and the first match wins:

    1. ``self_harm`` (critical)
    2. ``threat`` (critical)
    3. ``illegal`` (high), skipped when the persona sets ``check_illegal: false``

    Config options:
        check_illegal: Evaluate the illegal-activity tier (default True)
        self_harm_message, threat_message, illegal_message: Message overrides
    """

    name = "safety"
    category = GuardrailCategory.SAFETY
    description = "Detects threats, self-harm, and harmful content"

    SELF_HARM_PATTERNS: ClassVar[list[str]] = [
        r"\b(suicide|self.?harm|cut myself|end it all|want to die|kill myself)\b",
        r"\b(no reason to live|better off dead|not worth living)\b",
        r"\b(hurt myself|self.?injure|self.?destruct)\b",
    ]
    THREAT_PATTERNS: ClassVar[list[str]] = [
        r"\b(kill|murder|harm|attack|violence|bomb|terror|threat|dangerous)\b",
        r"\b(hurt|injure|damage|destroy|assault|maim|torture)\b",
        r"\b(shoot|stab|poison|explode|burn)\b",
    ]
    ILLEGAL_PATTERNS: ClassVar[list[str]] = [
        r"\b(hack|crack|pirate|illegal|fraud|steal|scam|drug|weapon)\b",
    ]

    def __init__(self) -> None:
        self._tiers: list[tuple[str, list[re.Pattern[str]], GuardrailSeverity, str, str]] = [
            ("self_harm", compile_patterns(self.SELF_HARM_PATTERNS),
             GuardrailSeverity.CRITICAL, "self_harm_message", SELF_HARM_MESSAGE),
            ("threat", compile_patterns(self.THREAT_PATTERNS),
             GuardrailSeverity.CRITICAL, "threat_message", THREAT_MESSAGE),
            ("illegal", compile_patterns(self.ILLEGAL_PATTERNS),
             GuardrailSeverity.HIGH, "illegal_message", ILLEGAL_MESSAGE),
        ]

    async def check(
        self,
        context: GuardrailContext,
        config: GuardrailConfig | None = None,
    ) -> GuardrailResult:
        query = context.query

        # Too short to carry a threat
        if len(query) < 3:
            return self.allow()

        check_illegal = self.option(config, "check_illegal", True) is not False

        for tier, patterns, severity, message_key, default_message in self._tiers:
            if tier == "illegal" and not check_illegal:
                continue
            if any(pattern.search(query) for pattern in patterns):
                return self.block(
                    self.message(config, message_key, default_message),
                    severity,
                    tier=tier,
                )

        return self.allow()
