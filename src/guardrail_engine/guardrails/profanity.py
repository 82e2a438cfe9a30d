"""
Profanity guardrail.
"""

from __future__ import annotations

from guardrail_engine.guardrails.base import PatternGuardrail
from guardrail_engine.types import GuardrailCategory, GuardrailSeverity


class ProfanityGuardrail(PatternGuardrail):
    """Detects profanity and vulgar language.

    Config options:
        patterns: Replacement pattern list
        profanity_message: Message override
    """

    name = "profanity"
    category = GuardrailCategory.PROFANITY
    description = "Detects profanity and vulgar language"

    default_patterns = [
        r"\b(fuck|shit|damn|bitch|asshole|piss|cunt|bastard)\b",
        r"\b(hell|damn|dammit)\b",
    ]
    severity = GuardrailSeverity.LOW
    message_key = "profanity_message"
    default_message = (
        "Please keep your language appropriate. I'm here to help with "
        "product-related questions."
    )
