"""
Guardrail contract and the built-in guardrails.
"""

from guardrail_engine.guardrails.base import Guardrail, PatternGuardrail, compile_patterns
from guardrail_engine.guardrails.length import LengthGuardrail
from guardrail_engine.guardrails.off_topic import OffTopicGuardrail
from guardrail_engine.guardrails.pii import PIIGuardrail
from guardrail_engine.guardrails.profanity import ProfanityGuardrail
from guardrail_engine.guardrails.relevance import RelevanceGuardrail
from guardrail_engine.guardrails.safety import SafetyGuardrail
from guardrail_engine.guardrails.spam import SpamGuardrail

__all__ = [
    "Guardrail",
    "LengthGuardrail",
    "OffTopicGuardrail",
    "PIIGuardrail",
    "PatternGuardrail",
    "ProfanityGuardrail",
    "RelevanceGuardrail",
    "SafetyGuardrail",
    "SpamGuardrail",
    "compile_patterns",
]
