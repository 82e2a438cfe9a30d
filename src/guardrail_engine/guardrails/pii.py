"""
PII guardrail: stops users from sharing personal data with the assistant.
"""

from __future__ import annotations

import re

from guardrail_engine.guardrails.base import Guardrail
from guardrail_engine.types import (
    GuardrailCategory,
    GuardrailConfig,
    GuardrailContext,
    GuardrailResult,
    GuardrailSeverity,
)

# (config flag, default enabled, label, pattern)
_DETECTORS: list[tuple[str, bool, str, re.Pattern[str]]] = [
    ("check_email", True, "email address",
     re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")),
    ("check_phone", True, "phone number",
     re.compile(r"\b(?:\+?1[-.\s]?)?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}\b")),
    ("check_ssn", True, "Social Security Number",
     re.compile(r"\b\d{3}-?\d{2}-?\d{4}\b")),
    ("check_credit_card", True, "credit card number",
     re.compile(r"\b(?:\d{4}[-\s]?){3}\d{4}\b")),
    ("check_ip", False, "IP address",
     re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")),
]


class PIIGuardrail(Guardrail):
    """Detects personally identifiable information.

    Every enabled detector runs and all detected types are reported in
    ``metadata["detected_types"]``. IP address detection is opt-in.

    Config options:
        check_email, check_phone, check_ssn, check_credit_card: Default True
        check_ip: Default False
        pii_message: Message override
    """

    name = "pii"
    category = GuardrailCategory.PII
    description = "Detects personally identifiable information (PII)"

    async def check(
        self,
        context: GuardrailContext,
        config: GuardrailConfig | None = None,
    ) -> GuardrailResult:
        detected = [
            label
            for flag, default, label, pattern in _DETECTORS
            if self.option(config, flag, default) is True and pattern.search(context.query)
        ]

        if detected:
            default_message = (
                f"For your security, please do not share {', '.join(detected)} "
                "in your messages."
            )
            return self.block(
                self.message(config, "pii_message", default_message),
                GuardrailSeverity.HIGH,
                detected_types=detected,
            )

        return self.allow()
