"""
Base class for pluggable guardrails.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from guardrail_engine.types import (
    GuardrailCategory,
    GuardrailConfig,
    GuardrailContext,
    GuardrailResult,
    GuardrailSeverity,
)

if TYPE_CHECKING:
    from collections.abc import Iterable


def compile_patterns(patterns: Iterable[str | re.Pattern[str]]) -> list[re.Pattern[str]]:
    """Compile configured patterns, case-insensitively for plain strings."""
    compiled = []
    for pattern in patterns:
        if isinstance(pattern, re.Pattern):
            compiled.append(pattern)
        else:
            compiled.append(re.compile(pattern, re.IGNORECASE))
    return compiled


class Guardrail(ABC):
    """Base class for all guardrails.

    A guardrail inspects a :class:`GuardrailContext` and returns a
    :class:`GuardrailResult`. It is registered once at startup under a
    unique ``name`` and must not keep per-request state.

    Subclasses set ``name``, ``category`` and ``description`` and implement
    :meth:`check`. ``check`` receives the persona's configuration for this
    guardrail; options missing from it fall back to the guardrail defaults.

    Example:
        >>> class NoUrlsGuardrail(Guardrail):
        ...     name = "no_urls"
        ...     category = GuardrailCategory.CUSTOM
        ...     description = "Rejects queries containing links"
        ...
        ...     async def check(self, context, config=None):
        ...         if "http" in context.query:
        ...             return self.block("Please do not paste links.")
        ...         return self.allow()
    """

    name: ClassVar[str]
    category: ClassVar[GuardrailCategory]
    description: ClassVar[str] = ""

    @abstractmethod
    async def check(
        self,
        context: GuardrailContext,
        config: GuardrailConfig | None = None,
    ) -> GuardrailResult:
        """Decide whether the query in ``context`` may proceed."""
        raise NotImplementedError

    def allow(self, **metadata: object) -> GuardrailResult:
        """Allowing result in this guardrail's category."""
        return GuardrailResult.allow(self.category, **metadata)

    def block(
        self,
        reason: str,
        severity: GuardrailSeverity = GuardrailSeverity.MEDIUM,
        **metadata: object,
    ) -> GuardrailResult:
        """Blocking result in this guardrail's category."""
        return GuardrailResult.block(self.category, reason, severity, **metadata)

    @staticmethod
    def message(config: GuardrailConfig | None, key: str, default: str) -> str:
        """User-facing message, overridable per persona."""
        if config is None:
            return default
        return config.get(key, default)

    @staticmethod
    def option(config: GuardrailConfig | None, key: str, default: object) -> object:
        """Guardrail-specific option with a default."""
        if config is None:
            return default
        return config.get(key, default)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, category={self.category.value})"


class PatternGuardrail(Guardrail):
    """Guardrail that blocks on the first matching regular expression.

    Subclasses provide ``default_patterns``, ``severity`` and the message
    key/default; personas may replace the pattern list via ``patterns``.
    """

    default_patterns: ClassVar[list[str]] = []
    severity: ClassVar[GuardrailSeverity] = GuardrailSeverity.LOW
    message_key: ClassVar[str] = "message"
    default_message: ClassVar[str] = "This request cannot be processed."

    def __init__(self, patterns: Iterable[str | re.Pattern[str]] | None = None) -> None:
        self._patterns = compile_patterns(
            patterns if patterns is not None else self.default_patterns
        )

    @property
    def patterns(self) -> list[re.Pattern[str]]:
        """Compiled default patterns."""
        return self._patterns

    def _patterns_for(self, config: GuardrailConfig | None) -> list[re.Pattern[str]]:
        configured = self.option(config, "patterns", None)
        if configured:
            return compile_patterns(configured)
        return self._patterns

    async def check(
        self,
        context: GuardrailContext,
        config: GuardrailConfig | None = None,
    ) -> GuardrailResult:
        """Block on the first pattern that matches the raw query."""
        for pattern in self._patterns_for(config):
            match = pattern.search(context.query)
            if match:
                return self.block(
                    self.message(config, self.message_key, self.default_message),
                    self.severity,
                    matched_pattern=pattern.pattern,
                )
        return self.allow()
