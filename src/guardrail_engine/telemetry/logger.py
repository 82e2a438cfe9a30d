"""
Structured logging for guardrail-engine.

Every library logger hangs off the ``guardrail_engine`` package logger, so
one call to ``GuardrailLogger.configure`` decides where all guardrail
output goes. Blocked queries frequently contain the very data a guardrail
is protecting, so messages and keyword fields are masked on the way out.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from functools import partialmethod
from typing import Any, ClassVar, TextIO

PACKAGE_LOGGER = "guardrail_engine"

_current_context: ContextVar[LogContext | None] = ContextVar(
    "guardrail_log_context", default=None
)


class LogLevel(IntEnum):
    """Levels accepted by ``GuardrailLogger.configure``."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR


@dataclass(frozen=True)
class LogContext:
    """Fields attached to every record emitted while the context is set.

    Attributes:
        request_id: Caller supplied request identifier
        session_id: Conversation the checked query belongs to
        persona: Persona the query is evaluated under
        extra: Anything else worth tagging records with
    """

    request_id: str | None = None
    session_id: str | None = None
    persona: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Set fields only, with ``extra`` flattened in."""
        named = {
            "request_id": self.request_id,
            "session_id": self.session_id,
            "persona": self.persona,
        }
        return {**{k: v for k, v in named.items() if v}, **self.extra}


def get_log_context() -> LogContext:
    """Context of the running task, or an empty one."""
    return _current_context.get() or LogContext()


def set_log_context(context: LogContext) -> None:
    """Tag records from the running task (and tasks it spawns) with ``context``."""
    _current_context.set(context)


def clear_log_context() -> None:
    _current_context.set(None)


class SensitiveDataMasker:
    """Replaces credentials and personal data before they reach a log sink."""

    RULES: ClassVar[tuple[tuple[str, str, str], ...]] = (
        ("openai_key", r"\bsk-[A-Za-z0-9]{20,}", "sk-***REDACTED***"),
        ("assigned_key", r"(api[_-]?key[\"']?\s*[:=]\s*[\"']?)[^\"'\s]+", r"\1***REDACTED***"),
        ("bearer", r"(bearer\s+)\S+", r"\1***REDACTED***"),
        ("email", r"\b[\w.%+-]+@[\w-]+(?:\.[\w-]+)*\.[A-Za-z]{2,}\b", "***EMAIL***"),
        ("card", r"\b\d{4}(?:[ -]?\d{4}){3}\b", "***CARD***"),
    )

    # Field names whose values are dropped whatever they contain
    SECRET_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"key", "token", "secret", "password", "auth"}
    )

    def __init__(self) -> None:
        self._rules = [
            (re.compile(pattern, re.IGNORECASE), replacement)
            for _, pattern, replacement in self.RULES
        ]

    def mask(self, text: str) -> str:
        for pattern, replacement in self._rules:
            text = pattern.sub(replacement, text)
        return text

    def mask_dict(self, data: dict[str, Any]) -> dict[str, Any]:
        """Mask field values, recursing into nested dicts and lists."""
        return {
            name: "***REDACTED***" if self._is_secret(name) else self._mask_value(value)
            for name, value in data.items()
        }

    def _is_secret(self, name: str) -> bool:
        lowered = name.lower()
        return any(marker in lowered for marker in self.SECRET_FIELDS)

    def _mask_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self.mask(value)
        if isinstance(value, dict):
            return self.mask_dict(value)
        if isinstance(value, (list, tuple)):
            return [self._mask_value(item) for item in value]
        return value


class _StructuredFormatter(logging.Formatter):
    """Shared masking of the message and of keyword fields."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._masker = SensitiveDataMasker()

    def masked_message(self, record: logging.LogRecord) -> str:
        return self._masker.mask(record.getMessage())

    def masked_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        return self._masker.mask_dict(getattr(record, "guardrail_fields", {}))


class JsonFormatter(_StructuredFormatter):
    """One JSON object per line; keyword fields sit at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": self.masked_message(record),
        }
        context = get_log_context().to_dict()
        if context:
            entry["context"] = context
        entry.update(self.masked_fields(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(_StructuredFormatter):
    """``time level logger: message key=value ...`` lines for terminals."""

    def __init__(self) -> None:
        super().__init__(datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            self.formatTime(record, self.datefmt),
            f"{record.levelname:<7}",
            f"{record.name}:",
            self.masked_message(record),
        ]
        fields = {**get_log_context().to_dict(), **self.masked_fields(record)}
        parts.extend(f"{key}={value}" for key, value in fields.items())
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class GuardrailLogger:
    """Thin wrapper over a stdlib logger that takes keyword fields.

    Example:
        >>> logger = GuardrailLogger.get_logger("guardrail_engine.registry")
        >>> logger.warning("Query blocked by guardrail", guardrail="pii", latency_ms=1.2)
    """

    _configured: ClassVar[bool] = False

    @classmethod
    def configure(
        cls,
        level: LogLevel = LogLevel.INFO,
        format: str = "json",
        stream: TextIO | None = None,
    ) -> None:
        """Route all guardrail-engine output to one stream.

        Args:
            level: Minimum level emitted
            format: 'json' or 'text'
            stream: Destination (default: stderr)
        """
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(JsonFormatter() if format == "json" else TextFormatter())

        package = logging.getLogger(PACKAGE_LOGGER)
        for old in list(package.handlers):
            package.removeHandler(old)
        package.addHandler(handler)
        package.setLevel(level)
        package.propagate = False
        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> GuardrailLogger:
        if not cls._configured:
            cls.configure(format="text")
        return cls(logging.getLogger(name))

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def log(self, level: int, msg: str, *, exc_info: bool = False, **fields: Any) -> None:
        """Emit ``msg`` with ``fields`` attached to the record."""
        if self._logger.isEnabledFor(level):
            self._logger.log(
                level, msg, exc_info=exc_info, extra={"guardrail_fields": fields}
            )

    debug = partialmethod(log, logging.DEBUG)
    info = partialmethod(log, logging.INFO)
    warning = partialmethod(log, logging.WARNING)
    error = partialmethod(log, logging.ERROR)


def get_logger(name: str) -> GuardrailLogger:
    """Logger for ``name``; pass a ``guardrail_engine.*`` name to share configuration."""
    return GuardrailLogger.get_logger(name)
