"""
Telemetry for guardrail-engine: structured logging and check metrics.
"""

from guardrail_engine.telemetry.logger import (
    GuardrailLogger,
    LogContext,
    LogLevel,
    SensitiveDataMasker,
    clear_log_context,
    get_log_context,
    get_logger,
    set_log_context,
)
from guardrail_engine.telemetry.metrics import (
    CACHE_HIT,
    GUARDRAIL_CHECK,
    GUARDRAIL_ERROR,
    MAX_LATENCY_SAMPLES,
    GuardrailMetrics,
    MetricsBucket,
    MetricsSnapshot,
    guardrail_key,
    percentile,
)

__all__ = [
    "CACHE_HIT",
    "GUARDRAIL_CHECK",
    "GUARDRAIL_ERROR",
    "GuardrailLogger",
    "GuardrailMetrics",
    "LogContext",
    "LogLevel",
    "MAX_LATENCY_SAMPLES",
    "MetricsBucket",
    "MetricsSnapshot",
    "SensitiveDataMasker",
    "clear_log_context",
    "get_log_context",
    "get_logger",
    "guardrail_key",
    "percentile",
    "set_log_context",
]
