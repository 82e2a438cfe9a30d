"""
Metrics collection for guardrail checks.

Tracks per-operation and per-guardrail outcome counters and a bounded
latency sample buffer for percentile queries.
"""

from __future__ import annotations

import math
import threading
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any

MAX_LATENCY_SAMPLES = 1000

# Pipeline-level operation names
CACHE_HIT = "cache_hit"
GUARDRAIL_CHECK = "guardrail_check"
GUARDRAIL_ERROR = "guardrail_error"


def guardrail_key(name: str) -> str:
    """Metrics key for an individual guardrail."""
    return f"guardrail:{name}"


def percentile(sorted_samples: list[float], p: float) -> float | None:
    """Nearest-rank percentile of already sorted samples."""
    if not sorted_samples:
        return None
    index = math.ceil((p / 100) * len(sorted_samples)) - 1
    return sorted_samples[max(0, index)]


@dataclass
class MetricsBucket:
    """Counters for one tracked key.

    Attributes:
        total_checks: Number of recorded checks
        allowed: Checks that allowed the query
        blocked: Checks that blocked the query
        errors: Checks that raised instead of returning a verdict
        latencies: Most recent latencies in milliseconds
        by_category: Verdict count per category
    """

    total_checks: int = 0
    allowed: int = 0
    blocked: int = 0
    errors: int = 0
    latencies: deque[float] = field(
        default_factory=lambda: deque(maxlen=MAX_LATENCY_SAMPLES)
    )
    by_category: dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class MetricsSnapshot:
    """Point-in-time copy of a bucket with computed percentiles."""

    total_checks: int
    allowed: int
    blocked: int
    errors: int
    latencies: list[float]
    by_category: dict[str, int]
    p50: float | None
    p95: float | None
    p99: float | None

    @property
    def block_rate(self) -> float:
        """Fraction of verdicts that blocked."""
        verdicts = self.allowed + self.blocked
        if verdicts == 0:
            return 0.0
        return self.blocked / verdicts

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (latency samples omitted)."""
        return {
            "total_checks": self.total_checks,
            "allowed": self.allowed,
            "blocked": self.blocked,
            "errors": self.errors,
            "by_category": dict(self.by_category),
            "p50": self.p50,
            "p95": self.p95,
            "p99": self.p99,
        }


class GuardrailMetrics:
    """Thread-safe collector for guardrail outcomes.

    Example:
        >>> metrics = GuardrailMetrics()
        >>> metrics.record("guardrail:pii", "pii", latency_ms=0.4, allowed=False)
        >>> metrics.snapshot()["guardrail:pii"].blocked
        1
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buckets: dict[str, MetricsBucket] = {}

    def record(
        self,
        key: str,
        category: str,
        latency_ms: float,
        allowed: bool,
        error: bool = False,
    ) -> None:
        """Record one check outcome.

        Args:
            key: Operation name or ``guardrail:<name>``
            category: Category the verdict belongs to
            latency_ms: Latency in milliseconds
            allowed: Whether the verdict allowed the query
            error: The check raised instead of producing a verdict
        """
        category = getattr(category, "value", category)

        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = self._buckets[key] = MetricsBucket()

            bucket.total_checks += 1
            if error:
                bucket.errors += 1
            elif allowed:
                bucket.allowed += 1
            else:
                bucket.blocked += 1

            bucket.latencies.append(latency_ms)
            bucket.by_category[category] += 1

    def snapshot(self) -> dict[str, MetricsSnapshot]:
        """Copy all buckets and compute p50/p95/p99."""
        with self._lock:
            items = [
                (key, b.total_checks, b.allowed, b.blocked, b.errors,
                 list(b.latencies), dict(b.by_category))
                for key, b in self._buckets.items()
            ]

        result: dict[str, MetricsSnapshot] = {}
        for key, total, allowed, blocked, errors, latencies, by_category in items:
            ordered = sorted(latencies)
            result[key] = MetricsSnapshot(
                total_checks=total,
                allowed=allowed,
                blocked=blocked,
                errors=errors,
                latencies=latencies,
                by_category=by_category,
                p50=percentile(ordered, 50),
                p95=percentile(ordered, 95),
                p99=percentile(ordered, 99),
            )
        return result

    def reset(self) -> None:
        """Drop all buckets."""
        with self._lock:
            self._buckets.clear()

    def to_prometheus(self) -> str:
        """Export counters and latency percentiles in Prometheus text format."""
        snapshot = self.snapshot()
        lines: list[str] = []

        counters = (
            ("guardrail_checks_total", "Total guardrail checks", "total_checks"),
            ("guardrail_allowed_total", "Checks that allowed the query", "allowed"),
            ("guardrail_blocked_total", "Checks that blocked the query", "blocked"),
            ("guardrail_errors_total", "Checks that raised", "errors"),
        )
        for metric, help_text, attr in counters:
            lines.append(f"# HELP {metric} {help_text}")
            lines.append(f"# TYPE {metric} counter")
            for key, snap in snapshot.items():
                lines.append(f'{metric}{{key="{key}"}} {getattr(snap, attr)}')

        lines.append("# HELP guardrail_latency_ms Check latency percentiles")
        lines.append("# TYPE guardrail_latency_ms summary")
        for key, snap in snapshot.items():
            for quantile, value in (("0.5", snap.p50), ("0.95", snap.p95), ("0.99", snap.p99)):
                if value is not None:
                    lines.append(
                        f'guardrail_latency_ms{{key="{key}",quantile="{quantile}"}} {value}'
                    )

        return "\n".join(lines)
