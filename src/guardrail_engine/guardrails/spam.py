"""
Spam guardrail: short, repetitive or repeated queries.
"""

from __future__ import annotations

import asyncio
import contextlib
import re
import time
from typing import TYPE_CHECKING

from guardrail_engine.cache import normalize_query, spam_key
from guardrail_engine.guardrails.base import Guardrail
from guardrail_engine.telemetry import get_logger
from guardrail_engine.types import (
    GuardrailCategory,
    GuardrailConfig,
    GuardrailContext,
    GuardrailResult,
    GuardrailSeverity,
)

if TYPE_CHECKING:
    from guardrail_engine.cache import CacheBackend
    from guardrail_engine.telemetry import GuardrailLogger

TOO_SHORT_MESSAGE = "Please provide a more detailed question."
REPETITIVE_MESSAGE = "Please provide a meaningful question."
REPEAT_MESSAGE = (
    "You've asked this question multiple times. Please wait a moment before trying again."
)

# Any character repeated five or more times in a row
_REPEATED_CHARS = re.compile(r"(.)\1{4,}")

MAX_ENTRY_AGE_SECONDS = 3600.0
MAX_TRACKED_SESSIONS = 10000
SESSIONS_KEPT_ON_OVERFLOW = 5000


class SpamGuardrail(Guardrail):
    """Detects repetitive or spam-like queries.

    Repeat counting uses the cache when one is configured so counters are
    shared between processes. When the cache is missing, slow or failing,
    an in-process map of recent queries per session is used instead and
    pruned periodically by a background task.

    Config options:
        max_repeats: Identical queries allowed per window (default 3)
        time_window_ms: Repeat window in milliseconds (default 60000)
        min_length: Short-query threshold in characters (default 10)
        spam_message: Message override for every spam block
    """

    name = "spam"
    category = GuardrailCategory.SPAM
    description = "Detects repetitive or spam-like queries"

    def __init__(
        self,
        cache: CacheBackend | None = None,
        cache_timeout_seconds: float = 0.25,
        auto_cleanup: bool = True,
        cleanup_interval_seconds: float = 300.0,
        logger: GuardrailLogger | None = None,
    ) -> None:
        """Initialize the spam guardrail.

        Args:
            cache: Shared counter store; None uses the in-process map only
            cache_timeout_seconds: Bound on each cache call
            auto_cleanup: Run the periodic prune task
            cleanup_interval_seconds: Seconds between prune passes
            logger: Logger override
        """
        self._cache = cache
        self._cache_timeout = cache_timeout_seconds
        self._auto_cleanup = auto_cleanup
        self._cleanup_interval = cleanup_interval_seconds
        self._logger = logger or get_logger("guardrail_engine.guardrails.spam")
        self._recent: dict[str, list[tuple[str, float]]] = {}
        self._cleanup_task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def tracked_sessions(self) -> int:
        """Number of sessions held in the in-process map."""
        return len(self._recent)

    async def check(
        self,
        context: GuardrailContext,
        config: GuardrailConfig | None = None,
    ) -> GuardrailResult:
        if config is not None and not config.enabled:
            return self.allow()

        self._ensure_cleanup_task()

        query = context.query.strip()
        message = self.option(config, "spam_message", None)
        min_length = int(self.option(config, "min_length", 10))

        if len(query) < min_length and len(query.split()) < 3:
            return self.block(message or TOO_SHORT_MESSAGE, GuardrailSeverity.LOW, spam_type="too_short")

        if _REPEATED_CHARS.search(query):
            return self.block(message or REPETITIVE_MESSAGE, GuardrailSeverity.LOW, spam_type="repetitive")

        normalized = normalize_query(query)
        session_id = context.session_id or "anonymous"
        max_repeats = int(self.option(config, "max_repeats", 3))
        window_ms = float(self.option(config, "time_window_ms", 60000))

        count = await self._count_in_cache(session_id, normalized, max_repeats, window_ms)
        if count is None:
            count = self._count_in_memory(session_id, normalized, max_repeats, window_ms)

        if count >= max_repeats:
            return self.block(
                message or REPEAT_MESSAGE,
                GuardrailSeverity.MEDIUM,
                spam_type="repeated",
                repeat_count=count,
            )

        return self.allow()

    async def _count_in_cache(
        self, session_id: str, normalized: str, max_repeats: int, window_ms: float
    ) -> int | None:
        """Read and bump the shared counter.

        Returns the count seen before this query, or None when the cache
        cannot be used.
        """
        if self._cache is None:
            return None

        key = spam_key(session_id, normalized)
        try:
            cached = await asyncio.wait_for(self._cache.get(key), self._cache_timeout)
            count = int(cached or 0)
            if count < max_repeats:
                await asyncio.wait_for(
                    self._cache.set(key, count + 1, ttl=window_ms / 1000.0),
                    self._cache_timeout,
                )
            return count
        except Exception as e:
            self._logger.warning(
                "Spam counter cache unavailable, using in-memory fallback",
                error=str(e) or type(e).__name__,
            )
            return None

    def _count_in_memory(
        self, session_id: str, normalized: str, max_repeats: int, window_ms: float
    ) -> int:
        """Count recent identical queries and record this one unless it is blocked."""
        now = time.monotonic()
        window = window_ms / 1000.0
        recent = [
            (q, ts) for q, ts in self._recent.get(session_id, []) if now - ts < window
        ]
        count = sum(1 for q, _ in recent if q == normalized)
        if count < max_repeats:
            recent.append((normalized, now))
        if recent:
            self._recent[session_id] = recent
        else:
            self._recent.pop(session_id, None)
        return count

    def prune(self) -> int:
        """Drop stale sessions from the in-process map.

        Entries older than an hour are removed. If more than
        ``MAX_TRACKED_SESSIONS`` sessions remain, only the most recently
        active ``SESSIONS_KEPT_ON_OVERFLOW`` are kept.

        Returns:
            Number of sessions removed
        """
        now = time.monotonic()
        before = len(self._recent)

        for session_id in list(self._recent):
            kept = [(q, ts) for q, ts in self._recent[session_id] if now - ts < MAX_ENTRY_AGE_SECONDS]
            if kept:
                self._recent[session_id] = kept
            else:
                del self._recent[session_id]

        if len(self._recent) > MAX_TRACKED_SESSIONS:
            by_activity = sorted(
                self._recent.items(), key=lambda item: max(ts for _, ts in item[1])
            )
            self._recent = dict(by_activity[-SESSIONS_KEPT_ON_OVERFLOW:])
            self._logger.warning(
                "Spam guardrail dropped stale sessions to bound memory",
                kept=len(self._recent),
            )

        return before - len(self._recent)

    def _ensure_cleanup_task(self) -> None:
        if self._closed or not self._auto_cleanup:
            return
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._cleanup_task = loop.create_task(self._cleanup_loop())

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self._cleanup_interval)
            removed = self.prune()
            if removed:
                self._logger.debug("Pruned spam sessions", removed=removed)

    async def close(self) -> None:
        """Stop the cleanup task and forget tracked queries.

        Later checks still work but no longer start a cleanup task.
        """
        self._closed = True
        task = self._cleanup_task
        self._cleanup_task = None
        if task is not None and not task.done():
            loop = task.get_loop()
            # The loop that owns the task may already be closed
            if not loop.is_closed():
                task.cancel()
                if loop is asyncio.get_running_loop():
                    with contextlib.suppress(asyncio.CancelledError):
                        await task
        self._recent.clear()
