"""
Cache collaborators for guardrail verdicts and spam counters.
"""

from guardrail_engine.cache.backends import (
    CacheBackend,
    CacheEntry,
    MemoryCache,
    NullCache,
)
from guardrail_engine.cache.key import (
    SPAM_NAMESPACE,
    VERDICT_NAMESPACE,
    hash_query,
    normalize_query,
    rolling_hash,
    spam_key,
    verdict_key,
)

__all__ = [
    "CacheBackend",
    "CacheEntry",
    "MemoryCache",
    "NullCache",
    "SPAM_NAMESPACE",
    "VERDICT_NAMESPACE",
    "hash_query",
    "normalize_query",
    "rolling_hash",
    "spam_key",
    "verdict_key",
]
