"""
Cache key generation for guardrail verdicts and spam counters.
"""

from __future__ import annotations

import hashlib

VERDICT_NAMESPACE = "guardrail"
SPAM_NAMESPACE = "spam"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def normalize_query(query: str) -> str:
    """Lower-case and trim a query for hashing and comparison."""
    return query.strip().lower()


def hash_query(query: str) -> str:
    """Stable digest of a normalized query.

    Returns the first 16 hex characters of the SHA-256 digest.
    """
    return hashlib.sha256(normalize_query(query).encode()).hexdigest()[:16]


def rolling_hash(text: str) -> str:
    """Lightweight 32-bit rolling string hash rendered in base 36.

    ``h = h * 31 + ord(c)`` folded to a signed 32-bit integer, absolute
    value taken. Cheap enough to compute on every spam check.
    """
    h = 0
    for char in text:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    h = abs(h)

    if h == 0:
        return "0"
    digits = []
    while h:
        h, rem = divmod(h, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def verdict_key(persona: str, query: str) -> str:
    """Cache key for a pipeline verdict."""
    return f"{VERDICT_NAMESPACE}:{persona}:{hash_query(query)}"


def spam_key(session_id: str, normalized_query: str) -> str:
    """Cache key for a session's repeat counter of one query."""
    return f"{SPAM_NAMESPACE}:{session_id}:{rolling_hash(normalized_query)}"
