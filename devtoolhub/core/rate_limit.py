"""Cache backed counters for throttling sign-in, sign-up, conversion and tool requests."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, Tuple

from django.core.cache import cache


@dataclass
class RateLimitResult:
    """Outcome of a rate limit check."""

    allowed: bool
    retry_after: int
    count: int
    identifier: str


class RateLimitScenario:
    LOGIN_IP = "auth:login:ip"
    LOGIN_EMAIL = "auth:login:email"
    SIGNUP_IP = "auth:signup:ip"
    CONVERSION_IP = "convert:ip"
    TOOLS_IP = "tools:ip"


def _cache_keys(scenario: str, identifier: str) -> Tuple[str, str]:
    base_key = f"rate-limit:{scenario}:{identifier}"
    return base_key, f"{base_key}:blocked"


def _normalize_identifier(identifier: Optional[str]) -> Optional[str]:
    if identifier is None:
        return None
    value = str(identifier).strip().lower()
    if not value or value == 'unknown':
        return None
    return value


def _blocked_for(block_key: str, now: float) -> int:
    block_until = cache.get(block_key)
    if block_until and block_until > now:
        return max(int(block_until - now), 1)
    return 0


def is_rate_limited(scenario: str, identifier: Optional[str]) -> RateLimitResult:
    """Check the block flag without counting an attempt."""
    normalized = _normalize_identifier(identifier)
    if not normalized:
        return RateLimitResult(True, 0, 0, "")
    _, block_key = _cache_keys(scenario, normalized)
    retry_after = _blocked_for(block_key, time.time())
    return RateLimitResult(retry_after == 0, retry_after, 0, normalized)


def increment_rate_limit(
    scenario: str,
    identifier: Optional[str],
    *,
    limit: int,
    window: int,
    block: Optional[int] = None,
) -> RateLimitResult:
    """Count one attempt; once ``limit`` is exceeded the identifier is blocked."""
    normalized = _normalize_identifier(identifier)
    if not normalized:
        return RateLimitResult(True, 0, 0, "")

    key, block_key = _cache_keys(scenario, normalized)
    now = time.time()
    retry_after = _blocked_for(block_key, now)
    if retry_after:
        return RateLimitResult(False, retry_after, limit, normalized)

    data = cache.get(key)
    if not data or now >= data["expires_at"]:
        data = {"count": 0, "expires_at": now + window}
    data["count"] += 1

    if data["count"] > limit:
        block_for = block or window
        cache.set(block_key, now + block_for, timeout=block_for)
        cache.delete(key)
        return RateLimitResult(False, block_for, data["count"], normalized)

    cache.set(key, data, timeout=max(int(data["expires_at"] - now), 1))
    return RateLimitResult(True, 0, data["count"], normalized)


def reset_rate_limit(scenario: str, identifier: Optional[str]) -> None:
    normalized = _normalize_identifier(identifier)
    if not normalized:
        return
    cache.delete_many(list(_cache_keys(scenario, normalized)))


__all__ = [
    "RateLimitResult",
    "RateLimitScenario",
    "increment_rate_limit",
    "is_rate_limited",
    "reset_rate_limit",
]
