"""
Redis client backing the magic-link rate limiter.
Gracefully degrades to an in-process window table if Redis is unavailable.
"""

import logging
import time
from typing import Optional

from app.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

_redis_client = None

# key -> (window_start_monotonic, hit_count, window_seconds), used when Redis is off
_local_windows: dict[str, tuple[float, int, int]] = {}
_last_prune = 0.0

PRUNE_INTERVAL_SECONDS = 1.0


def get_redis_client():
    """
    Lazy-initialize Redis client singleton.
    Returns None if Redis is disabled or unavailable.
    """
    global _redis_client

    if not settings.REDIS_ENABLED:
        return None

    if _redis_client is None:
        try:
            import redis
            _redis_client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=2,
            )
            _redis_client.ping()
            logger.info("Redis connected successfully")
        except Exception as e:
            logger.warning(f"Redis unavailable, using in-process rate limiting: {e}")
            _redis_client = None

    return _redis_client


def hit_rate_limit(key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
    """
    Count one hit against a fixed window.

    Returns:
        (allowed, retry_after_seconds). retry_after is 0 when allowed.
    """
    if window_seconds <= 0:
        return True, 0

    client = get_redis_client()
    if client is not None:
        try:
            redis_key = f"ratelimit:{key}"
            # The expiry is set together with the key, in one round trip
            pipe = client.pipeline(transaction=True)
            pipe.set(redis_key, 0, ex=window_seconds, nx=True)
            pipe.incr(redis_key)
            pipe.ttl(redis_key)
            _, count, ttl = pipe.execute()
            if ttl is not None and ttl < 0:
                client.expire(redis_key, window_seconds)
                ttl = window_seconds
            if count > limit:
                return False, ttl if ttl and ttl > 0 else window_seconds
            return True, 0
        except Exception as e:
            logger.warning(f"Redis rate limit failed, falling back to local window: {e}")

    return _hit_local_window(key, limit, window_seconds)


def _hit_local_window(key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
    now = time.monotonic()
    _prune_local_windows(now)

    started, count, _ = _local_windows.get(key, (now, 0, window_seconds))
    if now - started >= window_seconds:
        started, count = now, 0

    count += 1
    _local_windows[key] = (started, count, window_seconds)

    if count > limit:
        return False, max(1, int(window_seconds - (now - started)))
    return True, 0


def _prune_local_windows(now: float) -> None:
    """Drop windows that have run out, at most once per PRUNE_INTERVAL_SECONDS."""
    global _last_prune

    if now - _last_prune < PRUNE_INTERVAL_SECONDS:
        return
    _last_prune = now

    expired = [
        key for key, (started, _, window) in _local_windows.items()
        if now - started >= window
    ]
    for key in expired:
        del _local_windows[key]


def reset_rate_limits() -> None:
    """Forget all in-process rate-limit windows."""
    global _last_prune

    _local_windows.clear()
    _last_prune = 0.0
