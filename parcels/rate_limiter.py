"""
Rate limiting utilities

``RateLimiter`` is the interface used by the route dependencies. The default
``InMemoryRateLimiter`` is process-local and resets on restart; set REDIS_URL to
share counters across instances with ``RedisRateLimiter``.
"""

import logging
import time
from abc import ABC, abstractmethod
from threading import Lock
from typing import Optional

import redis
from fastapi import Request

from .errors import RateLimitedError

logger = logging.getLogger(__name__)

MEMORY_CACHE_CLEANUP_INTERVAL = 60  # Clean up expired entries every 60 seconds


class RateLimiter(ABC):
    """Fixed-window counter keyed by an arbitrary string"""

    @abstractmethod
    def hit(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int, int]:
        """
        Count one request against ``key``.

        Returns:
            Tuple of (is_allowed, current_count, ttl_seconds)
        """


class InMemoryRateLimiter(RateLimiter):
    def __init__(self):
        # Format: {key: {'count': int, 'reset_time': int}}
        self.memory_cache: dict[str, dict] = {}
        self.cache_lock = Lock()
        self.last_cleanup_time = 0

    def cleanup_expired_cache(self, current_time: int):
        """Remove expired entries from memory cache"""
        if current_time - self.last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
            return

        expired_keys = [
            k for k, v in self.memory_cache.items() if current_time >= v.get("reset_time", 0)
        ]
        for k in expired_keys:
            del self.memory_cache[k]

        if expired_keys:
            logger.debug(f"🧹 Cleaned up {len(expired_keys)} expired rate limit entries")

        self.last_cleanup_time = current_time

    def hit(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int, int]:
        current_time = int(time.time())

        with self.cache_lock:
            self.cleanup_expired_cache(current_time)

            cache_entry = self.memory_cache.get(key)
            if cache_entry is None or current_time >= cache_entry["reset_time"]:
                cache_entry = {"count": 0, "reset_time": current_time + window_seconds}
                self.memory_cache[key] = cache_entry

            is_allowed = cache_entry["count"] < limit
            if is_allowed:
                cache_entry["count"] += 1

            ttl = cache_entry["reset_time"] - current_time
            return is_allowed, cache_entry["count"], max(0, ttl)


class RedisRateLimiter(RateLimiter):
    def __init__(self, redis_url: str):
        # Mask password in URL for logging
        masked_url = f"****@{redis_url.split('@')[-1]}" if "@" in redis_url else "****"
        logger.info(f"📡 Using Redis URL connection for rate limiting: {masked_url}")

        self.client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
            max_connections=20,
        )

    def hit(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int, int]:
        try:
            # INCR + EXPIRE NX: the first hit of a window starts the clock
            pipe = self.client.pipeline()
            pipe.incr(key)
            pipe.expire(key, window_seconds, nx=True)
            pipe.ttl(key)
            count, _, ttl = pipe.execute()
        except redis.RedisError as e:
            # Abuse deterrent only, so fail open rather than take the site down with Redis
            logger.warning(f"⚠️ Redis rate limit check failed, allowing request: {e}")
            return True, 0, 0

        ttl = ttl if ttl and ttl > 0 else window_seconds
        return count <= limit, count, ttl


def build_rate_limiter(redis_url: Optional[str]) -> RateLimiter:
    if redis_url:
        return RedisRateLimiter(redis_url)
    logger.info("Rate limiting uses in-memory counters (set REDIS_URL to share them)")
    return InMemoryRateLimiter()


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def create_rate_limiter(
    limit: int, window_seconds: int, key_prefix: str = "rate_limit", use_ip: bool = True
):
    """
    Create a rate limiter dependency with specific parameters

    Example usage:
        rate_limit_checkout = create_rate_limiter(limit=8, window_seconds=60, key_prefix="checkout")

        @router.post("/checkout")
        async def create_checkout(data: CheckoutRequest, _: None = Depends(rate_limit_checkout)):
            ...
    """

    async def rate_limiter(request: Request):
        limiter: RateLimiter = request.app.state.rate_limiter
        key = f"{key_prefix}:{get_client_ip(request)}" if use_ip else f"{key_prefix}:global"

        is_allowed, current_count, ttl = limiter.hit(key, limit, window_seconds)
        if not is_allowed:
            logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
            raise RateLimitedError(
                "rate_limited",
                f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                headers={"Retry-After": str(ttl)},
            )

    return rate_limiter
