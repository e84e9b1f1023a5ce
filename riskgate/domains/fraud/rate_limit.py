"""Gateway rate limit: a fixed-window counter per identity or client address."""

import structlog
from redis.asyncio import Redis

from .config import GatewayRateLimit
from .exceptions import RateLimitExceeded

logger = structlog.get_logger()

RATE_LIMIT_PREFIX = "fraud_rate_limit"


class GatewayRateLimiter:
    """Counts screened requests with INCR + EXPIRE NX in one transaction."""

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    async def hit(self, subject: str, limit: GatewayRateLimit) -> int:
        """Count a request for ``subject``; raise ``RateLimitExceeded`` past the limit."""
        key = f"{RATE_LIMIT_PREFIX}:{subject}"
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, limit.window_seconds, nx=True)
            pipe.ttl(key)
            current, _, ttl = await pipe.execute()

        current = int(current)
        if current > limit.max:
            retry_after = int(ttl) if ttl is not None and int(ttl) > 0 else limit.window_seconds
            logger.warning(
                "fraud_rate_limit_exceeded",
                subject=subject,
                count=current,
                limit=limit.max,
                retry_after=retry_after,
            )
            raise RateLimitExceeded(retry_after=retry_after)

        return current
