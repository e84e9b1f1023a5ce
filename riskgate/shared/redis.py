"""Shared async Redis client for counters, device sets and the recent-events buffer."""

import redis.asyncio as aioredis
import structlog
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import BusyLoadingError, ConnectionError, TimeoutError

from riskgate.config import settings

logger = structlog.get_logger()

_client: aioredis.Redis | None = None


def create_redis(url: str | None = None) -> aioredis.Redis:
    """Build a pooled client with short operation timeouts.

    Retries are bounded; an outage surfaces quickly so the risk engine can
    fail closed instead of waiting on the store.
    """
    retry = Retry(
        backoff=ExponentialBackoff(cap=0.2, base=0.05),
        retries=2,
        supported_errors=(ConnectionError, TimeoutError, BusyLoadingError),
    )
    return aioredis.Redis.from_url(
        url or settings.redis_url,
        max_connections=200,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_connect_timeout,
        socket_keepalive=True,
        health_check_interval=30,
        retry=retry,
        decode_responses=True,
    )


def get_redis() -> aioredis.Redis:
    """Return the process-wide client, creating it lazily."""
    global _client
    if _client is None:
        _client = create_redis()
        logger.info("redis_client_created")
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        logger.info("redis_client_closed")


async def check_redis() -> bool:
    """Check Redis connectivity."""
    try:
        return bool(await get_redis().ping())
    except Exception:
        logger.warning("redis_check_failed")
        return False
