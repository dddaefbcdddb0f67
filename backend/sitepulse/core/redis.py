"""Process-wide Redis client.

Redis holds shared rate-limit counters (through slowapi's storage) and is
part of the readiness probe. Nothing analytics-related is kept in it.
"""

import logging

import redis.asyncio as redis
from redis.asyncio import ConnectionPool
from redis.exceptions import RedisError

from sitepulse.core.config import settings

logger = logging.getLogger(__name__)

SOCKET_TIMEOUT = 5.0  # seconds
MAX_CONNECTIONS = 10

_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Return the shared client, creating its pool on first use."""
    global _client
    if _client is None:
        pool = ConnectionPool.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=SOCKET_TIMEOUT,
            socket_connect_timeout=SOCKET_TIMEOUT,
            retry_on_timeout=True,
            max_connections=MAX_CONNECTIONS,
        )
        _client = redis.Redis(connection_pool=pool)
    return _client


async def close_redis() -> None:
    """Close the shared client together with its pool."""
    global _client
    if _client is not None:
        await _client.aclose(close_connection_pool=True)
        _client = None


async def ping_redis(*, client: redis.Redis | None = None) -> bool:
    """True when Redis answers PING; connection errors are logged, not raised."""
    try:
        r = client or await get_redis()
        return bool(await r.ping())
    except (RedisError, OSError) as e:
        logger.error("Redis PING failed: %s", e)
        return False
