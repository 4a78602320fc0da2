"""
Redis client initialization and connection management.

Redis holds short-lived shared state: the carrier API token. Callers
read `redis_client` through this module at call time so the client can
be swapped (tests use an in-memory stand-in). Redis being down degrades
to a fresh carrier login per call, never to a failed request.
"""

import redis.asyncio as redis
from backend.app.core.config import settings


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
    socket_timeout=settings.redis_socket_timeout_seconds,
    socket_connect_timeout=settings.redis_socket_timeout_seconds,
)


async def ping_redis() -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await redis_client.ping()
    except (redis.RedisError, OSError):
        return False


async def close_redis() -> None:
    await redis_client.aclose()
