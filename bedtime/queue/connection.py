"""
Redis connection management for the story queue.

Provides a singleton asyncio Redis connection.
"""

from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from bedtime.config import config
from bedtime.utils.logging import queue_logger as logger

# Singleton connection
_redis_connection: Optional[Redis] = None

# Queue names
QUEUE_STORIES = config.STORY_QUEUE_NAME


def _display_url(redis_url: str) -> str:
    return redis_url.split("@")[-1] if "@" in redis_url else redis_url


async def get_redis_connection(redis_url: Optional[str] = None) -> Redis:
    """
    Get the Redis connection singleton.

    Returns:
        Redis connection instance

    Raises:
        ConnectionError: If Redis cannot be reached
    """
    global _redis_connection

    if _redis_connection is None:
        redis_url = redis_url or config.REDIS_URL

        connection = Redis.from_url(
            redis_url,
            decode_responses=False,
            socket_connect_timeout=10,
            retry_on_timeout=True,
            health_check_interval=30,
        )

        try:
            await connection.ping()
        except RedisError as e:
            await connection.aclose()
            raise ConnectionError(f"Failed to connect to Redis: {e}") from e

        logger.info("Redis connected", host=_display_url(redis_url))
        _redis_connection = connection

    return _redis_connection


async def close_redis_connection():
    """Close the Redis connection (for cleanup)."""
    global _redis_connection
    if _redis_connection is not None:
        await _redis_connection.aclose()
        _redis_connection = None
