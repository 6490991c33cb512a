"""
Redis connection helper for cross-process locking.

Only used when REDIS_URL is configured. A client that cannot be reached is
reported and left out, and locking falls back to the in-process registry.
"""

import logging
from typing import Optional

import redis.asyncio as redis

logger = logging.getLogger(__name__)


async def create_redis_client(redis_url: str) -> Optional[redis.Redis]:
    """Connect to Redis and check the connection with a ping."""
    if not redis_url:
        return None

    try:
        client = redis.from_url(redis_url)
        await client.ping()
    except redis.RedisError as e:
        logger.error(f"Failed to connect to Redis: {e}. Locks will only cover this process.")
        return None

    logger.info("Connected to Redis for cross-process locking")
    return client
