"""
Redis configuration module for the uptime monitoring system.

Every scheduler instance of a fleet connects to the same Redis server, which
holds the monitor locks and last-run times.
"""

import logging

from redis import asyncio as aioredis

from uptime_monitor.config import MonitoringContext

# Module logger
logger = logging.getLogger(__name__)


async def initiate_redis_client(context: MonitoringContext) -> aioredis.Redis:
    """
    Create and validate a Redis client.

    Args:
        context: Configuration context containing the Redis url.

    Returns:
        aioredis.Redis: A client returning decoded strings.

    Raises:
        Exception: If the Redis server cannot be reached.
    """
    client: aioredis.Redis = aioredis.from_url(context.redis_url, decode_responses=True)

    try:
        await client.ping()
        logger.info("Redis client successfully created.")
        return client
    except Exception as e:
        logger.error(f"Error: Could not connect to Redis. {e}")
        await client.aclose()
        raise
