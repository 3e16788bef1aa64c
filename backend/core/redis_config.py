# backend/core/redis_config.py

"""
Redis connection management.

Redis is optional for this service: it only relays staff events between
sibling instances. When REDIS_URL is unset every helper returns None and
the service runs single-instance.
"""

import os
from typing import Optional, Dict, Any
import redis.asyncio as redis
import logging

from core.config import settings

logger = logging.getLogger(__name__)


class RedisConfig:
    """Redis connection configuration"""

    def __init__(self):
        self.url = settings.redis_url
        self.max_connections = int(os.getenv("REDIS_MAX_CONNECTIONS", "10"))
        self.decode_responses = True
        self.socket_timeout = 5
        self.socket_connect_timeout = 5
        self.health_check_interval = 30


_redis_client: Optional[redis.Redis] = None


async def get_redis_client() -> Optional[redis.Redis]:
    """
    Get or create the async Redis client singleton.

    Returns None if Redis is not configured or not reachable.
    """
    global _redis_client

    if not settings.redis_enabled:
        return None

    if _redis_client is not None:
        return _redis_client

    config = RedisConfig()
    client = redis.Redis.from_url(
        config.url,
        max_connections=config.max_connections,
        decode_responses=config.decode_responses,
        socket_timeout=config.socket_timeout,
        socket_connect_timeout=config.socket_connect_timeout,
        health_check_interval=config.health_check_interval,
    )

    try:
        await client.ping()
    except (redis.ConnectionError, redis.TimeoutError) as e:
        logger.warning(f"Redis connection failed: {e}. Staff events stay local.")
        await client.aclose()
        return None

    logger.info("Redis connection established")
    _redis_client = client
    return _redis_client


async def close_redis_connection():
    """Close Redis connection and cleanup"""
    global _redis_client

    if _redis_client:
        try:
            await _redis_client.aclose()
        except redis.RedisError as e:
            logger.error(f"Error closing Redis client: {e}")
        finally:
            _redis_client = None


async def redis_health_check() -> Dict[str, Any]:
    """Check Redis connection health"""
    if not settings.redis_enabled:
        return {"status": "disabled", "message": "Redis relay not configured"}

    client = await get_redis_client()
    if not client:
        return {
            "status": "unavailable",
            "message": "Redis connection not available",
        }

    try:
        await client.ping()
        return {"status": "healthy", "message": "Redis connection healthy"}
    except redis.RedisError as e:
        return {
            "status": "unhealthy",
            "message": f"Redis health check failed: {str(e)}",
        }
