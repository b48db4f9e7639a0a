"""
Redis connection handling for webhook event fan-out.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError
from redis.exceptions import ConnectionError as RedisConnectionError

from .config import get_settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis connection manager exposing the pub/sub operations the package needs."""

    def __init__(self, client: Optional[Redis] = None):
        self.client: Optional[Redis] = client
        self.pool: Optional[redis.ConnectionPool] = None

    async def initialize(self) -> None:
        """Initialize Redis connection pool and client."""
        settings = get_settings()

        try:
            self.pool = redis.ConnectionPool.from_url(
                settings.redis_url,
                max_connections=settings.redis_max_connections,
                retry_on_timeout=True,
                socket_keepalive=True,
                health_check_interval=30
            )
            self.client = Redis(connection_pool=self.pool)

            await self.client.ping()
            logger.info("Redis client initialized successfully")

        except RedisConnectionError as e:
            logger.error("Failed to connect to Redis: %s", e)
            raise

    async def close(self) -> None:
        """Close Redis connections."""
        if self.client:
            await self.client.close()
        if self.pool:
            await self.pool.disconnect()
        self.client = None
        self.pool = None
        logger.info("Redis connections closed")

    async def publish(self, channel: str, message: str) -> int:
        """
        Publish a message on a channel.

        Args:
            channel: Pub/sub channel name
            message: Serialized message

        Returns:
            Number of subscribers that received the message

        Raises:
            RuntimeError: If the client was never initialized
            RedisError: If the publish fails
        """
        if not self.client:
            raise RuntimeError("Redis client not initialized. Call init_redis() first.")

        try:
            return await self.client.publish(channel, message)
        except RedisError as e:
            logger.warning("Failed to publish on channel %s: %s", channel, e)
            raise


# Global client instance
redis_client = RedisClient()


async def init_redis() -> None:
    """Initialize the global Redis client."""
    await redis_client.initialize()


async def close_redis() -> None:
    """Close the global Redis client."""
    await redis_client.close()


def get_redis() -> RedisClient:
    """Get the global Redis client."""
    return redis_client
