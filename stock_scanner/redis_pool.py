"""Process-wide Redis client used by the scan guard."""

from typing import Optional

import redis.asyncio as redis

from stock_scanner.config import Settings


class RedisClient:
    """
    Singleton holder of the Redis connection pool.

    Created on startup from ``REDIS_URL`` and closed on shutdown; no
    connection is opened until the first command.
    """

    _instance: Optional[redis.Redis] = None

    @classmethod
    async def get_instance(cls, settings: Settings) -> redis.Redis:
        if cls._instance is None:
            cls._instance = redis.Redis.from_url(
                settings.redis_url,
                decode_responses=True,
                max_connections=settings.redis_max_connections,
                socket_timeout=5.0,
                socket_connect_timeout=5.0,
            )
        return cls._instance

    @classmethod
    async def close(cls) -> None:
        if cls._instance is not None:
            await cls._instance.aclose()
            cls._instance = None
