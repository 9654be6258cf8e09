"""
apiscaffold/infra/redis.py
Redis client lifecycle component (redis.asyncio).
"""

from typing import Any, Optional

from ..api.lifespan.base import BaseLifecycleComponent, ComponentState
from ..core.config import Settings


class RedisComponent(BaseLifecycleComponent):
    """Owns a pooled redis.asyncio client and pings it on startup."""

    name = "redis"
    startup_timeout = 15
    shutdown_timeout = 5

    def __init__(self, settings: Settings):
        super().__init__()
        self.settings = settings
        self.client = None

    async def startup(self) -> None:
        import redis.asyncio as aioredis

        s = self.settings
        self.safe_log("connecting_to_redis", address=s.redis_address, db=s.REDIS_DB)
        self.client = aioredis.Redis(
            host=s.REDIS_HOST,
            port=s.REDIS_PORT,
            db=s.REDIS_DB,
            username=s.REDIS_USERNAME or None,
            password=s.REDIS_PASSWORD or None,
            max_connections=s.REDIS_POOL_SIZE,
            socket_timeout=s.REDIS_TIMEOUT_SECONDS,
            socket_connect_timeout=s.REDIS_TIMEOUT_SECONDS,
            decode_responses=True,
        )
        await self.client.ping()
        self.metadata.update({"address": s.redis_address, "db": s.REDIS_DB})
        self.safe_log("connected_to_redis")

    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    async def set(self, key: str, value: Any, expire_seconds: Optional[int] = None) -> bool:
        return await self.client.set(key, value, ex=expire_seconds)

    async def delete(self, *keys: str) -> int:
        return await self.client.delete(*keys)

    async def exists(self, *keys: str) -> int:
        return await self.client.exists(*keys)

    async def shutdown(self) -> None:
        if self.client is None:
            return
        await self.client.aclose()
        self.client = None
        self.safe_log("disconnected_from_redis")

    async def health_check(self) -> bool:
        if self.client is None or self.state != ComponentState.RUNNING:
            return False
        try:
            return bool(await self.client.ping())
        except Exception as e:
            self.log_error("health_check_failed", e)
            return False
