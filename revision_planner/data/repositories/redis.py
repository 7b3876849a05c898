import logging
from typing import Any, Optional

from fastapi import HTTPException
from redis.asyncio import Redis
from redis.exceptions import RedisError

from revision_planner.config import Config

redis_logger = logging.getLogger("db").getChild("redis")


class RedisClient:
    """
    Singleton async Redis client. Holds revoked token ids (access, refresh and
    password reset) and the per-client request counters of the rate limiter.
    """

    _instance = None

    def __new__(cls, *args, **kwargs):
        if not cls._instance:
            cls._instance = super(RedisClient, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self.redis: Optional[Redis] = None
        # A revoked token only needs remembering until it would have expired anyway
        self.JTI_EXPIRY = Config.JWT_REFRESH_TOKEN_EXPIRY
        self._initialized = True

    async def connect(self):
        if self.redis is not None:
            return
        client = Redis(
            host=Config.REDIS_HOST,
            port=Config.REDIS_PORT,
            db=0,
            password=Config.REDIS_PASSWORD,
            decode_responses=True,
        )
        try:
            await client.ping()
        except RedisError as e:
            redis_logger.error(f"Redis connection error: {str(e)}")
            raise HTTPException(status_code=500, detail=f"Redis connection error: {str(e)}")
        self.redis = client
        redis_logger.info(f"Connected to Redis at {Config.REDIS_HOST}:{Config.REDIS_PORT}")

    async def close(self):
        if self.redis:
            await self.redis.close()
            self.redis = None

    async def _command(self, name: str, *args, **kwargs) -> Any:
        await self.connect()
        try:
            return await getattr(self.redis, name)(*args, **kwargs)
        except RedisError as e:
            redis_logger.error(f"Redis {name} failed: {str(e)}")
            raise HTTPException(status_code=500, detail=f"Redis operation failed: {str(e)}")

    async def get(self, name: str) -> Any:
        return await self._command("get", name)

    async def set(self, name: str, value: str, ex: Optional[int] = None) -> None:
        await self._command("set", name=name, value=value, ex=ex)

    async def exists(self, name: str) -> bool:
        return bool(await self._command("exists", name))

    async def incr(self, name: str) -> int:
        return await self._command("incr", name)

    async def expire(self, name: str, seconds: int) -> None:
        await self._command("expire", name, seconds)

    async def hit(self, name: str, window: int) -> int:
        """Counts one request against a fixed window and returns the count so far."""
        count = await self.incr(name)
        if count == 1:
            await self.expire(name, window)
        return count

    async def add_jti_to_blocklist(self, jti: str, expiry: Optional[int] = None) -> None:
        await self._command(
            "setex", name=f"jti:{jti}", time=expiry or self.JTI_EXPIRY, value="revoked"
        )

    async def token_in_blocklist(self, jti: str) -> bool:
        return await self.exists(f"jti:{jti}")


redis_client = RedisClient()
