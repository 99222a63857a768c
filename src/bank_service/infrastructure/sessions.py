import secrets
from typing import TYPE_CHECKING

import structlog


if TYPE_CHECKING:
    import redis.asyncio as redis

logger = structlog.get_logger()


class SessionStore:
    """
    Opaque session tokens mapped to an owner identity in Redis.

    A session lives ``ttl_seconds`` after login; activity pushes the expiry
    out by ``idle_extension_seconds`` once less than that much time is left.
    """

    def __init__(
        self,
        redis_client: "redis.Redis[bytes]",
        ttl_seconds: int = 180,
        idle_extension_seconds: int = 60,
        key_prefix: str = "session:",
    ) -> None:
        self._redis = redis_client
        self._ttl_seconds = ttl_seconds
        self._idle_extension_seconds = idle_extension_seconds
        self._key_prefix = key_prefix

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def _key(self, token: str) -> str:
        return f"{self._key_prefix}{token}"

    async def create(self, username: str) -> str:
        token = secrets.token_urlsafe(32)
        await self._redis.set(self._key(token), username.encode(), ex=self._ttl_seconds)
        logger.info("session_created", username=username)
        return token

    async def get(self, token: str) -> str | None:
        key = self._key(token)
        value = await self._redis.get(key)
        if value is None:
            return None
        ttl = await self._redis.ttl(key)
        if 0 <= ttl < self._idle_extension_seconds:
            await self._redis.expire(key, ttl + self._idle_extension_seconds)
        return value.decode() if isinstance(value, bytes) else str(value)

    async def destroy(self, token: str) -> None:
        await self._redis.delete(self._key(token))
