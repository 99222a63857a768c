from urllib.parse import urlsplit

import redis.asyncio as redis
import structlog


logger = structlog.get_logger()


def _display_url(url: str) -> str:
    parts = urlsplit(url)
    if parts.password is None:
        return url
    netloc = f"{parts.username or ''}:***@{parts.hostname}"
    if parts.port:
        netloc += f":{parts.port}"
    return parts._replace(netloc=netloc).geturl()


class RedisClient:
    """Connection shared by the session store and the login throttle."""

    def __init__(self, url: str, socket_timeout_seconds: float = 2.0) -> None:
        self._url = url
        self._socket_timeout_seconds = socket_timeout_seconds
        self._client: redis.Redis[bytes] | None = None

    @property
    def client(self) -> "redis.Redis[bytes]":
        """Get the Redis client. Raises if not connected."""
        if self._client is None:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._client

    async def connect(self) -> None:
        """Connect to Redis; fails fast when the server is unreachable."""
        self._client = redis.from_url(
            self._url,
            decode_responses=False,
            socket_timeout=self._socket_timeout_seconds,
            socket_connect_timeout=self._socket_timeout_seconds,
        )
        await self._client.ping()
        logger.info("redis_connected", url=_display_url(self._url))

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("redis_disconnected")
