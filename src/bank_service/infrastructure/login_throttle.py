from typing import TYPE_CHECKING, Any

import structlog

from bank_service.infrastructure.metrics import LOGIN_LOCKOUTS_TOTAL


if TYPE_CHECKING:
    import redis.asyncio as redis

logger = structlog.get_logger()


class LoginThrottle:
    """
    Failed-login counter with a time-boxed lockout, kept in Redis.

    After ``max_failures`` consecutive failures the username is locked for
    ``lockout_seconds``. Both keys carry a TTL, so stale entries are evicted
    by Redis rather than accumulating in the process.
    """

    def __init__(
        self,
        redis_client: "redis.Redis[bytes]",
        max_failures: int = 4,
        lockout_seconds: int = 600,
        key_prefix: str = "login:",
    ) -> None:
        self._redis = redis_client
        self._max_failures = max_failures
        self._lockout_seconds = lockout_seconds
        self._key_prefix = key_prefix

    @property
    def max_failures(self) -> int:
        return self._max_failures

    @property
    def lockout_seconds(self) -> int:
        return self._lockout_seconds

    def _failures_key(self, username: str) -> str:
        return f"{self._key_prefix}failures:{username.lower()}"

    def _lockout_key(self, username: str) -> str:
        return f"{self._key_prefix}lockout:{username.lower()}"

    async def is_locked(self, username: str) -> bool:
        return bool(await self._redis.exists(self._lockout_key(username)))

    async def record_failure(self, username: str) -> bool:
        """
        Count a failed login.

        Returns:
            True when this failure locked the username out.
        """
        failures_key = self._failures_key(username)

        pipe = self._redis.pipeline()
        pipe.incr(failures_key)
        pipe.expire(failures_key, self._lockout_seconds)
        results: list[Any] = await pipe.execute()
        failures = int(results[0])

        if failures < self._max_failures:
            logger.info("login_failure_recorded", username=username, failures=failures)
            return False

        pipe = self._redis.pipeline()
        pipe.set(self._lockout_key(username), b"1", ex=self._lockout_seconds)
        pipe.delete(failures_key)
        await pipe.execute()

        LOGIN_LOCKOUTS_TOTAL.inc()
        logger.warning(
            "login_locked_out",
            username=username,
            failures=failures,
            lockout_seconds=self._lockout_seconds,
        )
        return True

    async def reset(self, username: str) -> None:
        await self._redis.delete(self._failures_key(username), self._lockout_key(username))
