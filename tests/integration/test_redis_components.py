"""Integration tests for LoginThrottle and SessionStore with Redis."""

from collections.abc import AsyncGenerator, Generator

import pytest
import redis.asyncio as redis
from testcontainers.redis import RedisContainer

from bank_service.infrastructure.login_throttle import LoginThrottle
from bank_service.infrastructure.sessions import SessionStore


pytestmark = pytest.mark.integration


@pytest.fixture(scope="module")
def redis_container() -> Generator[RedisContainer, None, None]:
    """Start Redis container for tests."""
    container = RedisContainer("redis:7-alpine")
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Redis container unavailable: {e}")
    try:
        yield container
    finally:
        container.stop()


@pytest.fixture
async def redis_client(redis_container: RedisContainer) -> AsyncGenerator["redis.Redis[bytes]", None]:
    """Create Redis client connected to container."""
    host = redis_container.get_container_host_ip()
    port = redis_container.get_exposed_port(6379)
    client: redis.Redis[bytes] = redis.from_url(f"redis://{host}:{port}/0")
    yield client
    await client.flushdb()
    await client.aclose()


class TestLoginThrottleIntegration:
    @pytest.mark.asyncio
    async def test_locks_out_after_max_failures(self, redis_client: "redis.Redis[bytes]") -> None:
        throttle = LoginThrottle(redis_client, max_failures=4, lockout_seconds=600)

        results = [await throttle.record_failure("alice") for _ in range(4)]

        assert results == [False, False, False, True]
        assert await throttle.is_locked("ALICE") is True
        assert 0 < await redis_client.ttl("login:lockout:alice") <= 600
        assert await redis_client.exists("login:failures:alice") == 0

    @pytest.mark.asyncio
    async def test_failure_counter_expires(self, redis_client: "redis.Redis[bytes]") -> None:
        throttle = LoginThrottle(redis_client, max_failures=4, lockout_seconds=600)

        await throttle.record_failure("alice")

        assert 0 < await redis_client.ttl("login:failures:alice") <= 600

    @pytest.mark.asyncio
    async def test_reset_clears_failures(self, redis_client: "redis.Redis[bytes]") -> None:
        throttle = LoginThrottle(redis_client, max_failures=2, lockout_seconds=600)
        await throttle.record_failure("alice")

        await throttle.reset("alice")

        assert await throttle.record_failure("alice") is False
        assert await throttle.is_locked("alice") is False

    @pytest.mark.asyncio
    async def test_users_are_throttled_independently(self, redis_client: "redis.Redis[bytes]") -> None:
        throttle = LoginThrottle(redis_client, max_failures=1, lockout_seconds=600)

        assert await throttle.record_failure("alice") is True
        assert await throttle.is_locked("bob") is False


class TestSessionStoreIntegration:
    @pytest.mark.asyncio
    async def test_session_lifecycle(self, redis_client: "redis.Redis[bytes]") -> None:
        sessions = SessionStore(redis_client, ttl_seconds=180, idle_extension_seconds=60)

        token = await sessions.create("alice")
        assert await sessions.get(token) == "alice"
        assert 120 < await redis_client.ttl(f"session:{token}") <= 180

        await sessions.destroy(token)
        assert await sessions.get(token) is None

    @pytest.mark.asyncio
    async def test_activity_extends_expiring_session(self, redis_client: "redis.Redis[bytes]") -> None:
        sessions = SessionStore(redis_client, ttl_seconds=180, idle_extension_seconds=60)
        token = await sessions.create("alice")
        await redis_client.expire(f"session:{token}", 10)

        assert await sessions.get(token) == "alice"

        assert 60 < await redis_client.ttl(f"session:{token}") <= 70
