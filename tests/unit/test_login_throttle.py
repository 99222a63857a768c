"""Unit tests for LoginThrottle."""

from unittest.mock import AsyncMock, call

import pytest

from bank_service.infrastructure.login_throttle import LoginThrottle


class TestLoginThrottle:
    """Tests for LoginThrottle against a mocked redis client."""

    @pytest.fixture
    def throttle(self, mock_redis: AsyncMock) -> LoginThrottle:
        return LoginThrottle(mock_redis, max_failures=4, lockout_seconds=600)

    @pytest.mark.asyncio
    async def test_is_locked_checks_lockout_key(self, throttle: LoginThrottle, mock_redis: AsyncMock) -> None:
        mock_redis.exists.return_value = 1

        assert await throttle.is_locked("Alice") is True
        mock_redis.exists.assert_called_once_with("login:lockout:alice")

    @pytest.mark.asyncio
    async def test_not_locked(self, throttle: LoginThrottle, mock_redis: AsyncMock) -> None:
        mock_redis.exists.return_value = 0
        assert await throttle.is_locked("alice") is False

    @pytest.mark.asyncio
    async def test_failure_below_threshold(self, throttle: LoginThrottle, mock_redis: AsyncMock) -> None:
        pipeline = mock_redis.pipeline.return_value
        pipeline.execute.return_value = [3, True]

        assert await throttle.record_failure("alice") is False

        pipeline.incr.assert_called_once_with("login:failures:alice")
        pipeline.expire.assert_called_once_with("login:failures:alice", 600)
        pipeline.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_fourth_failure_locks_out(self, throttle: LoginThrottle, mock_redis: AsyncMock) -> None:
        pipeline = mock_redis.pipeline.return_value
        pipeline.execute.return_value = [4, True]

        assert await throttle.record_failure("alice") is True

        pipeline.set.assert_called_once_with("login:lockout:alice", b"1", ex=600)
        pipeline.delete.assert_called_once_with("login:failures:alice")
        assert pipeline.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_reset_clears_both_keys(self, throttle: LoginThrottle, mock_redis: AsyncMock) -> None:
        await throttle.reset("alice")

        assert mock_redis.delete.call_args == call("login:failures:alice", "login:lockout:alice")

    def test_custom_prefix_and_limits(self, mock_redis: AsyncMock) -> None:
        throttle = LoginThrottle(mock_redis, max_failures=2, lockout_seconds=30, key_prefix="t:")

        assert throttle.max_failures == 2
        assert throttle.lockout_seconds == 30
        assert throttle._lockout_key("Bob") == "t:lockout:bob"
