"""Shared pytest fixtures for bank service tests."""

import secrets
from collections.abc import Iterator
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from bank_service.app import create_app
from bank_service.config import Settings
from bank_service.domain.models import Account, User
from bank_service.infrastructure.login_throttle import LoginThrottle
from bank_service.infrastructure.store.memory import InMemoryAccountStore


VALID_PASSWORD = "Correct-Horse9"


def make_user(username: str = "alice") -> User:
    return User(
        username=username,
        first_name="Alice",
        last_name="Liddell",
        street="12 Rabbit Hole Ln.",
        city="Oxford",
        country_state="Oxfordshire",
        country="England",
    )


def registration_form(username: str = "alice", password: str = VALID_PASSWORD) -> dict[str, str]:
    return {
        "first_name": "Alice",
        "last_name": "Liddell",
        "street": "12 Rabbit Hole Ln.",
        "city": "Oxford",
        "country_state": "Oxfordshire",
        "country": "England",
        "username": username,
        "password": password,
    }


async def open_funded_account(
    store: InMemoryAccountStore,
    owner: str,
    balance: str = "0.00",
    account_type: str = "Checking",
) -> Account:
    """Create an account and set its opening balance directly in the store."""
    account = await store.create_account(owner, account_type)
    await store.set_balance(account.account_id, Decimal(balance))
    fetched = await store.get_account(account.account_id, owner)
    assert fetched is not None
    return fetched


class FakeSessionStore:
    """Dict-backed stand-in for ``SessionStore`` used by the HTTP tests."""

    def __init__(self) -> None:
        self.sessions: dict[str, str] = {}

    async def create(self, username: str) -> str:
        token = secrets.token_urlsafe(16)
        self.sessions[token] = username
        return token

    async def get(self, token: str) -> str | None:
        return self.sessions.get(token)

    async def destroy(self, token: str) -> None:
        self.sessions.pop(token, None)


@pytest.fixture
def store() -> InMemoryAccountStore:
    """Create an empty in-memory account store with a short lock timeout."""
    return InMemoryAccountStore(lock_timeout_seconds=0.5)


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create mock redis client with a pipeline that records queued commands."""
    client = AsyncMock()
    client.exists = AsyncMock(return_value=0)
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.ttl = AsyncMock(return_value=-2)
    client.expire = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)

    pipeline = MagicMock()
    pipeline.execute = AsyncMock(return_value=[1, True])
    client.pipeline = MagicMock(return_value=pipeline)
    return client


@pytest.fixture
def mock_login_throttle() -> AsyncMock:
    """Create mock LoginThrottle that never locks anyone out."""
    throttle = AsyncMock(spec=LoginThrottle)
    throttle.is_locked = AsyncMock(return_value=False)
    throttle.record_failure = AsyncMock(return_value=False)
    throttle.reset = AsyncMock(return_value=None)
    return throttle


@pytest.fixture
def test_settings() -> Settings:
    """Create settings suitable for plain-HTTP test clients."""
    return Settings(
        store_backend="memory",
        session_cookie_secure=False,
        bcrypt_rounds=4,
        lock_timeout_seconds=0.5,
    )


@pytest.fixture
def session_store() -> FakeSessionStore:
    return FakeSessionStore()


@pytest.fixture
def client(
    store: InMemoryAccountStore,
    session_store: FakeSessionStore,
    mock_login_throttle: AsyncMock,
    test_settings: Settings,
) -> Iterator[TestClient]:
    """Create a TestClient for an app backed by the in-memory store."""
    app = create_app(
        store=store,
        session_store=session_store,  # type: ignore[arg-type]
        login_throttle=mock_login_throttle,
        settings=test_settings,
    )
    with TestClient(app) as test_client:
        yield test_client
