import asyncio
import itertools
import time
from collections.abc import AsyncGenerator, Collection, Iterable
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import replace
from decimal import Decimal

import structlog

from bank_service.domain.exceptions import DuplicateUserError, LockTimeoutError, StoreError
from bank_service.domain.models import MAX_BALANCE, ZERO, Account, User, to_money
from bank_service.infrastructure.metrics import ACCOUNT_LOCK_TIMEOUTS_TOTAL, ACCOUNT_LOCK_WAIT_SECONDS


logger = structlog.get_logger()

DEFAULT_ACCOUNT_TYPES = frozenset({"Checking", "Savings"})


class InMemoryAccountTransaction:
    def __init__(self, store: "InMemoryAccountStore", account_ids: tuple[int, ...]) -> None:
        self._store = store
        self._account_ids = frozenset(account_ids)
        self._original_balances: dict[int, Decimal] = {}

    def _check_scope(self, account_id: int) -> None:
        if account_id not in self._account_ids:
            raise ValueError(f"Account {account_id} is outside the lock scope")

    async def get_account(self, account_id: int, owner: str) -> Account | None:
        self._check_scope(account_id)
        return await self._store.get_account(account_id, owner)

    async def set_balance(self, account_id: int, new_balance: Decimal) -> None:
        self._check_scope(account_id)
        account = self._store._accounts.get(account_id)
        if account is not None:
            self._original_balances.setdefault(account_id, account.balance)
        await self._store.set_balance(account_id, new_balance)

    def rollback(self) -> None:
        for account_id, balance in self._original_balances.items():
            self._store._accounts[account_id].balance = balance
        self._original_balances.clear()


class InMemoryAccountStore:
    """
    Single-process account store.

    Each account id owns an ``asyncio.Lock``; ``atomic_account_lock`` takes
    them in ascending id order. Only valid when one process serves every
    request for the accounts it holds.
    """

    def __init__(
        self,
        account_types: Iterable[str] = DEFAULT_ACCOUNT_TYPES,
        lock_timeout_seconds: float = 5.0,
    ) -> None:
        self._account_types = set(account_types)
        self._lock_timeout_seconds = lock_timeout_seconds
        self._users: dict[str, tuple[User, str]] = {}
        self._accounts: dict[int, Account] = {}
        self._locks: dict[int, asyncio.Lock] = {}
        self._ids = itertools.count(1)
        self._closed = False

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise StoreError(operation, RuntimeError("store is closed"))

    async def list_accounts(self, owner: str) -> list[Account]:
        self._ensure_open("list_accounts")
        return [replace(a) for a in self._accounts.values() if a.owner == owner]

    async def get_account(self, account_id: int, owner: str) -> Account | None:
        self._ensure_open("get_account")
        account = self._accounts.get(account_id)
        if account is None or account.owner != owner:
            return None
        return replace(account)

    async def count_accounts(self, owner: str) -> int:
        self._ensure_open("count_accounts")
        return sum(1 for a in self._accounts.values() if a.owner == owner)

    async def list_account_types(self) -> set[str]:
        self._ensure_open("list_account_types")
        return set(self._account_types)

    async def create_account(self, owner: str, account_type: str) -> Account:
        self._ensure_open("create_account")
        account = Account(account_id=next(self._ids), owner=owner, account_type=account_type, balance=ZERO)
        self._accounts[account.account_id] = account
        self._locks[account.account_id] = asyncio.Lock()
        logger.info("account_created", account_id=account.account_id, owner=owner, account_type=account_type)
        return replace(account)

    async def set_balance(self, account_id: int, new_balance: Decimal) -> None:
        self._ensure_open("set_balance")
        account = self._accounts.get(account_id)
        if account is None:
            raise StoreError("set_balance", LookupError(f"account {account_id} does not exist"))
        balance = to_money(new_balance)
        if balance < ZERO:
            # mirrors the CHECK (balance >= 0) constraint of the SQL schema
            raise StoreError("set_balance", ValueError(f"negative balance {balance}"))
        if balance > MAX_BALANCE:
            raise StoreError("set_balance", ValueError(f"balance {balance} exceeds {MAX_BALANCE}"))
        account.balance = balance

    async def get_user(self, username: str) -> User | None:
        self._ensure_open("get_user")
        entry = self._users.get(username)
        return replace(entry[0]) if entry else None

    async def get_password_hash(self, username: str) -> str | None:
        self._ensure_open("get_password_hash")
        entry = self._users.get(username)
        return entry[1] if entry else None

    async def add_user(self, user: User, password_hash: str) -> None:
        self._ensure_open("add_user")
        if user.username in self._users:
            raise DuplicateUserError(user.username)
        self._users[user.username] = (replace(user), password_hash)

    @asynccontextmanager
    async def atomic_account_lock(
        self, account_ids: Collection[int]
    ) -> AsyncGenerator[InMemoryAccountTransaction, None]:
        self._ensure_open("atomic_account_lock")
        ordered = tuple(sorted(set(account_ids)))
        # unknown ids still get a lock so callers observe a missing account under the lock
        locks = [self._locks.setdefault(account_id, asyncio.Lock()) for account_id in ordered]
        started = time.perf_counter()

        async with AsyncExitStack() as stack:
            try:
                async with asyncio.timeout(self._lock_timeout_seconds):
                    for lock in locks:
                        await lock.acquire()
                        stack.push_async_callback(_release, lock)
            except TimeoutError as e:
                ACCOUNT_LOCK_TIMEOUTS_TOTAL.labels(store="memory").inc()
                logger.warning("account_lock_timeout", account_ids=list(ordered))
                raise LockTimeoutError(ordered, self._lock_timeout_seconds) from e

            ACCOUNT_LOCK_WAIT_SECONDS.labels(store="memory").observe(time.perf_counter() - started)
            tx = InMemoryAccountTransaction(self, ordered)
            try:
                yield tx
            except BaseException:
                tx.rollback()
                raise

    async def close(self) -> None:
        self._closed = True


async def _release(lock: asyncio.Lock) -> None:
    lock.release()
