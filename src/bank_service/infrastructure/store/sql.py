import time
from collections.abc import AsyncGenerator, Collection
from contextlib import asynccontextmanager
from decimal import Decimal

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

from bank_service.domain.exceptions import DuplicateUserError, LockTimeoutError, StoreError
from bank_service.domain.models import Account, User
from bank_service.infrastructure.database import Database
from bank_service.infrastructure.metrics import ACCOUNT_LOCK_TIMEOUTS_TOTAL, ACCOUNT_LOCK_WAIT_SECONDS
from bank_service.infrastructure.unit_of_work import UnitOfWork


logger = structlog.get_logger()

# PostgreSQL lock_not_available
LOCK_NOT_AVAILABLE = "55P03"


def _is_lock_timeout(exc: DBAPIError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig.__cause__, "sqlstate", None)
    return sqlstate == LOCK_NOT_AVAILABLE


class SqlAccountTransaction:
    def __init__(self, uow: UnitOfWork, account_ids: tuple[int, ...]) -> None:
        self._uow = uow
        self._account_ids = frozenset(account_ids)

    def _check_scope(self, account_id: int) -> None:
        if account_id not in self._account_ids:
            raise ValueError(f"Account {account_id} is outside the lock scope")

    async def get_account(self, account_id: int, owner: str) -> Account | None:
        self._check_scope(account_id)
        try:
            return await self._uow.accounts.get(account_id, owner)
        except SQLAlchemyError as e:
            raise StoreError("get_account", e) from e

    async def set_balance(self, account_id: int, new_balance: Decimal) -> None:
        self._check_scope(account_id)
        # a failed write rolls back to the savepoint and leaves the
        # transaction usable for a compensating write
        try:
            async with self._uow.savepoint():
                await self._uow.accounts.update_balance(account_id, new_balance)
        except SQLAlchemyError as e:
            raise StoreError("set_balance", e) from e


class SqlAccountStore:
    """Account store on PostgreSQL; locking uses ``SELECT ... FOR UPDATE``."""

    def __init__(self, database: Database, lock_timeout_seconds: float = 5.0) -> None:
        self._database = database
        self._lock_timeout_seconds = lock_timeout_seconds

    @asynccontextmanager
    async def _unit_of_work(self, operation: str, *, write: bool = False) -> AsyncGenerator[UnitOfWork, None]:
        session_scope = self._database.transaction() if write else self._database.session()
        try:
            async with session_scope as session:
                yield UnitOfWork(session)
        except SQLAlchemyError as e:
            logger.warning("store_operation_failed", operation=operation, error=str(e))
            raise StoreError(operation, e) from e

    async def list_accounts(self, owner: str) -> list[Account]:
        async with self._unit_of_work("list_accounts") as uow:
            return await uow.accounts.list_by_owner(owner)

    async def get_account(self, account_id: int, owner: str) -> Account | None:
        async with self._unit_of_work("get_account") as uow:
            return await uow.accounts.get(account_id, owner)

    async def count_accounts(self, owner: str) -> int:
        async with self._unit_of_work("count_accounts") as uow:
            return await uow.accounts.count_by_owner(owner)

    async def list_account_types(self) -> set[str]:
        async with self._unit_of_work("list_account_types") as uow:
            return await uow.account_types.list_all()

    async def create_account(self, owner: str, account_type: str) -> Account:
        async with self._unit_of_work("create_account", write=True) as uow:
            account = await uow.accounts.add(owner, account_type)
        logger.info("account_created", account_id=account.account_id, owner=owner, account_type=account_type)
        return account

    async def set_balance(self, account_id: int, new_balance: Decimal) -> None:
        async with self._unit_of_work("set_balance", write=True) as uow:
            await uow.accounts.update_balance(account_id, new_balance)

    async def get_user(self, username: str) -> User | None:
        async with self._unit_of_work("get_user") as uow:
            return await uow.users.get(username)

    async def get_password_hash(self, username: str) -> str | None:
        async with self._unit_of_work("get_password_hash") as uow:
            return await uow.users.get_password_hash(username)

    async def add_user(self, user: User, password_hash: str) -> None:
        try:
            async with self._unit_of_work("add_user", write=True) as uow:
                await uow.users.add(user, password_hash)
        except StoreError as e:
            if isinstance(e.cause, IntegrityError):
                raise DuplicateUserError(user.username) from e
            raise

    @asynccontextmanager
    async def atomic_account_lock(self, account_ids: Collection[int]) -> AsyncGenerator[SqlAccountTransaction, None]:
        ordered = tuple(sorted(set(account_ids)))
        started = time.perf_counter()
        deadline = started + self._lock_timeout_seconds

        try:
            async with self._database.transaction() as session:
                uow = UnitOfWork(session)
                # one row at a time in ascending id order; the remaining
                # budget is re-applied before each lock so the total wait
                # stays within lock_timeout_seconds
                for account_id in ordered:
                    remaining_ms = int((deadline - time.perf_counter()) * 1000)
                    if remaining_ms <= 0:
                        raise LockTimeoutError(ordered, self._lock_timeout_seconds)
                    await uow.set_lock_timeout(remaining_ms)
                    await uow.accounts.lock(account_id)

                ACCOUNT_LOCK_WAIT_SECONDS.labels(store="postgres").observe(time.perf_counter() - started)
                yield SqlAccountTransaction(uow, ordered)
        except DBAPIError as e:
            if _is_lock_timeout(e):
                ACCOUNT_LOCK_TIMEOUTS_TOTAL.labels(store="postgres").inc()
                logger.warning("account_lock_timeout", account_ids=list(ordered))
                raise LockTimeoutError(ordered, self._lock_timeout_seconds) from e
            raise StoreError("atomic_account_lock", e) from e
        except SQLAlchemyError as e:
            raise StoreError("atomic_account_lock", e) from e
        except LockTimeoutError:
            ACCOUNT_LOCK_TIMEOUTS_TOTAL.labels(store="postgres").inc()
            raise

    async def close(self) -> None:
        await self._database.close()
