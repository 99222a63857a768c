from collections.abc import Awaitable, Callable, Collection
from contextlib import AbstractAsyncContextManager
from decimal import Decimal
from typing import Protocol

from bank_service.domain.models import Account, User


class AccountTransaction(Protocol):
    """View of the locked accounts handed out by ``AccountStore.atomic_account_lock``.

    Reads see writes made earlier through the same view. Only the account ids
    named when the lock was taken may be read or written.
    """

    async def get_account(self, account_id: int, owner: str) -> Account | None: ...

    async def set_balance(self, account_id: int, new_balance: Decimal) -> None: ...


class AccountStore(Protocol):
    """
    Persistence for users and bank accounts.

    Owner-scoped reads fail closed: an account that exists but belongs to
    someone else is reported exactly like a missing one (``None``).
    Connectivity and query failures raise ``StoreError``.
    """

    async def list_accounts(self, owner: str) -> list[Account]: ...

    async def get_account(self, account_id: int, owner: str) -> Account | None: ...

    async def count_accounts(self, owner: str) -> int: ...

    async def list_account_types(self) -> set[str]: ...

    async def create_account(self, owner: str, account_type: str) -> Account: ...

    async def set_balance(self, account_id: int, new_balance: Decimal) -> None:
        """Overwrite the stored balance; the caller owns the arithmetic."""
        ...

    def atomic_account_lock(
        self, account_ids: Collection[int]
    ) -> AbstractAsyncContextManager[AccountTransaction]:
        """
        Serialize access to ``account_ids`` for the duration of the block.

        Locks are taken in ascending id order with a bounded wait and raise
        ``LockTimeoutError`` when the wait runs out. Writes made through the
        yielded transaction are committed on normal exit and discarded when
        the block raises. Locks are released on every exit path.
        """
        ...

    async def get_user(self, username: str) -> User | None: ...

    async def get_password_hash(self, username: str) -> str | None: ...

    async def add_user(self, user: User, password_hash: str) -> None: ...

    async def close(self) -> None: ...


async def run_locked[R](
    store: AccountStore,
    account_ids: Collection[int],
    fn: Callable[[AccountTransaction], Awaitable[R]],
) -> R:
    """Run ``fn`` with the accounts locked; callback form of ``atomic_account_lock``."""
    async with store.atomic_account_lock(account_ids) as tx:
        return await fn(tx)
