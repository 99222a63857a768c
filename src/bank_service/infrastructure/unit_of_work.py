from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from bank_service.infrastructure.repositories import (
    AccountRepository,
    AccountTypeRepository,
    UserRepository,
)


class UnitOfWork:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.users = UserRepository(session)
        self.accounts = AccountRepository(session)
        self.account_types = AccountTypeRepository(session)

    def savepoint(self) -> AsyncSessionTransaction:
        return self._session.begin_nested()

    async def set_lock_timeout(self, timeout_ms: int) -> None:
        # SET LOCAL does not accept bind parameters
        await self._session.execute(
            text("SELECT set_config('lock_timeout', :timeout, true)"),
            {"timeout": f"{max(timeout_ms, 1)}ms"},
        )
