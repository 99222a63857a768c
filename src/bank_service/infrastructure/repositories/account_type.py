from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


class AccountTypeRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_all(self) -> set[str]:
        result = await self._session.execute(text("SELECT account_type FROM bank_account_types"))
        return {row.account_type for row in result.fetchall()}
