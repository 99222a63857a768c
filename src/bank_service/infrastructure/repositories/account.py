from decimal import Decimal
from typing import Any, cast

from sqlalchemy import CursorResult, Row, text
from sqlalchemy.ext.asyncio import AsyncSession

from bank_service.domain.exceptions import StoreError
from bank_service.domain.models import Account


def _to_account(row: Row[Any]) -> Account:
    return Account(
        account_id=row.account_id,
        owner=row.bank_user_id,
        account_type=row.account_type,
        balance=row.balance,
    )


class AccountRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_by_owner(self, owner: str) -> list[Account]:
        result = await self._session.execute(
            text("""
                SELECT account_id, bank_user_id, account_type, balance
                FROM bank_user_accounts
                WHERE bank_user_id = :owner
                ORDER BY account_id
            """),
            {"owner": owner},
        )
        return [_to_account(row) for row in result.fetchall()]

    async def count_by_owner(self, owner: str) -> int:
        result = await self._session.execute(
            text("SELECT COUNT(*) AS total FROM bank_user_accounts WHERE bank_user_id = :owner"),
            {"owner": owner},
        )
        return int(result.scalar_one())

    async def get(self, account_id: int, owner: str) -> Account | None:
        result = await self._session.execute(
            text("""
                SELECT account_id, bank_user_id, account_type, balance
                FROM bank_user_accounts
                WHERE account_id = :account_id AND bank_user_id = :owner
            """),
            {"account_id": account_id, "owner": owner},
        )
        row = result.fetchone()
        if not row:
            return None
        return _to_account(row)

    async def lock(self, account_id: int) -> bool:
        """Take the row lock for an account, waiting at most the session's lock_timeout."""
        result = await self._session.execute(
            text("""
                SELECT account_id
                FROM bank_user_accounts
                WHERE account_id = :account_id
                FOR UPDATE
            """),
            {"account_id": account_id},
        )
        return result.fetchone() is not None

    async def add(self, owner: str, account_type: str) -> Account:
        result = await self._session.execute(
            text("""
                INSERT INTO bank_user_accounts (bank_user_id, account_type, balance)
                VALUES (:owner, :account_type, 0)
                RETURNING account_id, bank_user_id, account_type, balance
            """),
            {"owner": owner, "account_type": account_type},
        )
        return _to_account(result.one())

    async def update_balance(self, account_id: int, new_balance: Decimal) -> None:
        result = cast(
            "CursorResult[Any]",
            await self._session.execute(
                text("""
                    UPDATE bank_user_accounts
                    SET balance = :balance
                    WHERE account_id = :account_id
                """),
                {"account_id": account_id, "balance": new_balance},
            ),
        )
        if (result.rowcount or 0) == 0:
            raise StoreError("set_balance", LookupError(f"account {account_id} does not exist"))
