from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from bank_service.domain.models import User


class UserRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, username: str) -> User | None:
        result = await self._session.execute(
            text("""
                SELECT user_id, first_name, last_name, street, city, country_state, country
                FROM bank_users
                WHERE user_id = :user_id
            """),
            {"user_id": username},
        )
        row = result.fetchone()
        if not row:
            return None
        return User(
            username=row.user_id,
            first_name=row.first_name,
            last_name=row.last_name,
            street=row.street,
            city=row.city,
            country_state=row.country_state,
            country=row.country,
        )

    async def get_password_hash(self, username: str) -> str | None:
        result = await self._session.execute(
            text("SELECT password_hash FROM bank_users WHERE user_id = :user_id"),
            {"user_id": username},
        )
        row = result.fetchone()
        return row.password_hash if row else None

    async def add(self, user: User, password_hash: str) -> None:
        await self._session.execute(
            text("""
                INSERT INTO bank_users
                    (user_id, password_hash, first_name, last_name, street, city, country_state, country)
                VALUES
                    (:user_id, :password_hash, :first_name, :last_name, :street, :city, :country_state, :country)
            """),
            {
                "user_id": user.username,
                "password_hash": password_hash,
                "first_name": user.first_name,
                "last_name": user.last_name,
                "street": user.street,
                "city": user.city,
                "country_state": user.country_state,
                "country": user.country,
            },
        )
