"""Repository implementations."""

from bank_service.infrastructure.repositories.account import AccountRepository
from bank_service.infrastructure.repositories.account_type import AccountTypeRepository
from bank_service.infrastructure.repositories.user import UserRepository


__all__ = [
    "AccountRepository",
    "AccountTypeRepository",
    "UserRepository",
]
