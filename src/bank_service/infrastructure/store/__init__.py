"""Account store implementations."""

from bank_service.infrastructure.store.base import AccountStore, AccountTransaction, run_locked
from bank_service.infrastructure.store.memory import InMemoryAccountStore
from bank_service.infrastructure.store.sql import SqlAccountStore


__all__ = [
    "AccountStore",
    "AccountTransaction",
    "InMemoryAccountStore",
    "SqlAccountStore",
    "run_locked",
]
