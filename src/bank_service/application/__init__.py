"""Application layer - services and use cases."""

from bank_service.application.coordinator import BalanceTransactionCoordinator
from bank_service.application.services import BankingService, FieldError


__all__ = [
    "BalanceTransactionCoordinator",
    "BankingService",
    "FieldError",
]
