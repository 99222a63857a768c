"""Domain layer - business entities and rules."""

from bank_service.domain.exceptions import (
    DomainError,
    DuplicateUserError,
    InvalidAccountTypeError,
    InvalidAmountFormatError,
    LockTimeoutError,
    StoreError,
)
from bank_service.domain.models import (
    Account,
    Action,
    AdjustmentIntent,
    FailureCause,
    OutcomeStatus,
    RejectionReason,
    TransactionOutcome,
    TransactionState,
    User,
)


__all__ = [
    "Account",
    "Action",
    "AdjustmentIntent",
    "DomainError",
    "DuplicateUserError",
    "FailureCause",
    "InvalidAccountTypeError",
    "InvalidAmountFormatError",
    "LockTimeoutError",
    "OutcomeStatus",
    "RejectionReason",
    "StoreError",
    "TransactionOutcome",
    "TransactionState",
    "User",
]
