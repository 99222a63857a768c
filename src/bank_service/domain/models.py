from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# NUMERIC(14, 2) column limit
MAX_BALANCE = Decimal("999999999999.99")


def to_money(value: Decimal | int | str) -> Decimal:
    return Decimal(value).quantize(CENT)


class Action(Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    TRANSFER = "transfer"


class TransactionState(Enum):
    VALIDATING = "VALIDATING"
    AUTHORIZING = "AUTHORIZING"
    LOCKING = "LOCKING"
    COMPUTING = "COMPUTING"
    COMMITTING = "COMMITTING"
    DONE = "DONE"


class OutcomeStatus(Enum):
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


class RejectionReason(Enum):
    INVALID_AMOUNT_FORMAT = "INVALID_AMOUNT_FORMAT"
    NON_POSITIVE_AMOUNT = "NON_POSITIVE_AMOUNT"
    INVALID_ACTION = "INVALID_ACTION"
    NOT_OWNER = "NOT_OWNER"
    SAME_ACCOUNT = "SAME_ACCOUNT"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    BALANCE_LIMIT_EXCEEDED = "BALANCE_LIMIT_EXCEEDED"


class FailureCause(Enum):
    LOCK_TIMEOUT = "LOCK_TIMEOUT"
    STORE_ERROR = "STORE_ERROR"
    INCONSISTENT = "INCONSISTENT"

    @property
    def retryable(self) -> bool:
        return self is not FailureCause.INCONSISTENT


@dataclass
class User:
    username: str
    first_name: str
    last_name: str
    street: str
    city: str
    country_state: str
    country: str


@dataclass
class Account:
    account_id: int
    owner: str
    account_type: str
    balance: Decimal = ZERO

    def __post_init__(self) -> None:
        self.balance = to_money(self.balance)
        if self.balance < ZERO:
            raise ValueError("Balance cannot be negative")


@dataclass(frozen=True)
class AdjustmentIntent:
    action: Action
    source_id: int
    amount: Decimal
    destination_id: int | None = None

    def __post_init__(self) -> None:
        if self.amount <= ZERO:
            raise ValueError("Amount must be positive")
        if (self.action is Action.TRANSFER) != (self.destination_id is not None):
            raise ValueError("Destination account is required for transfers only")

    @property
    def account_ids(self) -> frozenset[int]:
        if self.destination_id is None:
            return frozenset({self.source_id})
        return frozenset({self.source_id, self.destination_id})


@dataclass
class TransactionOutcome:
    status: OutcomeStatus
    new_balances: dict[int, Decimal] = field(default_factory=dict)
    rejection: RejectionReason | None = None
    failure: FailureCause | None = None
    field_name: str | None = None

    @classmethod
    def completed(cls, new_balances: dict[int, Decimal]) -> "TransactionOutcome":
        return cls(status=OutcomeStatus.COMPLETED, new_balances=new_balances)

    @classmethod
    def rejected(cls, reason: RejectionReason, field_name: str) -> "TransactionOutcome":
        return cls(status=OutcomeStatus.REJECTED, rejection=reason, field_name=field_name)

    @classmethod
    def failed(cls, cause: FailureCause) -> "TransactionOutcome":
        return cls(status=OutcomeStatus.FAILED, failure=cause)

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.COMPLETED
