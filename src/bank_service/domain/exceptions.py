class DomainError(Exception):
    """Base exception for domain errors."""


class InvalidAmountFormatError(DomainError):
    """Raised when a monetary amount is not digits, a point and two digits."""

    def __init__(self, raw: object) -> None:
        self.raw = raw
        super().__init__(f"Invalid amount format: {raw!r}")


class StoreError(DomainError):
    """Raised when the account store cannot complete a read or write."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Store operation {operation} failed: {cause!r}")


class LockTimeoutError(DomainError):
    """Raised when account locks are not acquired within the configured wait."""

    def __init__(self, account_ids: tuple[int, ...], timeout_seconds: float) -> None:
        self.account_ids = account_ids
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Could not lock accounts {list(account_ids)} within {timeout_seconds}s")


class DuplicateUserError(DomainError):
    """Raised when registering a username that already exists."""

    def __init__(self, username: str) -> None:
        self.username = username
        super().__init__(f"User {username} already exists")


class InvalidAccountTypeError(DomainError):
    """Raised when opening an account with an unknown account type."""

    def __init__(self, account_type: str) -> None:
        self.account_type = account_type
        super().__init__(f"Invalid account type: {account_type}")
