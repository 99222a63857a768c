import time
from collections.abc import Awaitable, Callable
from functools import wraps

from prometheus_client import Counter, Histogram


BALANCE_TRANSACTIONS_TOTAL = Counter(
    "balance_transactions_total",
    "Total number of deposit, withdraw and transfer requests",
    ["action", "status", "reason"],
)

BALANCE_TRANSACTION_DURATION_SECONDS = Histogram(
    "balance_transaction_duration_seconds",
    "Balance transaction processing duration",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACCOUNT_LOCK_WAIT_SECONDS = Histogram(
    "account_lock_wait_seconds",
    "Time spent waiting for account locks",
    ["store"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

ACCOUNT_LOCK_TIMEOUTS_TOTAL = Counter(
    "account_lock_timeouts_total",
    "Total number of account lock acquisitions that timed out",
    ["store"],
)

LOGIN_ATTEMPTS_TOTAL = Counter(
    "login_attempts_total",
    "Total number of login attempts",
    ["result"],
)

LOGIN_LOCKOUTS_TOTAL = Counter(
    "login_lockouts_total",
    "Total number of usernames locked out after repeated failures",
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    ["method", "path", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "path", "status_code"],
)


def track_transaction_duration[**P, R](
    func: Callable[P, Awaitable[R]],
) -> Callable[P, Awaitable[R]]:
    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        start = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            duration = time.perf_counter() - start
            BALANCE_TRANSACTION_DURATION_SECONDS.observe(duration)

    return wrapper
