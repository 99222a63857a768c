import asyncio
from decimal import Decimal

import structlog

from bank_service.domain.exceptions import InvalidAmountFormatError, LockTimeoutError, StoreError
from bank_service.domain.models import (
    MAX_BALANCE,
    ZERO,
    Action,
    AdjustmentIntent,
    FailureCause,
    RejectionReason,
    TransactionOutcome,
    TransactionState,
    to_money,
)
from bank_service.domain.validation import parse_account_id, parse_amount
from bank_service.infrastructure.metrics import BALANCE_TRANSACTIONS_TOTAL, track_transaction_duration
from bank_service.infrastructure.store.base import AccountStore, AccountTransaction


logger = structlog.get_logger()

# form fields that rejections are reported against
AMOUNT_FIELD = "change"
ACTION_FIELD = "action"
SOURCE_FIELD = "account"
DESTINATION_FIELD = "transferAccount"


class _AbortTransaction(Exception):
    """Unwinds the lock scope so the store discards the writes made inside it."""

    def __init__(self, outcome: TransactionOutcome) -> None:
        self.outcome = outcome
        super().__init__(outcome.failure)


def _log_locked_phase_error(task: "asyncio.Future[TransactionOutcome]") -> None:
    # the caller may have been cancelled and will never await the result
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("locked_phase_failed", error=repr(error), exc_info=error)


class BalanceTransactionCoordinator:
    """
    Applies deposits, withdrawals and transfers to a user's own accounts.

    A request moves through VALIDATING, AUTHORIZING, LOCKING, COMPUTING and
    COMMITTING. Balances are re-read once the accounts are locked, so two
    requests touching the same account never interleave their read and
    write. Every rejection and failure is returned as a ``TransactionOutcome``.
    """

    def __init__(self, store: AccountStore) -> None:
        self._store = store

    @track_transaction_duration
    async def execute(
        self,
        identity: str,
        action: str,
        source_id: str | int | None,
        dest_id: str | int | None,
        raw_amount: object,
    ) -> TransactionOutcome:
        log = logger.bind(owner=identity, action=action)

        outcome = await self._execute(identity, action, source_id, dest_id, raw_amount, log)

        reason = outcome.rejection or outcome.failure
        BALANCE_TRANSACTIONS_TOTAL.labels(
            action=action if action in {a.value for a in Action} else "invalid",
            status=outcome.status.value,
            reason=reason.value if reason else "",
        ).inc()
        return outcome

    async def _execute(
        self,
        identity: str,
        action: str,
        source_id: str | int | None,
        dest_id: str | int | None,
        raw_amount: object,
        log: structlog.stdlib.BoundLogger,
    ) -> TransactionOutcome:
        log.debug("transaction_state", state=TransactionState.VALIDATING.value)

        try:
            amount = parse_amount(raw_amount)
        except InvalidAmountFormatError:
            return self._reject(log, RejectionReason.INVALID_AMOUNT_FORMAT, AMOUNT_FIELD)

        try:
            kind = Action(action)
        except ValueError:
            return self._reject(log, RejectionReason.INVALID_ACTION, ACTION_FIELD)

        if amount <= ZERO:
            return self._reject(log, RejectionReason.NON_POSITIVE_AMOUNT, AMOUNT_FIELD)
        if amount > MAX_BALANCE:
            return self._reject(log, RejectionReason.BALANCE_LIMIT_EXCEEDED, AMOUNT_FIELD)

        log.debug("transaction_state", state=TransactionState.AUTHORIZING.value)

        source = parse_account_id(source_id)
        if source is None:
            return self._reject(log, RejectionReason.NOT_OWNER, SOURCE_FIELD)
        log = log.bind(source=source)

        destination: int | None = None
        if kind is Action.TRANSFER:
            destination = parse_account_id(dest_id)
            if destination is None:
                return self._reject(log, RejectionReason.NOT_OWNER, DESTINATION_FIELD)
            log = log.bind(destination=destination)

        try:
            owned = {account.account_id for account in await self._store.list_accounts(identity)}
        except StoreError as e:
            log.warning("transaction_failed", cause=FailureCause.STORE_ERROR.value, error=str(e))
            return TransactionOutcome.failed(FailureCause.STORE_ERROR)

        if source not in owned:
            return self._reject(log, RejectionReason.NOT_OWNER, SOURCE_FIELD)
        if destination is not None:
            if destination == source:
                return self._reject(log, RejectionReason.SAME_ACCOUNT, DESTINATION_FIELD)
            if destination not in owned:
                return self._reject(log, RejectionReason.NOT_OWNER, DESTINATION_FIELD)

        intent = AdjustmentIntent(action=kind, source_id=source, amount=amount, destination_id=destination)

        # a client disconnect cancels the request, not the locked phase
        locked_phase = asyncio.ensure_future(self._apply(intent, identity, log))
        locked_phase.add_done_callback(_log_locked_phase_error)
        return await asyncio.shield(locked_phase)

    async def _apply(
        self,
        intent: AdjustmentIntent,
        identity: str,
        log: structlog.stdlib.BoundLogger,
    ) -> TransactionOutcome:
        log.debug("transaction_state", state=TransactionState.LOCKING.value)
        try:
            async with self._store.atomic_account_lock(intent.account_ids) as tx:
                outcome = await self._compute_and_commit(tx, intent, identity, log)
        except _AbortTransaction as abort:
            return abort.outcome
        except LockTimeoutError as e:
            log.warning("transaction_failed", cause=FailureCause.LOCK_TIMEOUT.value, error=str(e))
            return TransactionOutcome.failed(FailureCause.LOCK_TIMEOUT)
        except StoreError as e:
            log.warning("transaction_failed", cause=FailureCause.STORE_ERROR.value, error=str(e))
            return TransactionOutcome.failed(FailureCause.STORE_ERROR)

        if outcome.ok:
            log.debug("transaction_state", state=TransactionState.DONE.value)
            log.info(
                "transaction_completed",
                amount=str(intent.amount),
                new_balances={str(k): str(v) for k, v in outcome.new_balances.items()},
            )
        return outcome

    async def _compute_and_commit(
        self,
        tx: AccountTransaction,
        intent: AdjustmentIntent,
        identity: str,
        log: structlog.stdlib.BoundLogger,
    ) -> TransactionOutcome:
        log.debug("transaction_state", state=TransactionState.COMPUTING.value)

        source = await tx.get_account(intent.source_id, identity)
        if source is None:
            return self._reject(log, RejectionReason.NOT_OWNER, SOURCE_FIELD)

        if intent.action is Action.DEPOSIT:
            new_source_balance = to_money(source.balance + intent.amount)
            if new_source_balance > MAX_BALANCE:
                return self._reject(log, RejectionReason.BALANCE_LIMIT_EXCEEDED, AMOUNT_FIELD)
            await self._commit(tx, {source.account_id: new_source_balance}, log)
            return TransactionOutcome.completed({source.account_id: new_source_balance})

        if source.balance < intent.amount:
            log.info(
                "transaction_rejected",
                reason=RejectionReason.INSUFFICIENT_FUNDS.value,
                available=str(source.balance),
                required=str(intent.amount),
            )
            return TransactionOutcome.rejected(RejectionReason.INSUFFICIENT_FUNDS, AMOUNT_FIELD)
        new_source_balance = to_money(source.balance - intent.amount)

        if intent.action is Action.WITHDRAW:
            await self._commit(tx, {source.account_id: new_source_balance}, log)
            return TransactionOutcome.completed({source.account_id: new_source_balance})

        if intent.destination_id is None:
            raise AssertionError("unreachable")
        destination = await tx.get_account(intent.destination_id, identity)
        if destination is None:
            return self._reject(log, RejectionReason.NOT_OWNER, DESTINATION_FIELD)
        new_destination_balance = to_money(destination.balance + intent.amount)
        if new_destination_balance > MAX_BALANCE:
            return self._reject(log, RejectionReason.BALANCE_LIMIT_EXCEEDED, AMOUNT_FIELD)

        await self._commit_transfer(
            tx,
            source_id=source.account_id,
            source_before=source.balance,
            source_after=new_source_balance,
            destination_id=destination.account_id,
            destination_after=new_destination_balance,
            log=log,
        )
        return TransactionOutcome.completed(
            {source.account_id: new_source_balance, destination.account_id: new_destination_balance}
        )

    async def _commit(
        self,
        tx: AccountTransaction,
        new_balances: dict[int, Decimal],
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        log.debug("transaction_state", state=TransactionState.COMMITTING.value)
        for account_id, balance in new_balances.items():
            try:
                await tx.set_balance(account_id, balance)
            except StoreError as e:
                log.error("balance_write_failed", account_id=account_id, error=str(e))
                raise _AbortTransaction(TransactionOutcome.failed(FailureCause.STORE_ERROR)) from e

    async def _commit_transfer(
        self,
        tx: AccountTransaction,
        *,
        source_id: int,
        source_before: Decimal,
        source_after: Decimal,
        destination_id: int,
        destination_after: Decimal,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        await self._commit(tx, {source_id: source_after}, log)

        try:
            await tx.set_balance(destination_id, destination_after)
        except StoreError as credit_error:
            log.error("transfer_credit_failed", account_id=destination_id, error=str(credit_error))
            try:
                await tx.set_balance(source_id, source_before)
            except StoreError as rollback_error:
                log.critical(
                    "transfer_inconsistent",
                    source=source_id,
                    destination=destination_id,
                    error=str(rollback_error),
                )
                raise _AbortTransaction(TransactionOutcome.failed(FailureCause.INCONSISTENT)) from rollback_error
            log.warning("transfer_debit_reverted", account_id=source_id)
            raise _AbortTransaction(TransactionOutcome.failed(FailureCause.STORE_ERROR)) from credit_error

    @staticmethod
    def _reject(
        log: structlog.stdlib.BoundLogger,
        reason: RejectionReason,
        field_name: str,
    ) -> TransactionOutcome:
        log.info("transaction_rejected", reason=reason.value, field=field_name)
        return TransactionOutcome.rejected(reason, field_name)
