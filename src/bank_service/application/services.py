import asyncio
import base64
import hashlib
from collections.abc import Mapping
from dataclasses import dataclass

import bcrypt
import structlog

from bank_service.domain.exceptions import DuplicateUserError, InvalidAccountTypeError, StoreError
from bank_service.domain.models import Account, User
from bank_service.domain.validation import (
    NEW_USER_FIELD_VALIDATORS,
    NEW_USER_FIELDS,
    validate_password,
    validate_username,
)
from bank_service.infrastructure.login_throttle import LoginThrottle
from bank_service.infrastructure.metrics import LOGIN_ATTEMPTS_TOTAL
from bank_service.infrastructure.store.base import AccountStore


logger = structlog.get_logger()


@dataclass(frozen=True)
class FieldError:
    name: str
    error: str


def _prepare_password(password: str) -> bytes:
    # bcrypt only reads the first 72 bytes and passwords may be up to 128 characters
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest())


def hash_password(password: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(_prepare_password(password), bcrypt.gensalt(rounds)).decode("ascii")


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_prepare_password(password), password_hash.encode("ascii"))


class BankingService:
    def __init__(
        self,
        store: AccountStore,
        login_throttle: LoginThrottle,
        bcrypt_rounds: int = 10,
    ) -> None:
        self._store = store
        self._login_throttle = login_throttle
        self._bcrypt_rounds = bcrypt_rounds

    async def register_user(self, form: Mapping[str, str]) -> list[FieldError]:
        """Validate a registration form and create the user.

        Returns the field errors; an empty list means the user was created.
        A failed insert raises ``StoreError``.
        """
        errors: list[FieldError] = []
        for field_name in NEW_USER_FIELDS:
            result = NEW_USER_FIELD_VALIDATORS[field_name](form.get(field_name))
            if not result.ok:
                errors.append(FieldError(field_name, result.reason))

        username = form.get("username", "").lower()
        if not any(e.name == "username" for e in errors):
            try:
                if await self._store.get_user(username) is not None:
                    errors.append(FieldError("username", "Username already exists"))
            except StoreError as e:
                logger.warning("username_check_failed", username=username, error=str(e))
                errors.append(FieldError("username", "Could not validate username, please try again"))

        if errors:
            logger.info("registration_rejected", username=username, fields=[e.name for e in errors])
            return errors

        user = User(
            username=username,
            first_name=form["first_name"],
            last_name=form["last_name"],
            street=form["street"],
            city=form["city"],
            country_state=form["country_state"],
            country=form["country"],
        )
        password_hash = await asyncio.to_thread(hash_password, form["password"], self._bcrypt_rounds)

        try:
            await self._store.add_user(user, password_hash)
        except DuplicateUserError:
            return [FieldError("username", "Username already exists")]

        logger.info("user_registered", username=username)
        return []

    async def authenticate(self, username: str, password: str) -> str | None:
        """Check a username/password pair.

        Returns the canonical username, or None for a malformed, wrong or
        locked-out login; the caller cannot tell the three cases apart.
        """
        if not validate_username(username).ok or not validate_password(password).ok:
            LOGIN_ATTEMPTS_TOTAL.labels(result="malformed").inc()
            return None

        canonical = username.lower()
        if await self._login_throttle.is_locked(canonical):
            LOGIN_ATTEMPTS_TOTAL.labels(result="locked").inc()
            logger.warning("login_rejected_locked", username=canonical)
            return None

        stored_hash = await self._store.get_password_hash(canonical)
        matches = stored_hash is not None and await asyncio.to_thread(check_password, password, stored_hash)

        if not matches:
            LOGIN_ATTEMPTS_TOTAL.labels(result="failure").inc()
            logger.info("login_failed", username=canonical)
            await self._login_throttle.record_failure(canonical)
            return None

        await self._login_throttle.reset(canonical)
        LOGIN_ATTEMPTS_TOTAL.labels(result="success").inc()
        logger.info("login_succeeded", username=canonical)
        return canonical

    async def open_account(self, owner: str, account_type: str) -> Account:
        if account_type not in await self._store.list_account_types():
            raise InvalidAccountTypeError(account_type)
        return await self._store.create_account(owner, account_type)

    async def get_user(self, username: str) -> User | None:
        return await self._store.get_user(username)

    async def list_accounts(self, owner: str) -> list[Account]:
        return await self._store.list_accounts(owner)

    async def get_account(self, account_id: int, owner: str) -> Account | None:
        return await self._store.get_account(account_id, owner)

    async def list_account_types(self) -> list[str]:
        return sorted(await self._store.list_account_types())
