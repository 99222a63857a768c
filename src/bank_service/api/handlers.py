import xml.etree.ElementTree as ET
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, RedirectResponse, Response

from bank_service.api.dependencies import (
    get_banking_service,
    get_coordinator,
    get_session_store,
    get_settings,
    require_user,
    xml_form,
)
from bank_service.api.xml_codec import (
    XmlResponse,
    account_element,
    element_response,
    error_set_response,
    missing_fields,
    text_element,
    user_element,
)
from bank_service.application.coordinator import BalanceTransactionCoordinator
from bank_service.application.services import BankingService, FieldError
from bank_service.config import Settings
from bank_service.domain.exceptions import InvalidAccountTypeError, StoreError
from bank_service.domain.models import (
    MAX_BALANCE,
    FailureCause,
    OutcomeStatus,
    RejectionReason,
    TransactionOutcome,
)
from bank_service.domain.validation import NEW_USER_FIELDS, parse_account_id
from bank_service.infrastructure.sessions import SessionStore


logger = structlog.get_logger()

router = APIRouter()

Form = Annotated[dict[str, str], Depends(xml_form)]
Identity = Annotated[str, Depends(require_user)]
Service = Annotated[BankingService, Depends(get_banking_service)]

INVALID_LOGIN = FieldError("password", "Invalid password/username")
DESTINATION_NOT_CONFIRMED = "Could not confirm account (ensure that account choices are different)"

REJECTION_MESSAGES = {
    RejectionReason.INVALID_AMOUNT_FORMAT: "Amount must be a number with exactly two decimal places",
    RejectionReason.NON_POSITIVE_AMOUNT: "Amount must be greater than 0.00",
    RejectionReason.BALANCE_LIMIT_EXCEEDED: f"Balance cannot exceed {MAX_BALANCE}",
    RejectionReason.INVALID_ACTION: "Invalid action choice",
    RejectionReason.SAME_ACCOUNT: DESTINATION_NOT_CONFIRMED,
}


@router.post("/login")
async def login(
    form: Form,
    service: Service,
    sessions: Annotated[SessionStore, Depends(get_session_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    if missing_fields(form, ("username", "password")):
        return error_set_response(
            401,
            [FieldError("username", "Required"), FieldError("password", "Required")],
        )

    username = await service.authenticate(form["username"], form["password"])
    if username is None:
        return error_set_response(401, [INVALID_LOGIN])

    token = await sessions.create(username)
    response = PlainTextResponse("OK")
    response.set_cookie(
        settings.session_cookie_name,
        token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="strict",
    )
    return response


@router.get("/logout")
async def logout(
    request: Request,
    sessions: Annotated[SessionStore, Depends(get_session_store)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        await sessions.destroy(token)
    response = RedirectResponse("/", status_code=302)
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.post("/create-user")
async def create_user(form: Form, service: Service) -> Response:
    if missing_fields(form, NEW_USER_FIELDS):
        return error_set_response(400, [FieldError(name, "Required") for name in NEW_USER_FIELDS])

    try:
        errors = await service.register_user(form)
    except StoreError as e:
        logger.error("create_user_failed", error=str(e))
        return error_set_response(500, [FieldError("country", "Failed to insert data, please try again later")])
    if errors:
        return error_set_response(400, errors)
    return element_response(text_element("result", "true"), status_code=201)


@router.get("/my-info")
async def my_info(identity: Identity, service: Service) -> Response:
    user = await service.get_user(identity)
    if user is None:
        # session outlived the user record
        return element_response(text_element("error", "Unknown Error"), status_code=500)
    return element_response(user_element(user))


@router.get("/my-accounts")
async def my_accounts(identity: Identity, service: Service) -> Response:
    root = ET.Element("accounts")
    for account in await service.list_accounts(identity):
        root.append(account_element(account))
    return element_response(root)


@router.get("/my-account/{account_id}")
async def my_account(account_id: str, identity: Identity, service: Service) -> Response:
    account = None
    parsed_id = parse_account_id(account_id)
    if parsed_id is not None:
        account = await service.get_account(parsed_id, identity)
    if account is None:
        return element_response(text_element("account", "Account not found"), status_code=404)
    return element_response(account_element(account))


@router.get("/account-types")
async def account_types(identity: Identity, service: Service) -> Response:
    root = ET.Element("types")
    for account_type in await service.list_account_types():
        root.append(text_element("account_type", account_type))
    return element_response(root)


@router.post("/create-account")
async def create_account(identity: Identity, form: Form, service: Service) -> Response:
    if missing_fields(form, ("account_type",)):
        return error_set_response(400, [FieldError("account_type", "Required")])

    try:
        account = await service.open_account(identity, form["account_type"])
    except InvalidAccountTypeError:
        return error_set_response(400, [FieldError("account_type", "Invalid account type choice")])
    except StoreError as e:
        logger.error("create_account_failed", owner=identity, error=str(e))
        return error_set_response(
            500,
            [FieldError("account_type", "Failed to insert data, please try again later")],
        )

    root = ET.Element("result")
    root.append(text_element("success", "true"))
    root.append(account_element(account))
    return element_response(root, status_code=201)


@router.post("/update-account")
async def update_account(
    identity: Identity,
    form: Form,
    coordinator: Annotated[BalanceTransactionCoordinator, Depends(get_coordinator)],
) -> Response:
    if missing_fields(form, ("account", "action", "change")):
        return error_set_response(
            400,
            [
                FieldError("account", "Required"),
                FieldError("action", "Required"),
                FieldError("change", "Required"),
            ],
        )

    outcome = await coordinator.execute(
        identity,
        form["action"],
        form["account"],
        form.get("transferAccount"),
        form["change"],
    )
    return outcome_response(outcome, form["action"])


def outcome_response(outcome: TransactionOutcome, action: str) -> XmlResponse:
    if outcome.status is OutcomeStatus.COMPLETED:
        root = ET.Element("result")
        root.append(text_element("success", "true"))
        balances = ET.SubElement(root, "balances")
        for account_id, balance in outcome.new_balances.items():
            entry = ET.SubElement(balances, "account")
            entry.append(text_element("account_id", account_id))
            entry.append(text_element("balance", f"{balance:.2f}"))
        return element_response(root, status_code=202)

    if outcome.status is OutcomeStatus.REJECTED:
        return _rejection_response(outcome, action)

    if outcome.failure is FailureCause.INCONSISTENT:
        return error_set_response(500, [FieldError("change", "Unknown error")])
    return error_set_response(
        503,
        [FieldError("change", "Could not update account balance, please try again")],
    )


def _rejection_response(outcome: TransactionOutcome, action: str) -> XmlResponse:
    field_name = outcome.field_name or "change"
    reason = outcome.rejection

    if reason is RejectionReason.NOT_OWNER:
        if field_name == "account":
            return error_set_response(401, [FieldError(field_name, "Could not verify account ownership")])
        return error_set_response(400, [FieldError(field_name, DESTINATION_NOT_CONFIRMED)])

    if reason is RejectionReason.INSUFFICIENT_FUNDS:
        message = f"Balance insufficient for {action}"
    else:
        message = REJECTION_MESSAGES.get(reason, "Invalid request") if reason else "Invalid request"
    return error_set_response(400, [FieldError(field_name, message)])
