from fastapi import Request

from bank_service.api.xml_codec import XML_MEDIA_TYPES, XmlFormError, parse_form
from bank_service.application.coordinator import BalanceTransactionCoordinator
from bank_service.application.services import BankingService
from bank_service.config import Settings
from bank_service.infrastructure.sessions import SessionStore


class NotAuthenticatedError(Exception):
    """Raised when a protected route is requested without a live session."""


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_banking_service(request: Request) -> BankingService:
    return request.app.state.banking_service


def get_coordinator(request: Request) -> BalanceTransactionCoordinator:
    return request.app.state.coordinator


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


async def current_user(request: Request) -> str | None:
    token = request.cookies.get(get_settings(request).session_cookie_name)
    if not token:
        return None
    return await get_session_store(request).get(token)


async def require_user(request: Request) -> str:
    username = await current_user(request)
    if username is None:
        raise NotAuthenticatedError(request.url.path)
    return username


async def xml_form(request: Request) -> dict[str, str]:
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type not in XML_MEDIA_TYPES:
        raise XmlFormError(f"unsupported content type {content_type!r}")
    return parse_form(await request.body())
