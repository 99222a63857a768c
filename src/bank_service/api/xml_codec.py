"""XML bodies exchanged with the browser front end.

Requests are ``<form><field_name>value</field_name>...</form>``; field errors
go back as ``<errorSet><field><name/><error/></field>...</errorSet>``.
"""

import xml.etree.ElementTree as ET
from collections.abc import Iterable, Mapping

from fastapi.responses import Response

from bank_service.application.services import FieldError
from bank_service.domain.models import Account, User


XML_MEDIA_TYPES = frozenset({"text/xml", "application/xml"})


class XmlFormError(ValueError):
    """Raised when a request body is not a well-formed ``<form>`` document."""


class XmlResponse(Response):
    media_type = "text/xml"


def parse_form(body: bytes) -> dict[str, str]:
    if b"<!DOCTYPE" in body.upper() or b"<!ENTITY" in body.upper():
        raise XmlFormError("document type declarations are not accepted")
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise XmlFormError(str(e)) from e
    if root.tag != "form":
        raise XmlFormError(f"expected <form> root, got <{root.tag}>")
    # repeated fields keep the first value
    fields: dict[str, str] = {}
    for child in root:
        fields.setdefault(child.tag, child.text or "")
    return fields


def missing_fields(form: Mapping[str, str], required: Iterable[str]) -> list[str]:
    return [name for name in required if name not in form]


def to_xml(root: ET.Element) -> bytes:
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def text_element(tag: str, text: object) -> ET.Element:
    element = ET.Element(tag)
    element.text = str(text)
    return element


def record_element(tag: str, values: Mapping[str, object]) -> ET.Element:
    element = ET.Element(tag)
    for name, value in values.items():
        element.append(text_element(name, value))
    return element


def account_element(account: Account) -> ET.Element:
    return record_element(
        "account",
        {
            "account_id": account.account_id,
            "bank_user_id": account.owner,
            "account_type": account.account_type,
            "balance": f"{account.balance:.2f}",
        },
    )


def user_element(user: User) -> ET.Element:
    return record_element(
        "user",
        {
            "user_id": user.username,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "street": user.street,
            "city": user.city,
            "country_state": user.country_state,
            "country": user.country,
        },
    )


def error_set(errors: Iterable[FieldError]) -> bytes:
    root = ET.Element("errorSet")
    for error in errors:
        root.append(record_element("field", {"name": error.name, "error": error.error}))
    return to_xml(root)


def error_set_response(status_code: int, errors: Iterable[FieldError]) -> XmlResponse:
    return XmlResponse(content=error_set(errors), status_code=status_code)


def element_response(root: ET.Element, status_code: int = 200) -> XmlResponse:
    return XmlResponse(content=to_xml(root), status_code=status_code)
