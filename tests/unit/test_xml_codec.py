"""Unit tests for the XML form codec."""

import xml.etree.ElementTree as ET
from decimal import Decimal

import pytest

from bank_service.api.xml_codec import (
    XmlFormError,
    account_element,
    error_set,
    missing_fields,
    parse_form,
    user_element,
)
from bank_service.application.services import FieldError
from bank_service.domain.models import Account
from tests.conftest import make_user


class TestParseForm:
    def test_parses_fields(self) -> None:
        body = b"<form><account>3</account><action>deposit</action><change>1.00</change></form>"

        assert parse_form(body) == {"account": "3", "action": "deposit", "change": "1.00"}

    def test_empty_field_is_empty_string(self) -> None:
        assert parse_form(b"<form><transferAccount/></form>") == {"transferAccount": ""}

    def test_first_repeated_field_wins(self) -> None:
        assert parse_form(b"<form><a>1</a><a>2</a></form>") == {"a": "1"}

    def test_accepts_declaration(self) -> None:
        assert parse_form(b'<?xml version="1.0" encoding="UTF-8"?><form><a>x</a></form>') == {"a": "x"}

    @pytest.mark.parametrize(
        "body",
        [
            b"",
            b"not xml",
            b"<form><a>1</form>",
            b"<login><a>1</a></login>",
            b'<!DOCTYPE form [<!ENTITY x "boom">]><form><a>&x;</a></form>',
        ],
    )
    def test_rejects_invalid_documents(self, body: bytes) -> None:
        with pytest.raises(XmlFormError):
            parse_form(body)


def test_missing_fields() -> None:
    assert missing_fields({"a": "", "b": "x"}, ("a", "b", "c")) == ["c"]


def test_account_element_formats_balance() -> None:
    account = Account(account_id=5, owner="alice", account_type="Checking", balance=Decimal("3"))

    element = account_element(account)

    assert element.tag == "account"
    assert [(child.tag, child.text) for child in element] == [
        ("account_id", "5"),
        ("bank_user_id", "alice"),
        ("account_type", "Checking"),
        ("balance", "3.00"),
    ]


def test_user_element_has_no_password() -> None:
    element = user_element(make_user("alice"))

    assert element.findtext("user_id") == "alice"
    assert element.find("password") is None
    assert element.find("password_hash") is None


def test_error_set() -> None:
    document = ET.fromstring(error_set([FieldError("change", "Required"), FieldError("action", "Required")]))

    assert document.tag == "errorSet"
    assert [(f.findtext("name"), f.findtext("error")) for f in document.findall("field")] == [
        ("change", "Required"),
        ("action", "Required"),
    ]
