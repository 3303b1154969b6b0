import hashlib
from datetime import date

import pytest

from sessions.errors import AuthError, CreationError, NotFound, RemoteError
from utils.helpers import (
    clean_string,
    extract_js_call_args,
    inc_date,
    parse_portal_date,
    portal_password_hash,
    week_start,
)
from utils.log import mask_sensitive


def test_portal_password_hash_matches_the_login_form():
    inner = hashlib.md5("пароль".encode("cp1251")).hexdigest()
    expected = hashlib.md5(("salt" + inner).encode()).hexdigest()
    assert portal_password_hash("salt", "пароль") == expected


@pytest.mark.parametrize(
    "value, expected",
    [("02.09.2024", date(2024, 9, 2)), ("02.09.24", date(2024, 9, 2)), (" 29.02.2024 ", date(2024, 2, 29))],
)
def test_parse_portal_date(value, expected):
    assert parse_portal_date(value) == expected


@pytest.mark.parametrize("value", ["", None, "2024-09-02", "31.02.2024"])
def test_parse_portal_date_rejects(value):
    with pytest.raises(ValueError):
        parse_portal_date(value)


def test_date_arithmetic():
    assert inc_date("31.12.2024") == "01.01.2025"
    assert inc_date("01.03.2024", -1) == "29.02.2024"
    assert week_start("08.09.2024") == "02.09.2024"
    assert week_start("02.09.2024") == "02.09.2024"


def test_extract_js_call_args():
    assert extract_js_call_args("ShowAssignInfo(1, '2', \"3\")", "ShowAssignInfo") == ["1", "2", "3"]
    assert extract_js_call_args("javascript:void(0)", "ShowAssignInfo") is None


def test_clean_string():
    assert clean_string("  a \n\t b ") == "a b"
    assert clean_string(None) == ""


def test_mask_sensitive():
    masked = mask_sensitive({"login": "ivanov", "passkey": "secret", "password": "x"})
    assert masked == {"login": "ivanov", "passkey": "********", "password": "********"}


def test_creation_error_status_follows_cause():
    assert CreationError(cause=AuthError()).status_code == 401
    assert CreationError(cause=NotFound("x")).status_code == 401
    assert CreationError(cause=RemoteError()).status_code == 502
    assert str(CreationError(cause=AuthError())) == "Invalid credentials"
