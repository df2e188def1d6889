import pytest
from pydantic import ValidationError

from authcore.schemas.auth import (
    EmailRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
)

# 44 characters, 84 bytes in UTF-8
MULTIBYTE_PASSWORD = "Aa1!" + "é" * 40


def test_register_normalizes_email():
    body = RegisterRequest(email=" Bob@Example.COM ", password="Abc12345!")
    assert body.email == "bob@example.com"


@pytest.mark.parametrize(
    "email",
    ["bob@example..com", "not-an-email", "bob@", "@example.com", "bob smith@example.com"],
)
def test_register_rejects_malformed_email(email):
    with pytest.raises(ValidationError):
        RegisterRequest(email=email, password="Abc12345!")


def test_login_and_email_requests_validate_addresses():
    assert LoginRequest(email="ALICE@example.com", password="x").email == "alice@example.com"
    assert EmailRequest(email="Alice@Example.com").email == "alice@example.com"
    with pytest.raises(ValidationError):
        EmailRequest(email="alice@example..com")


def test_password_limit_counts_utf8_bytes():
    with pytest.raises(ValidationError) as exc:
        RegisterRequest(email="bob@example.com", password=MULTIBYTE_PASSWORD)
    assert "72 bytes" in str(exc.value)
    with pytest.raises(ValidationError):
        ResetPasswordRequest(token="t", new_password=MULTIBYTE_PASSWORD)


def test_password_of_exactly_72_bytes_is_accepted():
    password = "Aa1!" + "x" * 68
    assert RegisterRequest(email="bob@example.com", password=password).password == password
    assert ResetPasswordRequest(token="t", new_password="Aa1!" + "é" * 34).new_password


def test_password_strength_rules():
    with pytest.raises(ValidationError):
        RegisterRequest(email="bob@example.com", password="alllowercase1!")
    with pytest.raises(ValidationError):
        RegisterRequest(email="bob@example.com", password="NoDigits!!")
