"""Session token codec and password hashing."""

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from utils.security import (
    TokenCodec,
    TokenExpiredError,
    TokenMalformedError,
    hash_password,
    verify_password,
)

pytestmark = pytest.mark.unit

SECRET = "unit-test-secret"


def _codec_at(moment: datetime) -> TokenCodec:
    return TokenCodec(SECRET, clock=lambda: moment)


def test_issue_then_verify_returns_claims():
    codec = TokenCodec(SECRET)
    token = codec.issue("hr-1", "alice@co.com", "hr", role="hr")

    claims = codec.verify(token)

    assert claims.user_id == "hr-1"
    assert claims.email == "alice@co.com"
    assert claims.type == "hr"
    assert claims.role == "hr"


def test_expiry_depends_on_principal_type():
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)
    codec = _codec_at(now)

    hr_payload = jwt.get_unverified_claims(codec.issue("1", "a@co.com", "hr"))
    employee_payload = jwt.get_unverified_claims(codec.issue("2", "b@co.com", "employee"))

    assert hr_payload["exp"] - hr_payload["iat"] == int(timedelta(days=1).total_seconds())
    assert employee_payload["exp"] - employee_payload["iat"] == int(timedelta(days=7).total_seconds())


def test_expired_token_is_reported_as_expired():
    issued_long_ago = _codec_at(datetime.now(timezone.utc) - timedelta(days=2))
    token = issued_long_ago.issue("hr-1", "alice@co.com", "hr")

    with pytest.raises(TokenExpiredError):
        TokenCodec(SECRET).verify(token)


def test_employee_token_survives_past_the_hr_lifetime():
    three_days_ago = _codec_at(datetime.now(timezone.utc) - timedelta(days=3))
    token = three_days_ago.issue("emp-1", "bob@co.com", "employee")

    assert TokenCodec(SECRET).verify(token).type == "employee"


def test_wrong_signature_is_malformed():
    token = TokenCodec("another-secret").issue("hr-1", "alice@co.com", "hr")

    with pytest.raises(TokenMalformedError):
        TokenCodec(SECRET).verify(token)


def test_garbage_is_malformed():
    with pytest.raises(TokenMalformedError):
        TokenCodec(SECRET).verify("not-a-token")


def test_unknown_type_claim_is_malformed():
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"userId": "x", "email": "x@co.com", "type": "admin", "exp": int((now + timedelta(hours=1)).timestamp())},
        SECRET,
        algorithm="HS256",
    )

    with pytest.raises(TokenMalformedError):
        TokenCodec(SECRET).verify(token)


def test_issue_rejects_unknown_type():
    with pytest.raises(ValueError):
        TokenCodec(SECRET).issue("x", "x@co.com", "admin")


def test_codec_requires_a_secret():
    with pytest.raises(ValueError):
        TokenCodec("")


def test_password_hash_round_trip():
    hashed = hash_password("Password1!")

    assert hashed != "Password1!"
    assert verify_password("Password1!", hashed)
    assert not verify_password("wrong-password", hashed)


def test_missing_hash_never_verifies():
    assert verify_password("anything", None) is False
