"""One-time setup/reset link lifecycle against the database."""

from datetime import datetime, timedelta

import pytest

from models.employee import Employee
from models.hr_user import HrUser
from services import one_time_tokens
from services.one_time_tokens import EMPLOYEE_SETUP, HR_RESET, TokenStatus
from utils.security import hash_password, verify_password

pytestmark = pytest.mark.unit


@pytest.fixture
def hr_user(db):
    user = HrUser(name="Alice", email="alice@co.com", hashed_password=hash_password("secret123"))
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def employee(db, hr_user):
    record = Employee(hr_id=hr_user.id, name="Bob", email="bob@co.com", department="Engineering")
    db.add(record)
    db.commit()
    return record


def test_only_the_digest_is_stored(db, employee):
    raw = one_time_tokens.issue(db, EMPLOYEE_SETUP, employee, timedelta(days=7))

    assert employee.setup_token_hash == one_time_tokens.digest(raw)
    assert employee.setup_token_hash != raw


def test_fresh_token_is_valid(db, employee):
    raw = one_time_tokens.issue(db, EMPLOYEE_SETUP, employee, timedelta(days=7))

    check = one_time_tokens.inspect(db, EMPLOYEE_SETUP, raw)

    assert check.ok
    assert check.principal.id == employee.id


def test_unknown_token(db, employee):
    one_time_tokens.issue(db, EMPLOYEE_SETUP, employee, timedelta(days=7))

    assert one_time_tokens.inspect(db, EMPLOYEE_SETUP, "not-a-real-token").status is TokenStatus.UNKNOWN
    assert one_time_tokens.inspect(db, EMPLOYEE_SETUP, "").status is TokenStatus.UNKNOWN


def test_expired_token_is_reported_but_kept(db, employee):
    issued_at = datetime.utcnow() - timedelta(days=8)
    raw = one_time_tokens.issue(db, EMPLOYEE_SETUP, employee, timedelta(days=7), now=issued_at)

    check = one_time_tokens.inspect(db, EMPLOYEE_SETUP, raw)

    assert check.status is TokenStatus.EXPIRED
    db.refresh(employee)
    assert employee.setup_token_hash is not None


def test_consume_sets_password_once(db, employee):
    raw = one_time_tokens.issue(db, EMPLOYEE_SETUP, employee, timedelta(days=7))

    first = one_time_tokens.consume(db, EMPLOYEE_SETUP, raw, hash_password("Password1!"))
    second = one_time_tokens.consume(db, EMPLOYEE_SETUP, raw, hash_password("Other123!"))

    assert first.ok
    assert first.principal.is_password_set is True
    assert first.principal.setup_token_hash is None
    assert first.principal.setup_token_expires is None
    assert verify_password("Password1!", first.principal.hashed_password)
    assert second.status is TokenStatus.CONSUMED


def test_used_link_reports_already_used_on_inspect(db, employee):
    raw = one_time_tokens.issue(db, EMPLOYEE_SETUP, employee, timedelta(days=7))
    one_time_tokens.consume(db, EMPLOYEE_SETUP, raw, hash_password("Password1!"))

    assert one_time_tokens.inspect(db, EMPLOYEE_SETUP, raw).status is TokenStatus.CONSUMED


def test_expired_token_cannot_be_consumed(db, employee):
    issued_at = datetime.utcnow() - timedelta(days=8)
    raw = one_time_tokens.issue(db, EMPLOYEE_SETUP, employee, timedelta(days=7), now=issued_at)

    result = one_time_tokens.consume(db, EMPLOYEE_SETUP, raw, hash_password("Password1!"))

    assert result.status is TokenStatus.EXPIRED
    db.refresh(employee)
    assert employee.is_password_set is False
    assert employee.hashed_password is None


def test_reissue_replaces_previous_token(db, employee):
    old = one_time_tokens.issue(db, EMPLOYEE_SETUP, employee, timedelta(days=7))
    new = one_time_tokens.issue(db, EMPLOYEE_SETUP, employee, timedelta(days=7))

    assert one_time_tokens.inspect(db, EMPLOYEE_SETUP, old).status is TokenStatus.UNKNOWN
    assert one_time_tokens.inspect(db, EMPLOYEE_SETUP, new).ok


def test_reset_token_for_hr(db, hr_user):
    raw = one_time_tokens.issue(db, HR_RESET, hr_user, timedelta(hours=1))

    result = one_time_tokens.consume(db, HR_RESET, raw, hash_password("newpass"))

    assert result.ok
    assert verify_password("newpass", result.principal.hashed_password)
    assert result.principal.reset_token_hash is None


def test_purge_clears_only_expired_tokens(db, hr_user, employee):
    one_time_tokens.issue(db, EMPLOYEE_SETUP, employee, timedelta(days=7), now=datetime.utcnow() - timedelta(days=10))
    live = one_time_tokens.issue(db, HR_RESET, hr_user, timedelta(hours=1))

    cleared = one_time_tokens.purge_expired(db)

    assert cleared == 1
    db.refresh(employee)
    assert employee.setup_token_hash is None
    assert one_time_tokens.inspect(db, HR_RESET, live).ok
