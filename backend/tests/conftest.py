"""
Shared fixtures for the API tests.

Settings are read once at import time, so the test environment (throwaway
SQLite file, upload directory, cheap bcrypt rounds) is exported before any
application module is imported.
"""

import os
import re
import tempfile
from typing import List

_TMP_DIR = tempfile.mkdtemp(prefix="lms-tests-")

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["FRONTEND_URL"] = "http://frontend.test"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from database.db import SessionLocal, reset_db  # noqa: E402
from main import app  # noqa: E402
from services.mailer import OutgoingEmail, get_mailer  # noqa: E402

TOKEN_IN_LINK = re.compile(r"token=([A-Za-z0-9_\-]+)")


def pytest_configure(config) -> None:
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")


class RecordingMailer:
    """Captures outgoing mail; set fail=True to simulate a delivery failure."""

    def __init__(self):
        self.sent: List[OutgoingEmail] = []
        self.fail = False

    def send(self, email: OutgoingEmail) -> bool:
        if self.fail:
            return False
        self.sent.append(email)
        return True

    def last_token(self) -> str:
        match = TOKEN_IN_LINK.search(self.sent[-1].text)
        assert match, "no link in the last email"
        return match.group(1)


@pytest.fixture(autouse=True)
def fresh_schema():
    reset_db()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def client(mailer):
    app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============================================================================
# Helpers
# ============================================================================

def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register_hr(client, email="alice@co.com", password="secret123", name="Alice", department="Engineering") -> dict:
    response = client.post(
        "/api/hr/register",
        json={"name": name, "email": email, "department": department, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()


def onboard_employee(client, mailer, hr_token: str, email="bob@co.com", password="Password1!") -> dict:
    """Create an employee, redeem the emailed link and log in."""
    created = client.post(
        "/api/hr/employees",
        json={"name": "Bob", "email": email, "department": "Engineering"},
        headers=auth(hr_token),
    )
    assert created.status_code == 201, created.text
    token = mailer.last_token()
    set_response = client.post(
        "/api/employee/set-password",
        json={"token": token, "password": password, "confirmPassword": password},
    )
    assert set_response.status_code == 200, set_response.text
    login = client.post("/api/employee/login", json={"email": email, "password": password})
    assert login.status_code == 200, login.text
    body = login.json()
    return {"id": created.json()["employee"]["id"], "token": body["token"], "email": email}
