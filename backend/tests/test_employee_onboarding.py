"""
Employee onboarding end to end: HR creates the account, the employee
redeems the emailed setup link, logs in and manages their own profile.
"""

from datetime import datetime, timedelta

import pytest

from conftest import auth, onboard_employee, register_hr
from models.employee import Employee

pytestmark = pytest.mark.unit


def _create(client, hr_token, email="bob@co.com"):
    return client.post(
        "/api/hr/employees",
        json={"name": "Bob", "email": email, "department": "Engineering"},
        headers=auth(hr_token),
    )


def test_full_onboarding_scenario(client, mailer):
    hr = register_hr(client)

    created = _create(client, hr["token"])
    assert created.status_code == 201
    assert created.json()["details"]["welcomeEmailSent"] is True
    assert created.json()["employee"]["isPasswordSet"] is False
    assert "/employee/set-password?token=" in mailer.sent[-1].text
    token = mailer.last_token()

    before = client.post("/api/employee/login", json={"email": "bob@co.com", "password": "Password1!"})
    assert before.status_code == 400
    assert before.json()["message"] == "Password not set. Please check your email for setup instructions."

    verify = client.get(f"/api/employee/verify-password-token/{token}")
    assert verify.status_code == 200
    assert verify.json()["employee"] == {"name": "Bob", "email": "bob@co.com", "department": "Engineering"}

    set_password = client.post(
        "/api/employee/set-password",
        json={"token": token, "password": "Password1!", "confirmPassword": "Password1!"},
    )
    assert set_password.status_code == 200

    login = client.post("/api/employee/login", json={"email": "bob@co.com", "password": "Password1!"})
    assert login.status_code == 200
    assert login.json()["employee"]["lastLogin"] is not None

    reused = client.post(
        "/api/employee/set-password",
        json={"token": token, "password": "Another12!", "confirmPassword": "Another12!"},
    )
    assert reused.status_code == 400
    assert reused.json()["message"] == "Invalid or expired password setup link"
    assert reused.json()["reason"] == "link_already_used"


def test_set_password_validation(client, mailer):
    hr = register_hr(client)
    _create(client, hr["token"])
    token = mailer.last_token()

    mismatch = client.post(
        "/api/employee/set-password",
        json={"token": token, "password": "Password1!", "confirmPassword": "Password2!"},
    )
    short = client.post(
        "/api/employee/set-password",
        json={"token": token, "password": "short", "confirmPassword": "short"},
    )
    missing = client.post("/api/employee/set-password", json={"token": token})

    assert mismatch.json()["message"] == "Passwords do not match"
    assert short.status_code == 400
    assert missing.status_code == 400
    assert client.get(f"/api/employee/verify-password-token/{token}").status_code == 200


def test_expired_setup_link(client, mailer, db):
    hr = register_hr(client)
    created = _create(client, hr["token"])
    token = mailer.last_token()

    employee = db.get(Employee, created.json()["employee"]["id"])
    employee.setup_token_expires = datetime.utcnow() - timedelta(minutes=1)
    db.commit()

    verify = client.get(f"/api/employee/verify-password-token/{token}")
    set_password = client.post(
        "/api/employee/set-password",
        json={"token": token, "password": "Password1!", "confirmPassword": "Password1!"},
    )

    assert verify.status_code == 400
    assert verify.json()["reason"] == "expired_link"
    assert set_password.status_code == 400
    assert set_password.json()["reason"] == "expired_link"


def test_resend_setup_link_replaces_the_old_one(client, mailer):
    hr = register_hr(client)
    created = _create(client, hr["token"])
    old_token = mailer.last_token()

    resent = client.post(
        f"/api/hr/employees/{created.json()['employee']['id']}/resend-setup-link",
        headers=auth(hr["token"]),
    )
    new_token = mailer.last_token()

    assert resent.status_code == 200
    assert new_token != old_token
    assert client.get(f"/api/employee/verify-password-token/{old_token}").json()["reason"] == "invalid_link"
    assert client.get(f"/api/employee/verify-password-token/{new_token}").status_code == 200


def test_deactivated_employee_cannot_log_in(client, mailer):
    hr = register_hr(client)
    employee = onboard_employee(client, mailer, hr["token"])

    first = client.put(f"/api/hr/employees/{employee['id']}/deactivate", headers=auth(hr["token"]))
    second = client.put(f"/api/hr/employees/{employee['id']}/deactivate", headers=auth(hr["token"]))
    login = client.post("/api/employee/login", json={"email": "bob@co.com", "password": "Password1!"})

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["employee"]["status"] == "inactive"
    assert login.status_code == 403
    assert login.json()["message"] == "Your account has been deactivated. Please contact HR for assistance."

    client.put(f"/api/hr/employees/{employee['id']}/reactivate", headers=auth(hr["token"]))
    again = client.post("/api/employee/login", json={"email": "bob@co.com", "password": "Password1!"})
    assert again.status_code == 200


def test_employee_login_wrong_password(client, mailer):
    hr = register_hr(client)
    onboard_employee(client, mailer, hr["token"])

    response = client.post("/api/employee/login", json={"email": "bob@co.com", "password": "wrong-pass"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid email or password"


def test_employee_profile_update(client, mailer):
    hr = register_hr(client)
    employee = onboard_employee(client, mailer, hr["token"])

    response = client.put(
        "/api/employee/profile",
        data={"name": "Robert", "email": "robert@co.com", "department": "Platform"},
        headers=auth(employee["token"]),
    )

    assert response.status_code == 200
    assert response.json()["employee"]["name"] == "Robert"
    assert response.json()["employee"]["email"] == "robert@co.com"


def test_employee_profile_requires_name_and_email(client, mailer):
    hr = register_hr(client)
    employee = onboard_employee(client, mailer, hr["token"])

    response = client.put("/api/employee/profile", data={"name": "Robert"}, headers=auth(employee["token"]))

    assert response.status_code == 400
    assert response.json()["message"] == "Name and email are required"


def test_employee_cannot_update_someone_else(client, mailer):
    hr = register_hr(client)
    bob = onboard_employee(client, mailer, hr["token"], email="bob@co.com")
    dave = onboard_employee(client, mailer, hr["token"], email="dave@co.com")

    response = client.put(
        f"/api/employee/profile/{dave['id']}",
        data={"name": "Hacked", "email": "dave@co.com"},
        headers=auth(bob["token"]),
    )

    assert response.status_code == 403


def test_employee_change_password(client, mailer):
    hr = register_hr(client)
    employee = onboard_employee(client, mailer, hr["token"])
    headers = auth(employee["token"])

    same = client.post("/api/employee/change-password", json={"newPassword": "Password1!"}, headers=headers)
    short = client.post("/api/employee/change-password", json={"newPassword": "short"}, headers=headers)
    ok = client.post("/api/employee/change-password", json={"newPassword": "Different1!"}, headers=headers)

    assert same.status_code == 400
    assert same.json()["message"] == "New password must be different from current password"
    assert short.status_code == 400
    assert ok.status_code == 200
    assert client.post("/api/employee/login", json={"email": "bob@co.com", "password": "Different1!"}).status_code == 200
