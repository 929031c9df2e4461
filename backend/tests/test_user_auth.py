"""Legacy generic user login and guard."""

import pytest

from conftest import auth
from models.user import User
from utils.security import hash_password

pytestmark = pytest.mark.unit


def _add_user(db, email="user@co.com", password="password123", is_active=True, is_password_set=True):
    user = User(
        email=email,
        hashed_password=hash_password(password) if is_password_set else None,
        is_active=is_active,
        is_password_set=is_password_set,
    )
    db.add(user)
    db.commit()
    return user


def test_login_and_me(client, db):
    _add_user(db)

    login = client.post("/api/user/login", json={"email": "User@co.com", "password": "password123"})
    assert login.status_code == 200

    me = client.get("/api/user/me", headers=auth(login.json()["token"]))
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "user@co.com"
    assert me.json()["user"]["type"] == "user"


def test_wrong_password(client, db):
    _add_user(db)

    response = client.post("/api/user/login", json={"email": "user@co.com", "password": "nope"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid email or password"


def test_inactive_user_is_blocked(client, db):
    _add_user(db, is_active=False)

    response = client.post("/api/user/login", json={"email": "user@co.com", "password": "password123"})

    assert response.status_code == 403


def test_user_without_password_cannot_log_in(client, db):
    _add_user(db, is_password_set=False)

    response = client.post("/api/user/login", json={"email": "user@co.com", "password": "password123"})

    assert response.status_code == 400
    assert response.json()["message"] == "Password not set"
