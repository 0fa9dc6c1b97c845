"""Tests for credentials, sessions, password reset and sign-in codes."""

import re
from datetime import timedelta

from parcels.auth import decode_session, encode_session
from parcels.config import SESSION_COOKIE_NAME
from parcels.models import LoginCode, Owner, PasswordReset
from parcels.security_utils import sha256_hex
from parcels.shared.timestamps import utc_now


def test_signup_login_me_logout(client):
    response = client.post(
        "/auth/signup", json={"email": "Dana@Example.com", "password": "correct horse", "display_name": "Dana"}
    )
    assert response.status_code == 200
    assert response.json()["owner"]["email"] == "dana@example.com"
    assert SESSION_COOKIE_NAME in response.cookies

    assert client.get("/auth/me").json()["owner"]["display_name"] == "Dana"

    client.post("/auth/logout")
    client.cookies.clear()
    assert client.get("/auth/me").status_code == 401

    response = client.post("/auth/login", json={"email": "dana@example.com", "password": "correct horse"})
    assert response.status_code == 200
    assert client.get("/auth/me").status_code == 200


def test_signup_rejects_short_password(client):
    response = client.post("/auth/signup", json={"email": "e@example.com", "password": "short"})
    assert response.status_code == 422


def test_signup_email_taken(client):
    client.post("/auth/signup", json={"email": "e@example.com", "password": "long enough"})
    response = client.post("/auth/signup", json={"email": "e@example.com", "password": "another one"})
    assert response.status_code == 409
    assert response.json()["error"] == "email_taken"


def test_signup_claims_owner_created_by_purchase(client, purchase, database):
    """An owner created by a purchase has no password yet and may set one."""
    purchase("2037-04-04T04:04:00Z", "buyer@example.com", display_name="Buyer")
    response = client.post("/auth/signup", json={"email": "buyer@example.com", "password": "long enough"})
    assert response.status_code == 200
    assert response.json()["owner"]["display_name"] == "Buyer"
    with database.session() as db:
        assert db.query(Owner).count() == 1


def test_login_failures_are_indistinguishable(client):
    client.post("/auth/signup", json={"email": "f@example.com", "password": "long enough"})
    client.cookies.clear()

    wrong_password = client.post("/auth/login", json={"email": "f@example.com", "password": "wrong pass"})
    unknown_email = client.post("/auth/login", json={"email": "nobody@example.com", "password": "wrong pass"})
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json()["error"] == "bad_credentials"


def test_tampered_session_is_ignored(client, login):
    login("g@example.com")
    token = client.cookies.get(SESSION_COOKIE_NAME)
    client.cookies.set(SESSION_COOKIE_NAME, token[:-2] + "xx")
    assert client.get("/auth/me").status_code == 401


def test_session_roundtrip():
    owner = Owner(id="0b6f0f8e-1111-4222-8333-444455556666", email="h@example.com", display_name="H")
    session = decode_session(encode_session(owner))
    assert session.owner_id == owner.id
    assert session.email == "h@example.com"
    assert decode_session("garbage") is None
    assert decode_session(None) is None


def test_forgot_and_reset_password(client, mailbox, database):
    client.post("/auth/signup", json={"email": "i@example.com", "password": "old password"})
    client.cookies.clear()

    response = client.post("/auth/forgot", json={"email": "i@example.com", "locale": "fr"})
    assert response.json()["ok"] is True
    unknown = client.post("/auth/forgot", json={"email": "nobody@example.com"})
    assert unknown.json() == response.json()

    body = mailbox.to("i@example.com")[-1]["body"]
    token = re.search(r"/fr/reset\?token=([A-Za-z0-9_\-]+)", body).group(1)

    response = client.post("/auth/reset", json={"token": token, "password": "new password", "password2": "new password"})
    assert response.status_code == 200
    assert client.get("/auth/me").status_code == 200

    again = client.post("/auth/reset", json={"token": token, "password": "third password", "password2": "third password"})
    assert again.status_code == 400
    assert again.json()["error"] == "invalid_or_expired"

    client.cookies.clear()
    assert client.post("/auth/login", json={"email": "i@example.com", "password": "new password"}).status_code == 200


def test_expired_reset_token_is_rejected_and_not_consumed(client, database):
    client.post("/auth/signup", json={"email": "j@example.com", "password": "old password"})
    client.cookies.clear()
    with database.session() as db:
        owner = db.query(Owner).filter(Owner.email == "j@example.com").one()
        db.add(
            PasswordReset(
                owner_id=owner.id,
                token_hash=sha256_hex("expired-token"),
                expires_at=utc_now() - timedelta(minutes=1),
            )
        )
        db.commit()

    response = client.post(
        "/auth/reset", json={"token": "expired-token", "password": "new password", "password2": "new password"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_or_expired"
    with database.session() as db:
        assert db.query(PasswordReset).one().used_at is None


def test_reset_requires_matching_passwords(client):
    response = client.post("/auth/reset", json={"token": "t", "password": "new password", "password2": "different"})
    assert response.status_code == 422


def test_login_code_flow(client, mailbox, database):
    assert client.post("/auth/request-code", json={"email": "k@example.com"}).json()["ok"] is True
    code = mailbox.to("k@example.com")[-1]["subject"][:6]
    assert code.isdigit()

    response = client.post("/auth/verify-code", json={"email": "k@example.com", "code": code})
    assert response.status_code == 200
    assert response.json()["owner"]["email"] == "k@example.com"

    reuse = client.post("/auth/verify-code", json={"email": "k@example.com", "code": code})
    assert reuse.status_code == 400
    assert reuse.json()["error"] == "invalid_or_expired"

    with database.session() as db:
        assert db.query(LoginCode).one().used_at is not None
