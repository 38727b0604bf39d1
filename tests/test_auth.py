import uuid
from datetime import timedelta

import pytest

from marketplace.api.deps import extract_token, verify_identity
from marketplace.core.errors import (
    InvalidCredential, MalformedCredential, Unauthenticated, UnknownSubject,
)
from marketplace.models.user import UserRole
from marketplace.utils.auth import create_access_token

from conftest import PASSWORD


# ─── Token extraction / verification ──────────────────────────────────────────

def test_extract_token_prefers_cookie():
    assert extract_token("from-cookie", "Bearer from-header") == "from-cookie"


def test_extract_token_missing():
    with pytest.raises(Unauthenticated) as exc:
        extract_token(None, None)
    assert type(exc.value) is Unauthenticated


@pytest.mark.parametrize("header", ["Token abc", "Bearer", "bearer abc", "Bearer a b", "Bearer "])
def test_extract_token_malformed(header):
    with pytest.raises(MalformedCredential):
        extract_token(None, header)


def test_verify_identity_resolves_user(db, settings, owner):
    token = create_access_token(data={"sub": str(owner.id)}, settings=settings)
    identity = verify_identity(db, settings, None, f"Bearer {token}")
    assert identity.id == owner.id
    assert identity.email == owner.email
    assert identity.role == UserRole.OWNER


def test_verify_identity_defaults_missing_role(db, settings, tenant):
    tenant.role = None
    db.commit()
    token = create_access_token(data={"sub": str(tenant.id)}, settings=settings)
    assert verify_identity(db, settings, token, None).role == UserRole.USER


def test_verify_identity_expired(db, settings, tenant):
    token = create_access_token(
        data={"sub": str(tenant.id)}, settings=settings, expires_delta=timedelta(minutes=-1)
    )
    with pytest.raises(InvalidCredential):
        verify_identity(db, settings, token, None)


def test_verify_identity_bad_signature(db, settings, tenant):
    other = settings.model_copy(update={"SECRET_KEY": "another-secret-key-long-enough-for-hs256-0123456789"})
    token = create_access_token(data={"sub": str(tenant.id)}, settings=other)
    with pytest.raises(InvalidCredential):
        verify_identity(db, settings, token, None)


@pytest.mark.parametrize("subject", [None, "not-a-uuid", str(uuid.uuid4())])
def test_verify_identity_unknown_subject(db, settings, subject):
    data = {} if subject is None else {"sub": subject}
    token = create_access_token(data=data, settings=settings)
    with pytest.raises(UnknownSubject):
        verify_identity(db, settings, token, None)


# ─── Endpoints ────────────────────────────────────────────────────────────────

async def test_register_and_me(client):
    r = await client.post("/api/auth/register", json={
        "email": "New.Person@Example.com",
        "password": PASSWORD,
        "fullName": "New Person",
        "role": "owner",
    })
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    assert data["tokenType"] == "bearer"
    assert data["user"]["email"] == "new.person@example.com"
    assert data["user"]["role"] == "owner"
    assert "passwordHash" not in data["user"]
    assert "authToken" in r.cookies

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['accessToken']}"})
    assert me.status_code == 200
    assert me.json()["data"]["fullName"] == "New Person"


async def test_register_rejects_duplicate_email(client, tenant):
    r = await client.post("/api/auth/register", json={
        "email": tenant.email,
        "password": PASSWORD,
        "fullName": "Copy Cat",
    })
    assert r.status_code == 400
    assert r.json()["message"] == "Email already registered"


@pytest.mark.parametrize("role", ["admin", "editor"])
async def test_register_cannot_pick_staff_role(client, role):
    r = await client.post("/api/auth/register", json={
        "email": "sneaky@example.com",
        "password": PASSWORD,
        "fullName": "Sneaky",
        "role": role,
    })
    assert r.status_code == 400
    assert r.json()["error"] == "validation_error"


async def test_login_sets_cookie_used_by_later_requests(client, tenant):
    r = await client.post("/api/auth/login", json={"email": tenant.email, "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["data"]["user"]["id"] == str(tenant.id)

    # the client replays the cookie; no header needed
    me = await client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["data"]["id"] == str(tenant.id)

    out = await client.post("/api/auth/logout")
    assert out.status_code == 200
    assert (await client.get("/api/auth/me")).status_code == 401


async def test_login_wrong_password(client, tenant):
    r = await client.post("/api/auth/login", json={"email": tenant.email, "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json()["message"] == "Incorrect email or password"


async def test_login_unknown_email(client):
    r = await client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    assert r.status_code == 401


async def test_login_inactive_user(client, make_user):
    user = make_user(is_active=False)
    r = await client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert r.status_code == 403


async def test_me_requires_credentials(client):
    r = await client.get("/api/auth/me")
    assert r.status_code == 401
    body = r.json()
    assert body == {
        "success": False,
        "data": None,
        "message": "Unauthorized access - no token provided",
        "error": "unauthenticated",
    }
    assert r.headers["www-authenticate"] == "Bearer"


@pytest.mark.parametrize("header, code", [
    ("Token abc", "malformed_credential"),
    ("Bearer not.a.jwt", "invalid_credential"),
])
async def test_me_rejects_bad_credentials(client, header, code):
    r = await client.get("/api/auth/me", headers={"Authorization": header})
    assert r.status_code == 401
    assert r.json()["error"] == code


async def test_cookie_wins_over_header(client, settings, tenant, owner, auth_headers):
    token = create_access_token(data={"sub": str(tenant.id)}, settings=settings)
    client.cookies.set(settings.AUTH_COOKIE_NAME, token)

    r = await client.get("/api/auth/me", headers=auth_headers(owner))
    assert r.status_code == 200
    assert r.json()["data"]["id"] == str(tenant.id)


async def test_deactivated_account_is_forbidden(client, make_user, auth_headers):
    user = make_user(is_active=False)
    r = await client.get("/api/auth/me", headers=auth_headers(user))
    assert r.status_code == 403
    assert r.json()["message"] == "Account is deactivated"
