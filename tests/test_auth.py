import pytest
from httpx import AsyncClient
from jose import jwt

from greekdash.config import settings
from greekdash.models import AuditLog, Chapter, Membership, Subscription, User


REGISTER_DATA = {
    "full_name": "Jordan Smith",
    "email": "Jordan@Example.com",
    "chapter_slug": "beta-chi",
    "password": "Password123",
}


@pytest.mark.asyncio
async def test_register_creates_owner_chapter_and_free_plan(client: AsyncClient, db_session):
    """Inscription: compte, chapitre, adhésion OWNER et plan FREE"""
    response = await client.post("/api/v1/auth/register", json=REGISTER_DATA)

    assert response.status_code == 201
    data = response.json()
    assert data["chapter_slug"] == "beta-chi"

    user = db_session.query(User).filter(User.email == "jordan@example.com").one()
    chapter = db_session.query(Chapter).filter(Chapter.slug == "beta-chi").one()
    membership = db_session.query(Membership).filter(Membership.user_id == user.id).one()
    subscription = db_session.query(Subscription).filter(Subscription.chapter_id == chapter.id).one()

    assert chapter.name == "Jordan's Chapter"
    assert len(chapter.join_code) == 8
    assert membership.role == "OWNER"
    assert subscription.plan == "FREE"
    assert subscription.status == "ACTIVE"


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient):
    await client.post("/api/v1/auth/register", json=REGISTER_DATA)

    response = await client.post(
        "/api/v1/auth/register",
        json={**REGISTER_DATA, "chapter_slug": "other-slug"},
    )

    assert response.status_code == 400
    assert "already registered" in response.json()["detail"]


@pytest.mark.asyncio
async def test_register_duplicate_slug(client: AsyncClient):
    await client.post("/api/v1/auth/register", json=REGISTER_DATA)

    response = await client.post(
        "/api/v1/auth/register",
        json={**REGISTER_DATA, "email": "someone@example.com"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Chapter URL is already taken"


@pytest.mark.asyncio
@pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"])
async def test_register_rejects_weak_password(client: AsyncClient, password):
    response = await client.post(
        "/api/v1/auth/register",
        json={**REGISTER_DATA, "password": password},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_register_rejects_invalid_slug(client: AsyncClient):
    response = await client.post(
        "/api/v1/auth/register",
        json={**REGISTER_DATA, "chapter_slug": "bad slug!"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_embeds_memberships(client: AsyncClient):
    """Le token d'accès porte les adhésions de l'utilisateur"""
    await client.post("/api/v1/auth/register", json=REGISTER_DATA)

    response = await client.post(
        "/api/v1/auth/login",
        json={"email": "jordan@example.com", "password": "Password123"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    claims = jwt.decode(data["access_token"], settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert claims["type"] == "access"
    assert len(claims["memberships"]) == 1
    assert claims["memberships"][0]["chapter_slug"] == "beta-chi"
    assert claims["memberships"][0]["role"] == "OWNER"


@pytest.mark.asyncio
async def test_login_invalid_credentials(client: AsyncClient, owner):
    response = await client.post(
        "/api/v1/auth/login",
        json={"email": owner.email, "password": "WrongPassword1"},
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_refresh_returns_new_pair(client: AsyncClient, owner):
    login = await client.post(
        "/api/v1/auth/login",
        json={"email": owner.email, "password": "Password123"},
    )
    refresh_token = login.json()["refresh_token"]

    response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})

    assert response.status_code == 200
    assert "access_token" in response.json()


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(client: AsyncClient, owner):
    login = await client.post(
        "/api/v1/auth/login",
        json={"email": owner.email, "password": "Password123"},
    )

    response = await client.post(
        "/api/v1/auth/refresh",
        json={"refresh_token": login.json()["access_token"]},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_me_lists_memberships(client: AsyncClient, owner_headers):
    response = await client.get("/api/v1/auth/me", headers=owner_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["email"] == "owner@example.com"
    assert data["memberships"][0]["chapter_slug"] == "alpha"
    assert data["memberships"][0]["chapter_name"] == "Olivia's Chapter"


@pytest.mark.asyncio
async def test_unauthorized_access(client: AsyncClient):
    response = await client.get("/api/v1/auth/me")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_change_password(client: AsyncClient, owner, owner_headers):
    response = await client.post(
        "/api/v1/auth/change-password",
        headers=owner_headers,
        json={"current_password": "Password123", "new_password": "NewPassword456"},
    )
    assert response.status_code == 200

    login = await client.post(
        "/api/v1/auth/login",
        json={"email": owner.email, "password": "NewPassword456"},
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_change_password_wrong_current(client: AsyncClient, owner_headers):
    response = await client.post(
        "/api/v1/auth/change-password",
        headers=owner_headers,
        json={"current_password": "NotMyPassword1", "new_password": "NewPassword456"},
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_forgot_password_same_response_for_unknown_email(client: AsyncClient, owner, chapter):
    known = await client.post("/api/v1/auth/forgot-password", json={"email": owner.email})
    unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})

    assert known.status_code == 200
    assert unknown.status_code == 200
    assert known.json() == unknown.json()


@pytest.mark.asyncio
async def test_password_reset_flow(client: AsyncClient, db_session, owner, chapter):
    """Demande, vérification du token, réinitialisation, puis token invalidé"""
    await client.post("/api/v1/auth/forgot-password", json={"email": owner.email})
    db_session.refresh(owner)
    token = owner.reset_token
    assert token

    verify = await client.get("/api/v1/auth/verify-reset-token", params={"token": token})
    assert verify.json() == {"valid": True}

    reset = await client.post(
        "/api/v1/auth/reset-password",
        json={"token": token, "password": "BrandNew789"},
    )
    assert reset.status_code == 200

    reused = await client.post(
        "/api/v1/auth/reset-password",
        json={"token": token, "password": "BrandNew789"},
    )
    assert reused.status_code == 400

    login = await client.post(
        "/api/v1/auth/login",
        json={"email": owner.email, "password": "BrandNew789"},
    )
    assert login.status_code == 200

    actions = {a.action for a in db_session.query(AuditLog).all()}
    assert {"PASSWORD_RESET_REQUESTED", "PASSWORD_RESET_COMPLETED"} <= actions


@pytest.mark.asyncio
async def test_verify_unknown_reset_token(client: AsyncClient):
    response = await client.get("/api/v1/auth/verify-reset-token", params={"token": "nope"})

    assert response.json() == {"valid": False}
