from typing import Dict

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import RefreshToken, User
from app.core.models import Parent, Teacher
from app.db.seed_admin import seed_admin
from tests.helpers import ADMIN_EMAIL, ADMIN_PASSWORD, DEFAULT_PASSWORD, bearer, parent_payload, teacher_payload


@pytest.mark.asyncio
async def test_register_teacher_creates_user_and_profile(client: AsyncClient, db_session: AsyncSession) -> None:
    response = await client.post("/api/auth/register", json=teacher_payload())
    assert response.status_code == 201
    body = response.json()

    assert body["success"] is True
    assert body["message"] == "User registered successfully"
    data = body["data"]
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["user"]["role"] == "Teacher"
    assert data["profile"]["employee_id"] == "EMP001"

    user = (await db_session.execute(select(User).where(User.email == "teacher@example.com"))).scalar_one()
    assert user.password_hash != DEFAULT_PASSWORD
    teacher = (await db_session.execute(select(Teacher).where(Teacher.user_id == user.id))).scalar_one()
    assert teacher.first_name == "Grace"


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, db_session: AsyncSession) -> None:
    first = await client.post("/api/auth/register", json=parent_payload())
    assert first.status_code == 201

    second = await client.post("/api/auth/register", json=parent_payload())
    assert second.status_code == 409
    assert second.json()["success"] is False
    assert second.json()["message"] == "Email already exists"

    parents = (await db_session.execute(select(Parent))).scalars().all()
    assert len(parents) == 1


@pytest.mark.asyncio
async def test_register_admin_is_rejected(client: AsyncClient) -> None:
    payload = teacher_payload()
    payload["role"] = "Admin"
    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 422
    assert response.json()["message"] == "Validation failed"


@pytest.mark.asyncio
async def test_register_weak_password(client: AsyncClient) -> None:
    payload = teacher_payload()
    payload["password"] = "alllowercase"
    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 422
    fields = [e["field"] for e in response.json()["error"]]
    assert "password" in fields


@pytest.mark.asyncio
async def test_register_invalid_profile(client: AsyncClient) -> None:
    payload = teacher_payload()
    del payload["profile"]["employee_id"]
    response = await client.post("/api/auth/register", json=payload)
    assert response.status_code == 400
    assert "employee_id" in response.json()["message"]


@pytest.mark.asyncio
async def test_login_success_updates_last_login(
    client: AsyncClient, db_session: AsyncSession, admin_headers: Dict[str, str]
) -> None:
    response = await client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["token_type"] == "bearer"
    assert data["user"]["role"] == "Admin"
    assert data["profile"] is None
    assert data["user"]["last_login"] is not None


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, admin_headers: Dict[str, str]) -> None:
    response = await client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "Wrong123"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_login_unknown_email(client: AsyncClient) -> None:
    response = await client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "Secret123"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_refresh_token_rotates(client: AsyncClient, db_session: AsyncSession) -> None:
    registered = await client.post("/api/auth/register", json=teacher_payload())
    old_refresh = registered.json()["data"]["refresh_token"]

    response = await client.post("/api/auth/refresh-token", json={"refreshToken": old_refresh})
    assert response.status_code == 200
    new_refresh = response.json()["data"]["refresh_token"]
    assert new_refresh != old_refresh

    reused = await client.post("/api/auth/refresh-token", json={"refreshToken": old_refresh})
    assert reused.status_code == 401
    assert reused.json()["message"] == "Invalid refresh token"


@pytest.mark.asyncio
async def test_verify_and_profile(client: AsyncClient, teacher_headers: Dict[str, str]) -> None:
    verify = await client.get("/api/auth/verify", headers=teacher_headers)
    assert verify.status_code == 200
    assert verify.json()["data"]["email"] == "teacher@example.com"
    assert verify.json()["data"]["role"] == "Teacher"

    profile = await client.get("/api/auth/profile", headers=teacher_headers)
    assert profile.status_code == 200
    assert profile.json()["data"]["profile"]["last_name"] == "Hopper"


@pytest.mark.asyncio
async def test_missing_or_invalid_token(client: AsyncClient) -> None:
    missing = await client.get("/api/auth/verify")
    assert missing.status_code == 401
    assert missing.json()["success"] is False

    invalid = await client.get("/api/auth/verify", headers=bearer("not-a-jwt"))
    assert invalid.status_code == 401
    assert invalid.json()["message"] == "Invalid token"


@pytest.mark.asyncio
async def test_change_password(client: AsyncClient, teacher_headers: Dict[str, str]) -> None:
    wrong = await client.put(
        "/api/auth/change-password",
        json={"currentPassword": "Nope1234", "newPassword": "Newpass123", "confirmPassword": "Newpass123"},
        headers=teacher_headers,
    )
    assert wrong.status_code == 400
    assert wrong.json()["message"] == "Current password is incorrect"

    mismatch = await client.put(
        "/api/auth/change-password",
        json={"currentPassword": DEFAULT_PASSWORD, "newPassword": "Newpass123", "confirmPassword": "Other123"},
        headers=teacher_headers,
    )
    assert mismatch.status_code == 422

    ok = await client.put(
        "/api/auth/change-password",
        json={"currentPassword": DEFAULT_PASSWORD, "newPassword": "Newpass123", "confirmPassword": "Newpass123"},
        headers=teacher_headers,
    )
    assert ok.status_code == 200

    login = await client.post("/api/auth/login", json={"email": "teacher@example.com", "password": "Newpass123"})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_logout_revokes_refresh_tokens(client: AsyncClient, db_session: AsyncSession) -> None:
    registered = await client.post("/api/auth/register", json=teacher_payload())
    data = registered.json()["data"]

    response = await client.post("/api/auth/logout", headers=bearer(data["access_token"]))
    assert response.status_code == 200
    assert response.json()["message"] == "Logout successful"

    tokens = (await db_session.execute(select(RefreshToken))).scalars().all()
    assert tokens == []
    refresh = await client.post("/api/auth/refresh-token", json={"refreshToken": data["refresh_token"]})
    assert refresh.status_code == 401


@pytest.mark.asyncio
async def test_role_guard_forbids_other_roles(client: AsyncClient, teacher_headers: Dict[str, str]) -> None:
    response = await client.post(
        "/api/academic/grades", json={"name": "Grade 1", "level": 1}, headers=teacher_headers
    )
    assert response.status_code == 403
    assert response.json()["message"] == "Insufficient permissions"


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(client: AsyncClient) -> None:
    response = await client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Route /api/does-not-exist not found"}


@pytest.mark.asyncio
async def test_seed_admin_rejects_unusable_email(db_session: AsyncSession) -> None:
    with pytest.raises(ValueError):
        await seed_admin(db_session, "admin@school.test", ADMIN_PASSWORD)
    with pytest.raises(ValueError):
        await seed_admin(db_session, "not-an-email", ADMIN_PASSWORD)

    users = (await db_session.execute(select(User))).scalars().all()
    assert users == []


@pytest.mark.asyncio
async def test_seeded_admin_can_log_in(client: AsyncClient, db_session: AsyncSession) -> None:
    admin = await seed_admin(db_session, "  Head@Example.com ", ADMIN_PASSWORD)
    assert admin.email == "head@example.com"
    assert admin.role == "Admin"

    response = await client.post("/api/auth/login", json={"email": "head@example.com", "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    assert response.json()["data"]["user"]["role"] == "Admin"
