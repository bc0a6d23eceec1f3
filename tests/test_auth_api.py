from __future__ import annotations

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update

from portfolio_api.core.config import Settings
from portfolio_api.core.security import create_jwt_token
from portfolio_api.database import Database
from portfolio_api.models import AuditAction, AuditLog, User
from portfolio_api.repositories.audit_log_repository import AuditLogRepository

API = "/api/v1"


@pytest.mark.asyncio
async def test_login_returns_token_and_roles(client: AsyncClient, seeded) -> None:
    response = await client.post(
        f"{API}/auth/login",
        json={"email": "MULTI@unsaac.edu.pe", "password": seeded.multi.password},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert body["tokenType"] == "bearer"
    assert body["expiresIn"] == 120 * 60
    assert body["user"] == {
        "id": seeded.multi.id,
        "name": "Luis Condori",
        "email": "multi@unsaac.edu.pe",
        "roles": ["teacher", "verifier"],
    }
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_login_failures_are_indistinguishable(client: AsyncClient, seeded) -> None:
    attempts = [
        {"email": seeded.teacher.email, "password": "wrong-password"},
        {"email": "nadie@unsaac.edu.pe", "password": "whatever"},
        {"email": seeded.inactive.email, "password": seeded.inactive.password},
    ]

    responses = [await client.post(f"{API}/auth/login", json=attempt) for attempt in attempts]

    assert {r.status_code for r in responses} == {401}
    bodies = [r.json() for r in responses]
    assert bodies[0] == bodies[1] == bodies[2]
    assert bodies[0]["code"] == "INVALID_CREDENTIALS"


@pytest.mark.asyncio
async def test_failed_login_is_audited(client: AsyncClient, database: Database, seeded) -> None:
    await client.post(f"{API}/auth/login", json={"email": seeded.teacher.email, "password": "nope"})

    async with database.session() as session:
        result = await session.execute(select(AuditLog).where(AuditLog.action == AuditAction.LOGIN_FAILED))
        logs = list(result.scalars().all())

    assert len(logs) == 1
    assert logs[0].user_id is None
    assert logs[0].details == {"email": seeded.teacher.email}


@pytest.mark.asyncio
async def test_malformed_login_body_is_validation_error(client: AsyncClient) -> None:
    response = await client.post(f"{API}/auth/login", json={"email": "not-an-email", "password": "x"})

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_me_reports_live_roles_and_permissions(client: AsyncClient, login, seeded) -> None:
    headers = await login(seeded.multi)

    response = await client.get(f"{API}/auth/me", headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == seeded.multi.id
    assert body["roles"] == ["teacher", "verifier"]
    assert body["principalRole"] == "verifier"
    assert body["activeRole"] is None
    assert "documents.upload" in body["permissions"]
    assert "documents.review" in body["permissions"]
    assert body["lastAccessAt"] is not None


@pytest.mark.asyncio
async def test_missing_and_malformed_tokens(client: AsyncClient) -> None:
    missing = await client.get(f"{API}/auth/me")
    malformed = await client.get(f"{API}/auth/me", headers={"Authorization": "Token abc"})
    garbage = await client.get(f"{API}/auth/me", headers={"Authorization": "Bearer abc.def.ghi"})

    assert missing.status_code == 401
    assert missing.json()["code"] == "UNAUTHENTICATED"
    assert malformed.status_code == 401
    assert malformed.json()["code"] == "INVALID_TOKEN"
    assert garbage.status_code == 401
    assert garbage.json()["code"] == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_expired_token(client: AsyncClient, settings: Settings, seeded) -> None:
    token = create_jwt_token(
        {"sub": str(seeded.teacher.id), "type": "access", "roles": ["teacher"]},
        timedelta(minutes=-1),
        secret_key=settings.jwt_secret_key,
    )

    response = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_EXPIRED"


@pytest.mark.asyncio
async def test_deactivated_user_token_stops_working(
    client: AsyncClient, database: Database, login, seeded
) -> None:
    headers = await login(seeded.teacher)
    assert (await client.get(f"{API}/auth/me", headers=headers)).status_code == 200

    async with database.session() as session:
        await session.execute(update(User).where(User.id == seeded.teacher.id).values(is_active=False))
        await session.commit()

    response = await client.get(f"{API}/auth/me", headers=headers)
    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHENTICATED"


@pytest.mark.asyncio
async def test_logout_is_audited(client: AsyncClient, database: Database, login, seeded) -> None:
    headers = await login(seeded.teacher)

    response = await client.post(f"{API}/auth/logout", headers=headers)

    assert response.status_code == 200
    assert response.json()["success"] is True
    async with database.session() as session:
        logs = await AuditLogRepository(session).get_by_entity("user", seeded.teacher.id)
    assert [log.action for log in logs] == [AuditAction.LOGOUT, AuditAction.LOGIN]
