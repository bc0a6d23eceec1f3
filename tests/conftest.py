from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_api.core.config import Settings
from portfolio_api.core.security import hash_password
from portfolio_api.database import Database
from portfolio_api.main import create_app
from portfolio_api.models import RoleAssignment, RoleName, User

API = "/api/v1"
PASSWORD = "Portafolio2025"
# bcrypt is slow; hash once for every seeded account
PASSWORD_HASH = hash_password(PASSWORD)
TEST_SECRET = "test-secret-key-for-portfolio-tests-0123456789"


@dataclass(frozen=True, slots=True)
class SeededUser:
    id: int
    email: str
    password: str = PASSWORD


@dataclass(frozen=True, slots=True)
class SeededUsers:
    admin: SeededUser
    teacher: SeededUser
    verifier: SeededUser
    multi: SeededUser
    inactive: SeededUser
    roleless: SeededUser


def _build_settings(tmp_path: Path, **overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "_env_file": None,
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'portfolio.db'}",
        "jwt_secret_key": TEST_SECRET,
        "rate_limit_enabled": False,
        "log_format": "text",
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    def _make(**overrides: Any) -> Settings:
        return _build_settings(tmp_path, **overrides)

    return _make


@pytest.fixture
def settings(make_settings: Callable[..., Settings]) -> Settings:
    return make_settings()


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncIterator[Database]:
    db = Database(settings)
    await db.create_all()
    try:
        yield db
    finally:
        await db.dispose()


@pytest_asyncio.fixture
async def session(database: Database) -> AsyncIterator[AsyncSession]:
    async with database.session() as db_session:
        yield db_session


async def _create_user(
    db_session: AsyncSession,
    email: str,
    first_name: str,
    last_name: str,
    roles: tuple[RoleName, ...] = (),
    *,
    is_active: bool = True,
) -> SeededUser:
    user = User(
        email=email,
        hashed_password=PASSWORD_HASH,
        first_name=first_name,
        last_name=last_name,
        is_active=is_active,
    )
    db_session.add(user)
    await db_session.flush()
    for role in roles:
        db_session.add(RoleAssignment(user_id=user.id, role_name=role))
        await db_session.flush()
    return SeededUser(id=user.id, email=email)


@pytest_asyncio.fixture
async def seeded(database: Database) -> SeededUsers:
    async with database.session() as db_session:
        users = SeededUsers(
            admin=await _create_user(
                db_session, "admin@unsaac.edu.pe", "Rosa", "Quispe", (RoleName.ADMINISTRATOR,)
            ),
            teacher=await _create_user(
                db_session, "docente@unsaac.edu.pe", "Juan", "Mamani", (RoleName.TEACHER,)
            ),
            verifier=await _create_user(
                db_session, "verificador@unsaac.edu.pe", "Ana", "Huaman", (RoleName.VERIFIER,)
            ),
            multi=await _create_user(
                db_session,
                "multi@unsaac.edu.pe",
                "Luis",
                "Condori",
                (RoleName.TEACHER, RoleName.VERIFIER),
            ),
            inactive=await _create_user(
                db_session, "inactivo@unsaac.edu.pe", "Pedro", "Ccama", (RoleName.TEACHER,), is_active=False
            ),
            roleless=await _create_user(db_session, "sinrol@unsaac.edu.pe", "Elena", "Apaza"),
        )
        await db_session.commit()
    return users


@pytest.fixture
def app(settings: Settings, database: Database) -> FastAPI:
    return create_app(settings, database)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as http:
        yield http


@pytest.fixture
def login(client: AsyncClient) -> Callable[[SeededUser], Awaitable[dict[str, str]]]:
    """Log a seeded user in and return ready-to-send auth headers."""

    async def _login(user: SeededUser) -> dict[str, str]:
        response = await client.post(
            f"{API}/auth/login", json={"email": user.email, "password": user.password}
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _login
