from __future__ import annotations

import click
import pytest

from portfolio_api.database import Database
from portfolio_api.models import AuditAction, RoleName
from portfolio_api.repositories.audit_log_repository import AuditLogRepository
from portfolio_api.repositories.role_assignment_repository import RoleAssignmentRepository
from portfolio_api.scripts.create_admin import create_admin_user, validate_password


def test_validate_password_rules() -> None:
    assert validate_password("Portafolio2025") == (True, "")
    assert validate_password("corto1A")[0] is False
    assert validate_password("sinmayusculas1")[0] is False
    assert validate_password("SinDigitos")[0] is False


@pytest.mark.asyncio
async def test_new_administrator_is_audited(database: Database) -> None:
    user_id = await create_admin_user(database, "Jefe@unsaac.edu.pe", "Portafolio2025", "Carmen", "Quispe")

    async with database.session() as session:
        roles = await RoleAssignmentRepository(session).list_active_for_user(user_id)
        trail = await AuditLogRepository(session).get_by_entity("user", user_id)

    assert [a.role_name for a in roles] == [RoleName.ADMINISTRATOR]
    assert [entry.action for entry in trail] == [AuditAction.USER_CREATED]
    assert trail[0].user_id is None


@pytest.mark.asyncio
async def test_existing_account_needs_force(database: Database) -> None:
    user_id = await create_admin_user(database, "jefe@unsaac.edu.pe", "Portafolio2025", "Carmen", "Quispe")

    with pytest.raises(click.ClickException):
        await create_admin_user(database, "jefe@unsaac.edu.pe", "Portafolio2026", "Carmen", "Quispe")

    again = await create_admin_user(
        database, "jefe@unsaac.edu.pe", "Portafolio2026", "Carmen", "Quispe Huaman", force=True
    )
    assert again == user_id

    async with database.session() as session:
        roles = await RoleAssignmentRepository(session).list_active_for_user(user_id)
        trail = await AuditLogRepository(session).get_by_entity("user", user_id)

    # refreshing neither duplicates the role nor records a second creation
    assert len(roles) == 1
    assert [entry.action for entry in trail] == [AuditAction.USER_CREATED]
