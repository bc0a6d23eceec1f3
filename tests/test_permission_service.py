from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_api.core import role_catalog
from portfolio_api.models import RoleAssignment, RoleName
from portfolio_api.repositories.role_assignment_repository import RoleAssignmentRepository
from portfolio_api.services.permission_service import (
    PermissionService,
    select_principal,
    union_permissions,
)


def _assignment(assignment_id: int, role: RoleName, day: int) -> RoleAssignment:
    return RoleAssignment(
        id=assignment_id,
        user_id=1,
        role_name=role,
        active=True,
        assigned_at=datetime(2025, 3, day, 9, 0),
    )


def test_union_of_two_roles() -> None:
    granted = union_permissions([RoleName.TEACHER, RoleName.VERIFIER])

    assert granted == role_catalog.TEACHER_PERMISSIONS | role_catalog.VERIFIER_PERMISSIONS
    assert "documents.upload" in granted
    assert "documents.review" in granted


def test_union_ignores_unknown_roles_and_empty_is_deny() -> None:
    assert union_permissions(["teacher", "superuser"]) == role_catalog.TEACHER_PERMISSIONS
    assert union_permissions([]) == frozenset()


def test_principal_role_is_highest_level() -> None:
    principal = select_principal([
        _assignment(1, RoleName.VERIFIER, 1),
        _assignment(2, RoleName.TEACHER, 2),
    ])
    assert principal is not None
    assert principal.name == RoleName.VERIFIER


def test_principal_tie_goes_to_earliest_assignment() -> None:
    earlier = _assignment(5, RoleName.TEACHER, 1)
    later = _assignment(3, RoleName.TEACHER, 4)

    principal = select_principal([later, earlier])

    assert principal is not None
    assert principal.name == RoleName.TEACHER


def test_no_assignments_means_no_principal() -> None:
    assert select_principal([]) is None


@pytest.mark.asyncio
async def test_resolve_permissions_for_multi_role_user(session: AsyncSession, seeded) -> None:
    service = PermissionService(RoleAssignmentRepository(session))

    granted = await service.resolve_permissions(seeded.multi.id)
    by_role = await service.permissions_by_role(seeded.multi.id)
    principal = await service.principal_role(seeded.multi.id)

    assert granted == role_catalog.TEACHER_PERMISSIONS | role_catalog.VERIFIER_PERMISSIONS
    assert set(by_role) == {RoleName.TEACHER, RoleName.VERIFIER}
    assert principal is not None and principal.name == RoleName.VERIFIER


@pytest.mark.asyncio
async def test_user_without_roles_is_denied_everything(session: AsyncSession, seeded) -> None:
    service = PermissionService(RoleAssignmentRepository(session))

    assert await service.resolve_permissions(seeded.roleless.id) == frozenset()
    assert not await service.has_permission(seeded.roleless.id, "profile.edit_own")
    assert not await service.has_all_permissions(seeded.roleless.id, [])
    assert not await service.has_any_permission(seeded.roleless.id, ["profile.edit_own"])


@pytest.mark.asyncio
async def test_permission_checks(session: AsyncSession, seeded) -> None:
    service = PermissionService(RoleAssignmentRepository(session))
    teacher_id = seeded.teacher.id

    assert await service.has_permission(teacher_id, "documents.upload")
    assert not await service.has_permission(teacher_id, "documents.approve")
    assert await service.has_all_permissions(teacher_id, ["documents.upload", "profile.edit_own"])
    assert not await service.has_all_permissions(teacher_id, ["documents.upload", "roles.assign"])
    assert await service.has_any_permission(teacher_id, ["roles.assign", "documents.upload"])
