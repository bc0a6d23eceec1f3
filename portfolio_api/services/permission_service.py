"""
Permission resolution.

A user's effective permissions are the union of the catalog permissions of
their currently active roles. Nothing is cached: every call reads the live
assignment rows, so a revocation takes effect on the very next request.
"""
from typing import Dict, FrozenSet, Iterable, List, Optional

from portfolio_api.core import role_catalog
from portfolio_api.core.role_catalog import RoleDefinition
from portfolio_api.models import RoleAssignment, RoleName
from portfolio_api.repositories.role_assignment_repository import RoleAssignmentRepository


def union_permissions(role_names: Iterable) -> FrozenSet[str]:
    """Union of catalog permissions for role_names. Unknown names contribute nothing."""
    permissions: FrozenSet[str] = frozenset()
    for name in role_names:
        permissions = permissions | role_catalog.permissions_for(name)
    return permissions


def select_principal(assignments: Iterable[RoleAssignment]) -> Optional[RoleDefinition]:
    """
    Pick the highest-ranked role among assignments.

    Ties on hierarchy level go to the earliest assignment.
    """
    principal: Optional[RoleDefinition] = None
    for assignment in sorted(assignments, key=lambda a: (a.assigned_at, a.id)):
        role = role_catalog.get_role(assignment.role_name)
        if role is None:
            continue
        if principal is None or role.hierarchy_level > principal.hierarchy_level:
            principal = role
    return principal


class PermissionService:
    """Resolve effective permissions and the principal role of a user."""

    def __init__(self, assignment_repository: RoleAssignmentRepository):
        self.assignment_repo = assignment_repository

    async def _active_roles(self, user_id: int) -> List[RoleAssignment]:
        return await self.assignment_repo.list_active_for_user(user_id)

    async def resolve_permissions(self, user_id: int) -> FrozenSet[str]:
        """Effective permission set; empty (deny everything) when the user has no active roles."""
        assignments = await self._active_roles(user_id)
        return union_permissions(a.role_name for a in assignments)

    async def principal_role(self, user_id: int) -> Optional[RoleDefinition]:
        return select_principal(await self._active_roles(user_id))

    async def permissions_by_role(self, user_id: int) -> Dict[RoleName, FrozenSet[str]]:
        assignments = await self._active_roles(user_id)
        return {a.role_name: role_catalog.permissions_for(a.role_name) for a in assignments}

    async def has_permission(self, user_id: int, permission: str) -> bool:
        return permission in await self.resolve_permissions(user_id)

    async def has_all_permissions(self, user_id: int, permissions: Iterable[str]) -> bool:
        granted = await self.resolve_permissions(user_id)
        if not granted:
            return False
        return all(p in granted for p in permissions)

    async def has_any_permission(self, user_id: int, permissions: Iterable[str]) -> bool:
        granted = await self.resolve_permissions(user_id)
        return any(p in granted for p in permissions)
