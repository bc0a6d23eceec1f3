"""
Canonical role catalog.

Roles are defined in code, never stored as rows. This module is the only
place permission strings are declared; every other module asks the catalog.
Permissions are dot-namespaced as "<resource>.<action>".
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Union

from portfolio_api.models.enums import RoleName


RoleLike = Union[RoleName, str]


@dataclass(frozen=True)
class RoleDefinition:
    """Static description of a role and the permissions it grants."""

    name: RoleName
    description: str
    permissions: FrozenSet[str]
    hierarchy_level: int
    color: str
    icon: str


TEACHER_PERMISSIONS = frozenset({
    "portfolios.view_own",
    "portfolios.manage_own",
    "documents.upload",
    "documents.edit_own",
    "documents.delete_own",
    "observations.respond",
    "observations.view_own",
    "notifications.view_own",
    "profile.edit_own",
})

VERIFIER_PERMISSIONS = frozenset({
    "portfolios.view_assigned",
    "documents.review",
    "documents.approve",
    "documents.reject",
    "observations.create",
    "observations.manage",
    "observations.view_assigned",
    "teachers.view_assigned",
    "reports.verification",
    "notifications.view_own",
    "profile.edit_own",
})

ADMINISTRATOR_PERMISSIONS = frozenset({
    "users.manage",
    "users.create",
    "users.edit",
    "users.delete",
    "roles.assign",
    "roles.revoke",
    "cycles.manage",
    "subjects.manage",
    "portfolios.view_all",
    "portfolios.manage_all",
    "verifiers.assign",
    "excel.upload",
    "reports.all",
    "system.configure",
    "audit.view",
    "notifications.manage_all",
})


ROLES: Dict[RoleName, RoleDefinition] = {
    RoleName.TEACHER: RoleDefinition(
        name=RoleName.TEACHER,
        description="Manages their own academic portfolios and documents",
        permissions=TEACHER_PERMISSIONS,
        hierarchy_level=1,
        color="#3b82f6",
        icon="user-graduate",
    ),
    RoleName.VERIFIER: RoleDefinition(
        name=RoleName.VERIFIER,
        description="Reviews and approves documents of assigned teachers",
        permissions=VERIFIER_PERMISSIONS,
        hierarchy_level=2,
        color="#10b981",
        icon="user-check",
    ),
    RoleName.ADMINISTRATOR: RoleDefinition(
        name=RoleName.ADMINISTRATOR,
        description="Full control of the system and user management",
        permissions=ADMINISTRATOR_PERMISSIONS,
        hierarchy_level=3,
        color="#ef4444",
        icon="user-shield",
    ),
}


def _coerce(role_name: RoleLike) -> Optional[RoleName]:
    if isinstance(role_name, RoleName):
        return role_name
    try:
        return RoleName(role_name)
    except ValueError:
        return None


def list_roles() -> List[RoleDefinition]:
    """Return every role, lowest hierarchy level first."""
    return sorted(ROLES.values(), key=lambda role: role.hierarchy_level)


def get_role(role_name: RoleLike) -> Optional[RoleDefinition]:
    """Return the definition for role_name, or None when it is not a catalog role."""
    name = _coerce(role_name)
    return ROLES.get(name) if name is not None else None


def is_valid_role(role_name: RoleLike) -> bool:
    return _coerce(role_name) is not None


def permissions_for(role_name: RoleLike) -> FrozenSet[str]:
    """Return the permissions granted by role_name.

    Unknown roles grant nothing; this never raises.
    """
    role = get_role(role_name)
    return role.permissions if role is not None else frozenset()


def all_permissions() -> FrozenSet[str]:
    return frozenset().union(*(role.permissions for role in ROLES.values()))


def outranks(held: RoleLike, required: RoleLike) -> bool:
    """True when held sits strictly above required in the hierarchy.

    Only used for display ranking and by require_roles(allow_hierarchy=True);
    permissions are never inherited through the hierarchy.
    """
    held_role = get_role(held)
    required_role = get_role(required)
    if held_role is None or required_role is None:
        return False
    return held_role.hierarchy_level > required_role.hierarchy_level
