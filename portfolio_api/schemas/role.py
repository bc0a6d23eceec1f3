"""
Pydantic schemas for the role management API.

Role names are accepted as plain strings so that unknown names reach the
service layer and produce INVALID_ROLE (400) instead of a validation error.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import ConfigDict, Field, field_validator

from portfolio_api.core.role_catalog import RoleDefinition
from portfolio_api.models import RoleAssignment
from portfolio_api.schemas.auth import CamelModel


def _strip_role(v: str) -> str:
    return v.strip().lower()


class RoleResponse(CamelModel):
    """Catalog entry."""

    name: str
    description: str
    permissions: List[str]
    hierarchy_level: int
    color: str
    icon: str

    @classmethod
    def from_definition(cls, role: RoleDefinition) -> "RoleResponse":
        return cls(
            name=role.name.value,
            description=role.description,
            permissions=sorted(role.permissions),
            hierarchy_level=role.hierarchy_level,
            color=role.color,
            icon=role.icon,
        )


class RoleListResponse(CamelModel):
    roles: List[RoleResponse]
    total: int


class AssignRoleRequest(CamelModel):
    """Request schema for granting a role."""

    user_id: int = Field(..., gt=0, description="Target user ID")
    role_name: str = Field(..., min_length=1, max_length=50, description="Catalog role name")
    notes: Optional[str] = Field(None, max_length=1000, description="Free text stored with the assignment")

    @field_validator("role_name")
    @classmethod
    def normalize_role_name(cls, v: str) -> str:
        return _strip_role(v)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "userId": 42,
                "roleName": "verifier",
                "notes": "Verifier for the 2025-I cycle"
            }
        }
    )


class AssignRoleResponse(CamelModel):
    assignment_id: int
    user_id: int
    role_name: str


class RevokeRoleRequest(CamelModel):
    """Request schema for revoking a role."""

    user_id: int = Field(..., gt=0)
    role_name: str = Field(..., min_length=1, max_length=50)
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("role_name")
    @classmethod
    def normalize_role_name(cls, v: str) -> str:
        return _strip_role(v)


class ReactivateRoleRequest(RevokeRoleRequest):
    """Request schema for reactivating a revoked role."""


class AssignmentResponse(CamelModel):
    """A single role_assignments row."""

    id: int
    user_id: int
    role_name: str
    active: bool
    assigned_at: datetime
    assigned_by: Optional[int] = None
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[int] = None
    notes: Optional[str] = None

    @classmethod
    def from_model(cls, assignment: RoleAssignment) -> "AssignmentResponse":
        return cls(
            id=assignment.id,
            user_id=assignment.user_id,
            role_name=assignment.role_name.value,
            active=assignment.active,
            assigned_at=assignment.assigned_at,
            assigned_by=assignment.assigned_by,
            revoked_at=assignment.revoked_at,
            revoked_by=assignment.revoked_by,
            notes=assignment.notes,
        )


class MyRoleItem(CamelModel):
    name: str
    description: str
    permissions: List[str]
    assigned_at: datetime


class MyRolesResponse(CamelModel):
    """Roles of the calling user."""

    roles: List[MyRoleItem]
    is_multi_role: bool
    principal_role: Optional[str] = None
    active_role: Optional[str] = None


class CurrentRoleResponse(CamelModel):
    """Role context the caller is operating in."""

    active_role: Optional[str] = None
    explicit: bool = Field(..., description="True when chosen via switch-active, False when derived")
    description: Optional[str] = None
    permissions: List[str]
    all_roles: List[str]


class SwitchRoleRequest(CamelModel):
    role: str = Field(..., min_length=1, max_length=50, description="Role to operate as")

    @field_validator("role")
    @classmethod
    def normalize_role(cls, v: str) -> str:
        return _strip_role(v)


class SwitchRoleResponse(CamelModel):
    token: str
    active_role: str
    permissions: List[str]
    all_roles: List[str]


class SwitchHistoryItem(CamelModel):
    active_role: Optional[str] = None
    switched_at: datetime
    ip_address: Optional[str] = None


class SwitchHistoryResponse(CamelModel):
    """Active-role switches of the caller, newest first."""

    history: List[SwitchHistoryItem]
    total: int


class PermissionCheckResponse(CamelModel):
    permission: str
    granted: bool


class RoleUserItem(CamelModel):
    user_id: int
    name: str
    email: str
    assignment_id: int
    active: bool
    assigned_at: datetime


class RoleUsersResponse(CamelModel):
    role_name: str
    users: List[RoleUserItem]
    total: int


class AssignmentListItem(AssignmentResponse):
    user_name: str
    user_email: str


class AssignmentListResponse(CamelModel):
    items: List[AssignmentListItem]
    total: int
    skip: int
    limit: int


class RoleStatisticsItem(CamelModel):
    role_name: str
    description: str
    total: int
    active: int
    revoked: int
    unique_users: int
    first_assigned_at: Optional[datetime] = None
    last_assigned_at: Optional[datetime] = None


class RoleStatisticsResponse(CamelModel):
    roles: List[RoleStatisticsItem]
    total_assignments: int
    total_active: int


class RoleHistoryItem(AssignmentResponse):
    status: str = Field(..., description="'active' or 'revoked'")
    duration_days: int = Field(..., description="Days the assignment was (or has been) in force")


class RoleHistoryResponse(CamelModel):
    user_id: int
    history: List[RoleHistoryItem]
    total: int


class UserPermissionsResponse(CamelModel):
    user_id: int
    roles: List[str]
    permissions: List[str]
    permissions_by_role: Dict[str, List[str]]
    principal_role: Optional[str] = None


class SyncRolesRequest(CamelModel):
    """Desired complete set of active roles for a user."""

    roles: List[str] = Field(..., max_length=10)
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("roles")
    @classmethod
    def normalize_roles(cls, v: List[str]) -> List[str]:
        return [_strip_role(r) for r in v]


class SyncRolesResponse(CamelModel):
    user_id: int
    added: List[str]
    removed: List[str]
    active_roles: List[str]


class BulkAssignRequest(CamelModel):
    items: List[AssignRoleRequest] = Field(..., min_length=1, max_length=500)


class BulkAssignItemResult(CamelModel):
    user_id: int
    role_name: str
    success: bool
    assignment_id: Optional[int] = None
    error_code: Optional[str] = None
    error: Optional[str] = None


class BulkAssignResponse(CamelModel):
    results: List[BulkAssignItemResult]
    succeeded: int
    failed: int
