"""
Pydantic schemas for API requests and responses.
"""
from portfolio_api.schemas.auth import (
    CamelModel,
    CurrentUserResponse,
    LoginRequest,
    LoginResponse,
    LoginUser,
    SuccessResponse,
)
from portfolio_api.schemas.role import (
    AssignmentListItem,
    AssignmentListResponse,
    AssignmentResponse,
    AssignRoleRequest,
    AssignRoleResponse,
    BulkAssignItemResult,
    BulkAssignRequest,
    BulkAssignResponse,
    CurrentRoleResponse,
    MyRoleItem,
    MyRolesResponse,
    PermissionCheckResponse,
    ReactivateRoleRequest,
    RevokeRoleRequest,
    RoleHistoryItem,
    RoleHistoryResponse,
    RoleListResponse,
    RoleResponse,
    RoleStatisticsItem,
    RoleStatisticsResponse,
    RoleUserItem,
    RoleUsersResponse,
    SwitchRoleRequest,
    SwitchRoleResponse,
    SyncRolesRequest,
    SyncRolesResponse,
    UserPermissionsResponse,
)

__all__ = [
    "CamelModel",
    "CurrentUserResponse",
    "LoginRequest",
    "LoginResponse",
    "LoginUser",
    "SuccessResponse",
    "AssignmentListItem",
    "AssignmentListResponse",
    "AssignmentResponse",
    "AssignRoleRequest",
    "AssignRoleResponse",
    "BulkAssignItemResult",
    "BulkAssignRequest",
    "BulkAssignResponse",
    "CurrentRoleResponse",
    "MyRoleItem",
    "MyRolesResponse",
    "PermissionCheckResponse",
    "ReactivateRoleRequest",
    "RevokeRoleRequest",
    "RoleHistoryItem",
    "RoleHistoryResponse",
    "RoleListResponse",
    "RoleResponse",
    "RoleStatisticsItem",
    "RoleStatisticsResponse",
    "RoleUserItem",
    "RoleUsersResponse",
    "SwitchRoleRequest",
    "SwitchRoleResponse",
    "SyncRolesRequest",
    "SyncRolesResponse",
    "UserPermissionsResponse",
]
