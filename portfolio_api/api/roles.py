"""
FastAPI router for role catalog, assignment and role-context endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_api.core import role_catalog
from portfolio_api.core.config import Settings
from portfolio_api.core.dependencies import (
    AuthContext,
    get_app_settings,
    get_assignment_service,
    get_audit_service,
    get_auth_context,
    get_auth_service,
    get_permission_service,
    require_administrator,
    require_owner_or_role,
)
from portfolio_api.database import get_db
from portfolio_api.models import AuditAction, utcnow
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
    SwitchHistoryItem,
    SwitchHistoryResponse,
    SwitchRoleRequest,
    SwitchRoleResponse,
    SyncRolesRequest,
    SyncRolesResponse,
    UserPermissionsResponse,
)
from portfolio_api.schemas.auth import SuccessResponse
from portfolio_api.services.assignment_service import AssignmentService
from portfolio_api.services.audit_service import AuditService
from portfolio_api.services.auth_service import AuthService
from portfolio_api.services.permission_service import PermissionService


router = APIRouter(prefix="/roles", tags=["Roles"])


# Catalog

@router.get(
    "",
    response_model=RoleListResponse,
    summary="List roles",
    description="Every role of the catalog with its permissions and display metadata"
)
async def list_roles(context: AuthContext = Depends(get_auth_context)) -> RoleListResponse:
    roles = [RoleResponse.from_definition(role) for role in role_catalog.list_roles()]
    return RoleListResponse(roles=roles, total=len(roles))


# Assignment management (administrators)

@router.post(
    "/assign",
    response_model=AssignRoleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Assign a role to a user"
)
async def assign_role(
    body: AssignRoleRequest,
    request: Request,
    context: AuthContext = Depends(require_administrator),
    db: AsyncSession = Depends(get_db),
    assignment_service: AssignmentService = Depends(get_assignment_service),
    audit_service: AuditService = Depends(get_audit_service)
) -> AssignRoleResponse:
    assignment = await assignment_service.assign(
        body.user_id, body.role_name, assigned_by=context.user_id, notes=body.notes
    )
    await audit_service.log_role_change(
        context.user_id, AuditAction.ROLE_ASSIGNED, assignment, request=request
    )
    await db.commit()
    return AssignRoleResponse(
        assignment_id=assignment.id,
        user_id=assignment.user_id,
        role_name=assignment.role_name.value,
    )


@router.post(
    "/assign/bulk",
    response_model=BulkAssignResponse,
    summary="Assign roles to many users",
    description="Each item is applied independently; failures are reported per item."
)
async def bulk_assign_roles(
    body: BulkAssignRequest,
    request: Request,
    context: AuthContext = Depends(require_administrator),
    db: AsyncSession = Depends(get_db),
    assignment_service: AssignmentService = Depends(get_assignment_service),
    audit_service: AuditService = Depends(get_audit_service)
) -> BulkAssignResponse:
    actor_id = context.user_id
    results = await assignment_service.bulk_assign(
        [(item.user_id, item.role_name, item.notes) for item in body.items],
        assigned_by=actor_id,
    )
    succeeded = sum(1 for r in results if r.success)

    await audit_service.log_action(
        user_id=actor_id,
        action=AuditAction.ROLE_ASSIGNED,
        entity_type="role_assignment",
        details={
            "bulk": True,
            "assignment_ids": [r.assignment_id for r in results if r.success],
            "failed": len(results) - succeeded,
        },
        request=request
    )
    await db.commit()

    return BulkAssignResponse(
        results=[
            BulkAssignItemResult(
                user_id=r.user_id,
                role_name=r.role_name,
                success=r.success,
                assignment_id=r.assignment_id,
                error_code=r.error_code,
                error=r.error,
            )
            for r in results
        ],
        succeeded=succeeded,
        failed=len(results) - succeeded,
    )


@router.delete(
    "/revoke",
    response_model=SuccessResponse,
    summary="Revoke a role from a user",
    description="Marks the active assignment inactive; the row is kept for history."
)
async def revoke_role(
    body: RevokeRoleRequest,
    request: Request,
    context: AuthContext = Depends(require_administrator),
    db: AsyncSession = Depends(get_db),
    assignment_service: AssignmentService = Depends(get_assignment_service),
    audit_service: AuditService = Depends(get_audit_service)
) -> SuccessResponse:
    assignment = await assignment_service.revoke(
        body.user_id, body.role_name, revoked_by=context.user_id, reason=body.reason
    )
    await audit_service.log_role_change(
        context.user_id, AuditAction.ROLE_REVOKED, assignment, reason=body.reason, request=request
    )
    await db.commit()
    return SuccessResponse(success=True)


@router.post(
    "/reactivate",
    response_model=AssignmentResponse,
    summary="Reactivate a revoked role"
)
async def reactivate_role(
    body: ReactivateRoleRequest,
    request: Request,
    context: AuthContext = Depends(require_administrator),
    db: AsyncSession = Depends(get_db),
    assignment_service: AssignmentService = Depends(get_assignment_service),
    audit_service: AuditService = Depends(get_audit_service)
) -> AssignmentResponse:
    assignment = await assignment_service.reactivate(
        body.user_id, body.role_name, reactivated_by=context.user_id, reason=body.reason
    )
    await audit_service.log_role_change(
        context.user_id, AuditAction.ROLE_REACTIVATED, assignment, reason=body.reason, request=request
    )
    await db.commit()
    return AssignmentResponse.from_model(assignment)


# Caller's own role context

@router.get(
    "/mine",
    response_model=MyRolesResponse,
    summary="Get my roles"
)
async def my_roles(context: AuthContext = Depends(get_auth_context)) -> MyRolesResponse:
    items = []
    for assignment in context.assignments:
        role = role_catalog.get_role(assignment.role_name)
        items.append(MyRoleItem(
            name=role.name.value,
            description=role.description,
            permissions=sorted(role.permissions),
            assigned_at=assignment.assigned_at,
        ))
    principal = context.principal_role
    return MyRolesResponse(
        roles=items,
        is_multi_role=len(items) > 1,
        principal_role=principal.name.value if principal else None,
        active_role=context.active_role.value if context.active_role else None,
    )


@router.get(
    "/current",
    response_model=CurrentRoleResponse,
    summary="Get the role the caller is operating as",
    description="The role chosen via switch-active, or the principal role when none was chosen"
)
async def current_role(context: AuthContext = Depends(get_auth_context)) -> CurrentRoleResponse:
    explicit = context.active_role is not None
    role = role_catalog.get_role(context.active_role) if explicit else context.principal_role
    return CurrentRoleResponse(
        active_role=role.name.value if role else None,
        explicit=explicit,
        description=role.description if role else None,
        permissions=sorted(role.permissions) if role else [],
        all_roles=[r.value for r in context.role_names],
    )


@router.put(
    "/switch-active",
    response_model=SwitchRoleResponse,
    summary="Switch active role",
    description="Issues a new token whose active role is one of the caller's current roles"
)
async def switch_active_role(
    body: SwitchRoleRequest,
    request: Request,
    context: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
    audit_service: AuditService = Depends(get_audit_service)
) -> SwitchRoleResponse:
    result = await auth_service.switch_active_role(context.user, body.role)
    await audit_service.log_action(
        user_id=context.user_id,
        action=AuditAction.ROLE_SWITCHED,
        entity_type="user",
        entity_id=context.user_id,
        details={"active_role": result.active_role.name.value},
        request=request
    )
    await db.commit()
    return SwitchRoleResponse(
        token=result.token,
        active_role=result.active_role.name.value,
        permissions=sorted(result.permissions),
        all_roles=[r.value for r in result.roles],
    )


@router.get(
    "/switch-history",
    response_model=SwitchHistoryResponse,
    summary="Active-role switches of the caller",
    description="Read from the ROLE_SWITCHED audit trail, newest first"
)
async def switch_history(
    limit: Optional[int] = Query(None, ge=1, le=500),
    context: AuthContext = Depends(get_auth_context),
    settings: Settings = Depends(get_app_settings),
    audit_service: AuditService = Depends(get_audit_service)
) -> SwitchHistoryResponse:
    entries = await audit_service.role_switch_history(
        context.user_id, limit=limit or settings.role_history_default_limit
    )
    history = [
        SwitchHistoryItem(
            active_role=(entry.details or {}).get("active_role"),
            switched_at=entry.timestamp,
            ip_address=entry.ip_address,
        )
        for entry in entries
    ]
    return SwitchHistoryResponse(history=history, total=len(history))


@router.get(
    "/check",
    response_model=PermissionCheckResponse,
    summary="Check whether the caller holds a permission"
)
async def check_permission(
    permission: str = Query(..., min_length=1, max_length=100),
    context: AuthContext = Depends(get_auth_context)
) -> PermissionCheckResponse:
    return PermissionCheckResponse(permission=permission, granted=permission in context.permissions)


# Reporting (administrators)

@router.get(
    "/assignments",
    response_model=AssignmentListResponse,
    summary="Search role assignments"
)
async def list_assignments(
    role_name: Optional[str] = Query(None, alias="roleName"),
    active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    context: AuthContext = Depends(require_administrator),
    assignment_service: AssignmentService = Depends(get_assignment_service)
) -> AssignmentListResponse:
    rows, total = await assignment_service.list_assignments(
        role_name=role_name, active=active, search=search, skip=skip, limit=limit
    )
    items = [
        AssignmentListItem(
            **AssignmentResponse.from_model(assignment).model_dump(),
            user_name=user.full_name,
            user_email=user.email,
        )
        for assignment, user in rows
    ]
    return AssignmentListResponse(items=items, total=total, skip=skip, limit=limit)


@router.get(
    "/statistics",
    response_model=RoleStatisticsResponse,
    summary="Role assignment statistics"
)
async def role_statistics(
    context: AuthContext = Depends(require_administrator),
    assignment_service: AssignmentService = Depends(get_assignment_service)
) -> RoleStatisticsResponse:
    report = await assignment_service.statistics()
    items = [
        RoleStatisticsItem(
            role_name=entry["role"].name.value,
            description=entry["role"].description,
            total=entry["total"],
            active=entry["active"],
            revoked=entry["revoked"],
            unique_users=entry["unique_users"],
            first_assigned_at=entry["first_assigned_at"],
            last_assigned_at=entry["last_assigned_at"],
        )
        for entry in report
    ]
    return RoleStatisticsResponse(
        roles=items,
        total_assignments=sum(i.total for i in items),
        total_active=sum(i.active for i in items),
    )


# Per-user views

@router.get(
    "/users/{user_id}/history",
    response_model=RoleHistoryResponse,
    summary="Role assignment history of a user",
    description="Available to the user themself and to administrators"
)
async def role_history(
    user_id: int,
    limit: Optional[int] = Query(None, ge=1, le=500),
    context: AuthContext = Depends(require_owner_or_role("user_id")),
    assignment_service: AssignmentService = Depends(get_assignment_service)
) -> RoleHistoryResponse:
    assignments = await assignment_service.history_for(user_id, limit=limit)
    now = utcnow()
    history = [
        RoleHistoryItem(
            **AssignmentResponse.from_model(a).model_dump(),
            status="active" if a.active else "revoked",
            duration_days=max(0, ((a.revoked_at or now) - a.assigned_at).days),
        )
        for a in assignments
    ]
    return RoleHistoryResponse(user_id=user_id, history=history, total=len(history))


@router.get(
    "/users/{user_id}/permissions",
    response_model=UserPermissionsResponse,
    summary="Effective permissions of a user",
    description="Available to the user themself and to administrators"
)
async def user_permissions(
    user_id: int,
    context: AuthContext = Depends(require_owner_or_role("user_id")),
    permission_service: PermissionService = Depends(get_permission_service)
) -> UserPermissionsResponse:
    by_role = await permission_service.permissions_by_role(user_id)
    effective = await permission_service.resolve_permissions(user_id)
    principal = await permission_service.principal_role(user_id)
    return UserPermissionsResponse(
        user_id=user_id,
        roles=[role.value for role in by_role],
        permissions=sorted(effective),
        permissions_by_role={role.value: sorted(perms) for role, perms in by_role.items()},
        principal_role=principal.name.value if principal else None,
    )


@router.put(
    "/users/{user_id}",
    response_model=SyncRolesResponse,
    summary="Set the complete role set of a user",
    description="Assigns missing roles and revokes surplus ones in a single transaction"
)
async def sync_user_roles(
    user_id: int,
    body: SyncRolesRequest,
    request: Request,
    context: AuthContext = Depends(require_administrator),
    db: AsyncSession = Depends(get_db),
    assignment_service: AssignmentService = Depends(get_assignment_service),
    audit_service: AuditService = Depends(get_audit_service)
) -> SyncRolesResponse:
    result = await assignment_service.sync_roles(
        user_id, body.roles, changed_by=context.user_id, reason=body.reason
    )
    await audit_service.log_action(
        user_id=context.user_id,
        action=AuditAction.ROLES_SYNCED,
        entity_type="user",
        entity_id=user_id,
        details={
            "added": [r.value for r in result.added],
            "removed": [r.value for r in result.removed],
            "reason": body.reason,
        },
        request=request
    )
    await db.commit()
    return SyncRolesResponse(
        user_id=user_id,
        added=[r.value for r in result.added],
        removed=[r.value for r in result.removed],
        active_roles=[r.value for r in result.active_roles],
    )


@router.get(
    "/{role_name}/users",
    response_model=RoleUsersResponse,
    summary="List users holding a role"
)
async def users_with_role(
    role_name: str,
    active_only: bool = Query(True, alias="activeOnly"),
    context: AuthContext = Depends(require_administrator),
    assignment_service: AssignmentService = Depends(get_assignment_service)
) -> RoleUsersResponse:
    rows = await assignment_service.users_with_role(role_name.strip().lower(), active_only=active_only)
    users = [
        RoleUserItem(
            user_id=user.id,
            name=user.full_name,
            email=user.email,
            assignment_id=assignment.id,
            active=assignment.active,
            assigned_at=assignment.assigned_at,
        )
        for user, assignment in rows
    ]
    return RoleUsersResponse(role_name=role_name.strip().lower(), users=users, total=len(users))
