"""
FastAPI dependency functions for authentication and authorization.

Every protected route resolves get_auth_context, which decodes the bearer
token and then reloads the user and their active roles from the database.
Token role claims are informational only; a role revoked after the token
was issued is no longer honoured on the next request.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_api.core import role_catalog
from portfolio_api.core.config import Settings
from portfolio_api.core.exceptions import ForbiddenError, InvalidTokenError, UnauthenticatedError
from portfolio_api.core.logging import bind_request_context, get_logger
from portfolio_api.core.role_catalog import RoleDefinition
from portfolio_api.database import get_db
from portfolio_api.models import RoleAssignment, RoleName, User
from portfolio_api.repositories.audit_log_repository import AuditLogRepository
from portfolio_api.repositories.role_assignment_repository import RoleAssignmentRepository
from portfolio_api.repositories.user_repository import UserRepository
from portfolio_api.services.assignment_service import AssignmentService
from portfolio_api.services.audit_service import AuditService
from portfolio_api.services.auth_service import AuthService
from portfolio_api.services.permission_service import (
    PermissionService,
    select_principal,
    union_permissions,
)

logger = get_logger(__name__)


# Service dependencies

def get_app_settings(request: Request) -> Settings:
    """Settings the running application was created with."""
    return request.app.state.settings


async def get_auth_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings)
) -> AuthService:
    return AuthService(UserRepository(db), RoleAssignmentRepository(db), settings)


async def get_assignment_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings)
) -> AssignmentService:
    return AssignmentService(
        assignment_repository=RoleAssignmentRepository(db),
        user_repository=UserRepository(db),
        history_default_limit=settings.role_history_default_limit,
    )


async def get_permission_service(db: AsyncSession = Depends(get_db)) -> PermissionService:
    return PermissionService(RoleAssignmentRepository(db))


async def get_audit_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings)
) -> AuditService:
    """Get audit service instance with injected dependencies."""
    return AuditService(AuditLogRepository(db), enabled=settings.enable_audit_logging)


# Authentication

@dataclass
class AuthContext:
    """Who is calling, and what they hold right now."""

    user_id: int
    user: User
    assignments: List[RoleAssignment]
    claims: Dict[str, Any] = field(default_factory=dict)
    active_role: Optional[RoleName] = None

    @property
    def role_names(self) -> List[RoleName]:
        return [a.role_name for a in self.assignments]

    @property
    def permissions(self) -> FrozenSet[str]:
        return union_permissions(self.role_names)

    @property
    def principal_role(self) -> Optional[RoleDefinition]:
        return select_principal(self.assignments)

    def has_role(self, role: RoleName) -> bool:
        return role in self.role_names


def get_token_from_header(authorization: Optional[str] = Header(None)) -> str:
    """
    Extract Bearer token from Authorization header.

    Raises:
        UnauthenticatedError: If header is missing
        InvalidTokenError: If header is malformed
    """
    if not authorization:
        raise UnauthenticatedError("Authorization header is missing")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise InvalidTokenError("Invalid authorization header format. Expected 'Bearer <token>'")

    return parts[1]


async def get_auth_context(
    request: Request,
    token: str = Depends(get_token_from_header),
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service)
) -> AuthContext:
    """
    Authenticate the request and load the caller's live roles.

    The resulting context is also stored on request.state.auth.

    Raises:
        TokenExpiredError / InvalidTokenError: bad token
        UnauthenticatedError: the token's user is gone or inactive
    """
    claims = auth_service.verify_token(token)
    user_id = int(claims["sub"])

    user = await UserRepository(db).get_by_id(user_id)
    if user is None or not user.is_active:
        raise UnauthenticatedError("User not found or inactive")

    assignments = await RoleAssignmentRepository(db).list_active_for_user(user_id)
    held = [a.role_name for a in assignments]

    active_role = None
    claimed = claims.get("active_role")
    if claimed and role_catalog.is_valid_role(claimed) and RoleName(claimed) in held:
        active_role = RoleName(claimed)

    context = AuthContext(
        user_id=user_id,
        user=user,
        assignments=assignments,
        claims=claims,
        active_role=active_role,
    )
    request.state.auth = context
    bind_request_context(user_id=user_id)
    return context


# Authorization

def _role_values(roles: Sequence) -> List[str]:
    return [RoleName(r).value for r in roles]


def require_roles(*roles: RoleName, allow_hierarchy: bool = False) -> Callable:
    """
    Factory for a dependency that admits callers holding any of roles.

    Args:
        roles: Accepted roles
        allow_hierarchy: Also admit callers holding a role ranked strictly
            above one of the accepted roles

    Returns:
        Dependency returning the AuthContext
    """
    if not roles:
        raise ValueError("require_roles() needs at least one role")
    required = [RoleName(r) for r in roles]

    async def role_checker(
        request: Request,
        context: AuthContext = Depends(get_auth_context)
    ) -> AuthContext:
        held = context.role_names
        granted = any(role in held for role in required)
        if not granted and allow_hierarchy:
            granted = any(
                role_catalog.outranks(h, r) for h in held for r in required
            )

        if not granted:
            logger.warning(
                "access_denied",
                user_id=context.user_id,
                held_roles=_role_values(held),
                required_roles=_role_values(required),
                path=request.url.path,
            )
            raise ForbiddenError(
                "This action requires one of the following roles: " + ", ".join(_role_values(required)),
                required_roles=_role_values(required),
            )
        return context

    return role_checker


def require_permissions(*permissions: str, require_all: bool = False) -> Callable:
    """
    Factory for a dependency that checks effective permissions.

    Args:
        permissions: Permission strings
        require_all: Require every permission instead of any one

    Returns:
        Dependency returning the AuthContext
    """
    if not permissions:
        raise ValueError("require_permissions() needs at least one permission")
    required = list(permissions)

    async def permission_checker(
        request: Request,
        context: AuthContext = Depends(get_auth_context)
    ) -> AuthContext:
        granted_set = context.permissions
        if require_all:
            granted = bool(granted_set) and all(p in granted_set for p in required)
        else:
            granted = any(p in granted_set for p in required)

        if not granted:
            logger.warning(
                "access_denied",
                user_id=context.user_id,
                held_roles=_role_values(context.role_names),
                required_permissions=required,
                require_all=require_all,
                path=request.url.path,
            )
            raise ForbiddenError(
                "Insufficient permissions for this action",
                required_permissions=required,
            )
        return context

    return permission_checker


def require_owner_or_role(
    owner_field: str = "user_id",
    override_roles: Sequence[RoleName] = (RoleName.ADMINISTRATOR,)
) -> Callable:
    """
    Factory for a dependency admitting the resource owner or an override role.

    The owner id is read from the path parameters, then the query string.
    When neither carries owner_field only override roles are admitted.
    """
    overrides = [RoleName(r) for r in override_roles]

    async def owner_checker(
        request: Request,
        context: AuthContext = Depends(get_auth_context)
    ) -> AuthContext:
        if any(context.has_role(role) for role in overrides):
            return context

        owner = request.path_params.get(owner_field)
        if owner is None:
            owner = request.query_params.get(owner_field)

        if owner is not None and str(owner) == str(context.user_id):
            return context

        logger.warning(
            "access_denied",
            user_id=context.user_id,
            owner_field=owner_field,
            owner=owner,
            required_roles=_role_values(overrides),
            path=request.url.path,
        )
        raise ForbiddenError(
            "You can only access your own resources",
            required_roles=_role_values(overrides),
        )

    return owner_checker


# Pre-configured role dependencies
require_administrator = require_roles(RoleName.ADMINISTRATOR)
