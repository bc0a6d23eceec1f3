"""
FastAPI router for authentication endpoints.
"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_api.core.dependencies import (
    AuthContext,
    get_audit_service,
    get_auth_context,
    get_auth_service,
)
from portfolio_api.core.exceptions import InvalidCredentialsError
from portfolio_api.core.rate_limit import enforce_login_rate_limit, record_failed_login
from portfolio_api.database import get_db
from portfolio_api.models import AuditAction
from portfolio_api.schemas.auth import (
    CurrentUserResponse,
    LoginRequest,
    LoginResponse,
    LoginUser,
    SuccessResponse,
)
from portfolio_api.services.audit_service import AuditService
from portfolio_api.services.auth_service import AuthService


router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(enforce_login_rate_limit)],
    summary="Login with email and password",
    description="Authenticate with institutional email and password. Returns a JWT carrying the user's active roles."
)
async def login(
    login_request: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
    audit_service: AuditService = Depends(get_audit_service)
) -> LoginResponse:
    """Login with email/password."""
    try:
        result = await auth_service.login(login_request.email, login_request.password)
    except InvalidCredentialsError:
        record_failed_login(request)
        await audit_service.log_action(
            user_id=None,
            action=AuditAction.LOGIN_FAILED,
            entity_type="user",
            details={"email": login_request.email},
            request=request
        )
        await db.commit()
        raise

    user = result.user
    role_names = [a.role_name.value for a in result.roles]

    await audit_service.log_action(
        user_id=user.id,
        action=AuditAction.LOGIN,
        entity_type="user",
        entity_id=user.id,
        details={"roles": role_names},
        request=request
    )
    await db.commit()

    return LoginResponse(
        token=result.token,
        token_type="bearer",
        expires_in=result.expires_in,
        user=LoginUser(
            id=user.id,
            name=user.full_name,
            email=user.email,
            roles=role_names,
        ),
    )


@router.get(
    "/me",
    response_model=CurrentUserResponse,
    summary="Get current user",
    description="Profile of the authenticated user with live roles and effective permissions"
)
async def get_me(context: AuthContext = Depends(get_auth_context)) -> CurrentUserResponse:
    user = context.user
    principal = context.principal_role
    return CurrentUserResponse(
        id=user.id,
        name=user.full_name,
        email=user.email,
        is_active=user.is_active,
        last_access_at=user.last_access_at,
        roles=[r.value for r in context.role_names],
        principal_role=principal.name.value if principal else None,
        active_role=context.active_role.value if context.active_role else None,
        permissions=sorted(context.permissions),
    )


@router.post(
    "/logout",
    response_model=SuccessResponse,
    summary="Logout",
    description="Tokens are stateless; the client discards its token. The logout is recorded in the audit log."
)
async def logout(
    request: Request,
    context: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    audit_service: AuditService = Depends(get_audit_service)
) -> SuccessResponse:
    await audit_service.log_action(
        user_id=context.user_id,
        action=AuditAction.LOGOUT,
        entity_type="user",
        entity_id=context.user_id,
        request=request
    )
    await db.commit()
    return SuccessResponse(success=True, message="Logged out")
