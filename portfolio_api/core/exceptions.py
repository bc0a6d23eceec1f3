"""
Custom exception classes for authentication, authorization and role management.

Every exception carries an HTTP status, a human-readable detail and a stable
machine-readable code; app_exception_handler renders them as
{"detail": ..., "code": ..., **extra}.
"""
from typing import Any, Dict, Iterable, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


class AppException(Exception):
    """Base application exception."""

    code = "APP_ERROR"

    def __init__(
        self,
        status_code: int,
        detail: str,
        headers: Optional[Dict[str, str]] = None,
        code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.detail = detail
        self.headers = headers
        if code is not None:
            self.code = code
        self.extra = extra or {}
        super().__init__(detail)


class InvalidCredentialsError(AppException):
    """Unknown email, inactive account or wrong password.

    The three cases are deliberately indistinguishable to the caller.
    """

    code = "INVALID_CREDENTIALS"

    def __init__(self, detail: str = "Invalid email or password"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"}
        )


class UnauthenticatedError(AppException):
    """Missing token, or the token's user no longer exists or is inactive."""

    code = "UNAUTHENTICATED"

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"}
        )


class TokenExpiredError(UnauthenticatedError):
    """Token has expired."""

    code = "TOKEN_EXPIRED"

    def __init__(self, detail: str = "Token has expired"):
        super().__init__(detail)


class InvalidTokenError(UnauthenticatedError):
    """Invalid authentication token."""

    code = "INVALID_TOKEN"

    def __init__(self, detail: str = "Invalid authentication token"):
        super().__init__(detail)


class ForbiddenError(AppException):
    """Authenticated, but the live role/permission set does not satisfy the route."""

    code = "FORBIDDEN"

    def __init__(
        self,
        detail: str = "You do not have access to this resource",
        required_roles: Optional[Iterable[str]] = None,
        required_permissions: Optional[Iterable[str]] = None
    ):
        extra: Dict[str, Any] = {}
        if required_roles:
            extra["requiredRoles"] = list(required_roles)
        if required_permissions:
            extra["requiredPermissions"] = list(required_permissions)
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            extra=extra
        )


class InvalidRoleError(AppException):
    """Role name is not part of the catalog."""

    code = "INVALID_ROLE"

    def __init__(self, role_name: str):
        self.role_name = role_name
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role: {role_name}"
        )


class DuplicateRoleError(AppException):
    """User already holds this role actively."""

    code = "DUPLICATE_ROLE"

    def __init__(self, role_name: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"User already has the active role '{role_name}'"
        )


class RoleNotActiveError(AppException):
    """No active assignment exists for the (user, role) pair."""

    code = "ROLE_NOT_ACTIVE"

    def __init__(self, role_name: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User does not have the active role '{role_name}'"
        )


class RoleNotHeldError(AppException):
    """Requested active role is not among the caller's current roles."""

    code = "ROLE_NOT_HELD"

    def __init__(self, role_name: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"You do not hold the role '{role_name}'"
        )


class SelfRevocationError(AppException):
    """An administrator tried to remove their own administrator role."""

    code = "SELF_REVOCATION"

    def __init__(self, detail: str = "Administrators cannot revoke their own administrator role"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )


class UserNotFoundError(AppException):
    """User not found (or inactive, for role mutations)."""

    code = "USER_NOT_FOUND"

    def __init__(self, detail: str = "User not found or inactive"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail
        )


class AssignmentNotFoundError(AppException):
    """No revoked assignment exists that could be reactivated."""

    code = "ASSIGNMENT_NOT_FOUND"

    def __init__(self, role_name: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No revoked assignment of role '{role_name}' exists for this user"
        )


class RateLimitExceededError(AppException):
    """Too many requests from the same client in the current window."""

    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: int, detail: str = "Too many requests, please try again later"):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            headers={"Retry-After": str(retry_after)}
        )


class DatabaseUnavailableError(AppException):
    """Pool exhausted or database unreachable."""

    code = "DATABASE_UNAVAILABLE"

    def __init__(self, detail: str = "Database temporarily unavailable", retry_after: int = 5):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            headers={"Retry-After": str(retry_after)}
        )


def error_body(detail: Any, code: str, **extra: Any) -> Dict[str, Any]:
    """Build the JSON error envelope shared by every handler."""
    body = {"detail": detail, "code": code}
    body.update(extra)
    return body


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Global exception handler for AppException instances.

    Args:
        request: FastAPI request object
        exc: AppException instance

    Returns:
        JSONResponse with error details
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail, exc.code, **exc.extra),
        headers=exc.headers
    )
