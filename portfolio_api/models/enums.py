"""
Enum definitions for database models.

This module defines Python enums for status and type fields to ensure
type safety and consistency across the application.
"""
from enum import Enum


class RoleName(str, Enum):
    """Closed set of roles a user can hold.

    The values are what gets persisted in role_assignments.role_name and
    what appears in token claims.
    """
    TEACHER = "teacher"
    VERIFIER = "verifier"
    ADMINISTRATOR = "administrator"


class AuditAction(str, Enum):
    """Action values for AuditLog entity."""
    LOGIN = "LOGIN"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    USER_CREATED = "USER_CREATED"
    ROLE_ASSIGNED = "ROLE_ASSIGNED"
    ROLE_REVOKED = "ROLE_REVOKED"
    ROLE_REACTIVATED = "ROLE_REACTIVATED"
    ROLES_SYNCED = "ROLES_SYNCED"
    ROLE_SWITCHED = "ROLE_SWITCHED"
