"""
Services package for business logic layer.

This package contains service classes that implement authentication,
role assignment and permission resolution for the portfolio system.
"""

from portfolio_api.services.assignment_service import AssignmentService
from portfolio_api.services.audit_service import AuditService
from portfolio_api.services.auth_service import AuthService
from portfolio_api.services.permission_service import PermissionService

__all__ = [
    "AssignmentService",
    "AuditService",
    "AuthService",
    "PermissionService",
]
