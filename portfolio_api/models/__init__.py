"""
Models package for database entities.

This module exports all SQLAlchemy models and enums for easy importing
throughout the application.
"""
from portfolio_api.models.base import Base, TimestampMixin, utcnow
from portfolio_api.models.enums import AuditAction, RoleName
from portfolio_api.models.user import User
from portfolio_api.models.role_assignment import RoleAssignment
from portfolio_api.models.audit_log import AuditLog

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    "utcnow",

    # Enums
    "AuditAction",
    "RoleName",

    # Models
    "User",
    "RoleAssignment",
    "AuditLog",
]
