"""
Repositories package for data access layer.

This module exports all repository classes for easy importing
throughout the application.
"""
from portfolio_api.repositories.base import BaseRepository
from portfolio_api.repositories.user_repository import UserRepository
from portfolio_api.repositories.role_assignment_repository import RoleAssignmentRepository
from portfolio_api.repositories.audit_log_repository import AuditLogRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "RoleAssignmentRepository",
    "AuditLogRepository",
]
