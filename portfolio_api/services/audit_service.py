"""
Centralized AuditService for standardized audit logging across the application.

This service wraps the AuditLogRepository and provides high-level methods
for logging authentication and role-management actions with automatic
request context extraction.
"""

from typing import Any, Dict, List, Optional

from fastapi import Request

from portfolio_api.core.audit_utils import get_client_ip, get_correlation_id, get_user_agent
from portfolio_api.core.logging import get_logger
from portfolio_api.models import AuditAction, AuditLog, RoleAssignment
from portfolio_api.repositories.audit_log_repository import AuditLogRepository

logger = get_logger(__name__)


class AuditService:
    """
    Service for centralized audit logging with automatic context extraction.

    When persistence is disabled (ENABLE_AUDIT_LOGGING=false) actions are
    still emitted as structured log events, but no row is written.
    """

    def __init__(self, repository: AuditLogRepository, enabled: bool = True):
        """
        Initialize AuditService with repository dependency.

        Args:
            repository: AuditLogRepository instance for database operations
            enabled: Whether audit rows are persisted
        """
        self.repository = repository
        self.enabled = enabled

    async def log_action(
        self,
        user_id: Optional[int],
        action: AuditAction,
        entity_type: str,
        entity_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        request: Optional[Request] = None,
    ) -> Optional[AuditLog]:
        """
        Log an audit action with automatic context extraction from request.

        Args:
            user_id: ID of the user performing the action (None for system actions)
            action: AuditAction enum value
            entity_type: Type of entity being acted upon (e.g., "user", "role_assignment")
            entity_id: ID of the specific entity (optional)
            details: Additional context as dictionary (optional)
            request: FastAPI Request object for automatic context extraction (optional)

        Returns:
            Created AuditLog object, or None when persistence is disabled

        Example:
            await audit_service.log_action(
                user_id=admin.id,
                action=AuditAction.ROLE_ASSIGNED,
                entity_type="role_assignment",
                entity_id=assignment.id,
                details={"role": "verifier"},
                request=request
            )
        """
        ip_address = get_client_ip(request) if request else None
        user_agent = get_user_agent(request) if request else None
        correlation_id = get_correlation_id(request) if request else None

        audit_log = None
        if self.enabled:
            audit_log = await self.repository.create_log(
                user_id=user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                details=details,
                ip_address=ip_address,
                user_agent=user_agent,
                correlation_id=correlation_id,
            )

        logger.info(
            f"audit_action_{action.value.lower()}",
            user_id=user_id,
            action=action.value,
            entity_type=entity_type,
            entity_id=entity_id,
            ip_address=ip_address,
            correlation_id=correlation_id,
            audit_log_id=audit_log.id if audit_log else None,
        )

        return audit_log

    async def log_role_change(
        self,
        actor_id: int,
        action: AuditAction,
        assignment: RoleAssignment,
        reason: Optional[str] = None,
        request: Optional[Request] = None,
    ) -> Optional[AuditLog]:
        """Log an assign/revoke/reactivate of a single assignment."""
        details: Dict[str, Any] = {
            "target_user_id": assignment.user_id,
            "role": assignment.role_name.value,
        }
        if reason:
            details["reason"] = reason
        return await self.log_action(
            user_id=actor_id,
            action=action,
            entity_type="role_assignment",
            entity_id=assignment.id,
            details=details,
            request=request,
        )

    async def role_switch_history(self, user_id: int, limit: int = 50) -> List[AuditLog]:
        """ROLE_SWITCHED rows recorded for user_id, newest first."""
        return await self.repository.get_by_entity(
            "user", user_id, action=AuditAction.ROLE_SWITCHED, limit=limit
        )
