"""
Append-only access to the audit_logs table.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_api.models import AuditAction, AuditLog, utcnow
from portfolio_api.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    """Audit rows are written once and never changed."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, AuditLog)

    async def update(self, id: int, **kwargs) -> Optional[AuditLog]:
        raise NotImplementedError("Audit logs are immutable and cannot be updated")

    async def create_log(
        self,
        user_id: Optional[int],
        action: AuditAction,
        entity_type: str,
        entity_id: Optional[int],
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> AuditLog:
        """Stage one audit row in the caller's transaction."""
        entry = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
            correlation_id=correlation_id,
            timestamp=utcnow()
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_by_entity(
        self,
        entity_type: str,
        entity_id: int,
        action: Optional[AuditAction] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[AuditLog]:
        """
        Trail of one entity, e.g. ("role_assignment", 12) or ("user", 3),
        newest first, optionally narrowed to one action.
        """
        conditions = [AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id]
        if action is not None:
            conditions.append(AuditLog.action == action)

        result = await self.session.execute(
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())
