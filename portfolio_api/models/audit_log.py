"""
AuditLog model for tracking authentication and role-management actions.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from portfolio_api.models.base import Base, utcnow
from portfolio_api.models.enums import AuditAction


class AuditLog(Base):
    """
    AuditLog model for audit trail.

    This table is append-only (no updates/deletes) for audit integrity.
    """
    __tablename__ = "audit_logs"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Actor, nullable for system actions and failed logins
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Action details
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, native_enum=False, length=50),
        nullable=False,
        index=True
    )
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)  # e.g. 'user', 'role_assignment'
    entity_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Request context
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)  # IPv4 or IPv6
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    correlation_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    timestamp: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        index=True
    )

    __table_args__ = (
        Index("ix_audit_logs_user_id_timestamp", "user_id", "timestamp"),
        Index("ix_audit_logs_entity_type_entity_id", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action={self.action.value}, entity_type={self.entity_type}, timestamp={self.timestamp})>"
