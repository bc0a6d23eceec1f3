"""
RoleAssignment model: one row per grant of a catalog role to a user.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portfolio_api.models.base import Base, utcnow
from portfolio_api.models.enums import RoleName


class RoleAssignment(Base):
    """
    Grant of a role to a user.

    Rows are never deleted. Revocation flips active to False and stamps
    revoked_at/revoked_by; reassigning after a revocation inserts a new row.
    At most one row per (user_id, role_name) may be active, which the
    partial unique index uq_role_assignments_active enforces at the
    database level.
    """
    __tablename__ = "role_assignments"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Foreign keys
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    role_name: Mapped[RoleName] = mapped_column(
        Enum(RoleName, native_enum=False, length=50, values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )

    # Lifecycle
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    assigned_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    revoked_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Append-only free text: assignment notes followed by revocation lines
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    user: Mapped["User"] = relationship(
        "User",
        foreign_keys=[user_id],
        back_populates="role_assignments",
        lazy="select"
    )

    __table_args__ = (
        Index(
            "uq_role_assignments_active",
            "user_id",
            "role_name",
            unique=True,
            postgresql_where=text("active"),
            sqlite_where=text("active = 1"),
        ),
        Index("ix_role_assignments_user_id", "user_id"),
        Index("ix_role_assignments_role_name_active", "role_name", "active"),
    )

    def append_note(self, line: str) -> None:
        self.notes = f"{self.notes}\n{line}" if self.notes else line

    def __repr__(self) -> str:
        return (
            f"<RoleAssignment(id={self.id}, user_id={self.user_id}, "
            f"role_name={self.role_name.value}, active={self.active})>"
        )
