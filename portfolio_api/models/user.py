"""
User model representing faculty accounts with authentication and profile information.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portfolio_api.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """
    User account.

    Roles are not stored on the user; they live in role_assignments so that
    every grant and revocation keeps its own audit trail.
    """
    __tablename__ = "users"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Authentication fields
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile fields
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Login tracking
    last_access_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    role_assignments: Mapped[List["RoleAssignment"]] = relationship(
        "RoleAssignment",
        foreign_keys="RoleAssignment.user_id",
        back_populates="user",
        lazy="select"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
