"""
UserRepository for User-specific database operations.
"""
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_api.models import User, utcnow
from portfolio_api.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User model with user-specific queries."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, User)

    async def get_by_email(self, email: str) -> Optional[User]:
        """Find user by email, case-insensitively."""
        result = await self.session.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def get_active_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID only if the account is active."""
        result = await self.session.execute(
            select(User).where(User.id == user_id, User.is_active.is_(True))
        )
        return result.scalar_one_or_none()

    async def update_last_access(self, user_id: int) -> None:
        """Update last_access_at timestamp to current time."""
        await self.session.execute(
            update(User)
            .where(User.id == user_id)
            .values(last_access_at=utcnow())
        )
        await self.session.flush()
