"""
Base repository shared by the model repositories.

Repositories flush but never commit; the caller (a request handler or a
CLI command) owns the transaction. There is no delete: users, role
assignments and audit rows are all retained for traceability.
"""
from typing import Generic, Optional, Type, TypeVar

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from portfolio_api.models.base import Base


ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Primary-key lookup, insert and in-place update for one model."""

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """
        Args:
            session: SQLAlchemy async session
            model: SQLAlchemy model class with an integer ``id`` primary key
        """
        self.session = session
        self.model = model

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs) -> ModelType:
        """
        Insert a row and return it with server-generated values loaded.

        Raises:
            sqlalchemy.exc.IntegrityError: a constraint or unique index rejected the row
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def update(self, id: int, **kwargs) -> Optional[ModelType]:
        """
        Update columns of the row with primary key id.

        Returns:
            The refreshed instance, or None if no such row exists
        """
        await self.session.execute(
            update(self.model)
            .where(self.model.id == id)
            .values(**kwargs)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.flush()
        instance = await self.get_by_id(id)
        if instance is not None:
            await self.session.refresh(instance)
        return instance
