"""
Database configuration module with async SQLAlchemy engine and session management.

The engine and session factory are owned by a Database object that is
constructed explicitly (by create_app or by a CLI script) and disposed at
shutdown. Request handlers reach it through app.state via get_db().
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator, Dict

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from portfolio_api.core.config import Settings
from portfolio_api.core.logging import get_logger
from portfolio_api.models import Base

logger = get_logger(__name__)


class Database:
    """Connection pool plus session factory for one application instance."""

    def __init__(self, settings: Settings):
        engine_kwargs: Dict[str, Any] = {
            "echo": settings.database_echo,
            "pool_pre_ping": True,  # Verify connections before using them
        }
        if not settings.is_sqlite:
            engine_kwargs.update(
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
                pool_timeout=settings.database_pool_timeout,
                pool_recycle=settings.database_pool_recycle,
            )

        self.engine: AsyncEngine = create_async_engine(settings.database_url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
            autocommit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Open a session outside of FastAPI's request lifecycle.

        Rolls back on error and always closes.

        Usage:
            async with database.session() as session:
                repo = UserRepository(session)
                ...
                await session.commit()
        """
        session = self.session_factory()
        try:
            yield session
        except BaseException:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_all(self) -> None:
        """
        Create all tables.

        NOTE: This is for development and tests only. In production, use Alembic migrations.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def check_connection(self) -> bool:
        """
        Health check function to verify database connectivity.

        Returns:
            bool: True if connection is successful, False otherwise.
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.warning("database_connection_check_failed", error=str(e))
            return False

    async def dispose(self) -> None:
        """Close all pooled connections. Call this during application shutdown."""
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function that yields a request-scoped AsyncSession.

    Example:
        @router.get("/users")
        async def get_users(db: AsyncSession = Depends(get_db)):
            ...
    """
    database: Database = request.app.state.database
    async with database.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
