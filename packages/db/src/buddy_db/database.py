# This project was developed with assistance from AI tools.
"""Async engine, session factory, and FastAPI session dependency."""

import logging
from collections.abc import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import db_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all Buddy models."""


engine = create_async_engine(
    db_settings.DATABASE_URL,
    echo=db_settings.SQL_ECHO,
    pool_size=db_settings.DB_POOL_SIZE,
    pool_pre_ping=True,
)

SessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


class DatabaseService:
    """Thin wrapper used by the health endpoint."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def health_check(self) -> bool:
        """Return True when a trivial query round-trips."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.warning("Database health check failed", exc_info=True)
            return False


db_service = DatabaseService(engine=engine)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: yield a session, closed when the request ends."""
    async with SessionLocal() as session:
        yield session


def get_db_service() -> DatabaseService:
    return db_service
