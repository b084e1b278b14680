"""
Database session configuration.

This module handles database engine creation and session management
using SQLAlchemy with async support for PostgreSQL.
"""

from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from modmarket.app.core.config import settings


def _engine_kwargs() -> dict:
    # SQLite (local runs) rejects pool sizing arguments
    if settings.database_url.startswith("sqlite"):
        return {"echo": settings.db_echo, "future": True}
    return {
        "echo": settings.db_echo,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "future": True,
    }


# Create async engine
engine = create_async_engine(settings.database_url, **_engine_kwargs())

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Create declarative base for models
Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.
    
    Yields an async database session and ensures it's properly closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def unit_of_work(db: AsyncSession):
    """
    Commit everything done inside the block as one transaction.
    
    Any exception rolls the whole session back, so a balance mutation
    and its profit-trail row are persisted together or not at all.
    """
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise
