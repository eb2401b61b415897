# backend/eduportal/db/database.py
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from typing import AsyncGenerator

from eduportal.core.config import settings


def build_engine(database_url: str):
    """Create the async engine; pool sizing only applies to server databases"""
    url = database_url.replace("postgresql://", "postgresql+asyncpg://")
    kwargs = {"echo": settings.DEBUG}
    if not url.startswith("sqlite"):
        kwargs.update(pool_size=settings.DB_POOL_SIZE, max_overflow=settings.DB_MAX_OVERFLOW)
    return create_async_engine(url, **kwargs)


# Create async engine
engine = build_engine(settings.DATABASE_URL)

# Create async session factory
async_session_local = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Database session dependency"""
    async with async_session_local() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    """Initialize database (create tables)"""
    from eduportal.db.base import Base

    async with engine.begin() as conn:
        # Import all models to ensure they're registered
        from eduportal.db import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """Close database connections"""
    await engine.dispose()
