"""Database session management.

Engines are built from settings on demand so that importing the package never
opens a connection pool; the application lifespan owns their lifecycle.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from school_portal.core.config import Settings


def create_async_db_engine(settings: Settings) -> AsyncEngine:
    """Create asynchronous database engine."""
    return create_async_engine(
        settings.database_url,
        pool_size=10,
        max_overflow=20,
        pool_recycle=1800,
        pool_pre_ping=True,
        echo=settings.debug,
    )


def create_session_factory(engine: AsyncEngine) -> Any:
    """Session factory bound to an engine."""
    return sessionmaker(
        class_=AsyncSession,
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,
    )
