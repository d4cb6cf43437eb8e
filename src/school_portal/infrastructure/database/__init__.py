"""Database engine and session factories."""

from school_portal.infrastructure.database.session import (
    create_async_db_engine,
    create_session_factory,
)

__all__ = ["create_async_db_engine", "create_session_factory"]
