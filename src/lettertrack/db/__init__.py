"""Letter tracking database module.

Database models and migrations:
- SQLAlchemy 2.x ORM models
- Alembic migration configuration
- Connection pooling via psycopg
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from lettertrack.core.config import Settings


def get_database_url(settings: Settings) -> str:
    """Get the database URL for the async driver.

    Args:
        settings: Application settings holding the PostgreSQL DSN.

    Returns:
        PostgreSQL connection URL using the psycopg driver.

    Raises:
        RuntimeError: If no database URL is configured.
    """
    if settings.database.url is None:
        msg = "Database URL is not configured"
        raise RuntimeError(msg)

    url = str(settings.database.url)
    # Ensure we're using the async driver
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    elif url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)
    return url


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create the async engine with the configured pool."""
    return create_async_engine(
        get_database_url(settings),
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
        pool_timeout=settings.database.pool_timeout,
        pool_pre_ping=True,
        echo=settings.database.echo,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory bound to ``engine``.

    Sessions do not expire objects on commit so records can be read after
    the unit of work closes.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
