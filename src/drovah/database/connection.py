"""Database connection management for Drovah.

This module provides factory functions for creating SQLAlchemy async engines
and session factories, configured from the application's DatabaseConfig.

Example usage:
    >>> from drovah.config import DatabaseConfig
    >>> from drovah.database.connection import get_engine, get_session_factory
    >>>
    >>> config = DatabaseConfig(url="postgresql+asyncpg://localhost/drovah")
    >>> engine = get_engine(config)
    >>> SessionFactory = get_session_factory(engine)
    >>>
    >>> async with SessionFactory() as session:
    ...     result = await session.execute(select(Project))
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from drovah.config import DatabaseConfig


def get_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create an async SQLAlchemy engine from database configuration.

    Pool sizing options are only passed to server databases; SQLite
    engines use the dialect's default pool.

    Args:
        config: Database configuration containing URL, pool settings,
                and SQL echo preference.

    Returns:
        Configured AsyncEngine instance.
    """
    options: dict[str, Any] = {"echo": config.echo}
    if make_url(config.url).get_backend_name() != "sqlite":
        options["pool_size"] = config.pool_size
        options["max_overflow"] = config.max_overflow
    return create_async_engine(config.url, **options)


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the given engine.

    Sessions use expire_on_commit=False so attributes stay readable after
    commit without triggering lazy loads.

    Args:
        engine: AsyncEngine to bind sessions to.

    Returns:
        Configured async_sessionmaker that produces AsyncSession instances.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
