"""Database layer for Drovah.

This module handles database connections, session management, the ORM
schema and the BuildStore abstraction the build pipeline depends on.

Public API:
    get_engine: Create an AsyncEngine from DatabaseConfig.
    get_session_factory: Create an async_sessionmaker from an engine.
    BuildStore: Protocol implemented by every store engine.
"""

from drovah.database.connection import get_engine, get_session_factory
from drovah.database.models import Base, Build, BuildStatus, Project, TimestampMixin
from drovah.database.store import (
    BuildRecord,
    BuildStore,
    InMemoryBuildStore,
    SqlBuildStore,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "Base",
    "TimestampMixin",
    "Project",
    "Build",
    "BuildStatus",
    "BuildRecord",
    "BuildStore",
    "InMemoryBuildStore",
    "SqlBuildStore",
]
