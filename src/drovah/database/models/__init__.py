"""SQLAlchemy ORM models for Drovah.

All models use SQLAlchemy 2.0 declarative style with Mapped[] type annotations.
"""

from drovah.database.models.base import Base, TimestampMixin
from drovah.database.models.build import (
    DEFAULT_BRANCH,
    FILES_SEPARATOR,
    Build,
    BuildStatus,
    join_files,
    split_files,
)
from drovah.database.models.project import Project

__all__ = [
    "Base",
    "TimestampMixin",
    "Project",
    "Build",
    "BuildStatus",
    "DEFAULT_BRANCH",
    "FILES_SEPARATOR",
    "join_files",
    "split_files",
]
