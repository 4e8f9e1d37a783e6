"""Build model for Drovah.

Defines the append-only builds table and the BuildStatus enum. Archived
file names are stored as a single text column joined by FILES_SEPARATOR.
"""

from __future__ import annotations

import enum

from sqlalchemy import Enum, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from drovah.database.models.base import Base, TimestampMixin

FILES_SEPARATOR = ", "
DEFAULT_BRANCH = "master"


class BuildStatus(enum.Enum):
    """Outcome of a build.

    States:
        passing: All build commands succeeded.
        failing: At least one build command exited non-zero.
    """

    passing = "passing"
    failing = "failing"


class Build(TimestampMixin, Base):
    """A single immutable build record.

    Attributes:
        id: Integer primary key (from TimestampMixin).
        project_id: Owning project.
        build_number: Per-project build number starting at 1.
        branch: Branch label, always ``master``.
        files: Archived file names joined by FILES_SEPARATOR.
        status: Build outcome.
        created_at: Row creation timestamp (from TimestampMixin).
    """

    __tablename__ = "builds"
    __table_args__ = (
        UniqueConstraint("project_id", "build_number", name="uq_builds_project_number"),
    )

    project_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    build_number: Mapped[int] = mapped_column(Integer, nullable=False)
    branch: Mapped[str] = mapped_column(Text, nullable=False, default=DEFAULT_BRANCH)
    files: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[BuildStatus] = mapped_column(
        Enum(BuildStatus, name="build_status"),
        nullable=False,
    )

    @property
    def archived_files(self) -> list[str]:
        """Archived file names in the order they were recorded."""
        return split_files(self.files)


def join_files(files: list[str]) -> str:
    """Join archived file names for storage."""
    return FILES_SEPARATOR.join(files)


def split_files(files: str) -> list[str]:
    """Split a stored file list, ignoring empty trailing segments."""
    return [name for name in files.split(FILES_SEPARATOR) if name]
