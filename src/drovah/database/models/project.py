"""Project model for Drovah.

A project is identified by its unique name, which is also the name of its
checkout directory under the projects root.
"""

from __future__ import annotations

from sqlalchemy import Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from drovah.database.models.base import Base, TimestampMixin


class Project(TimestampMixin, Base):
    """A project known to Drovah.

    Attributes:
        id: Integer primary key (from TimestampMixin).
        name: Unique project name (checkout directory name).
        created_at: Row creation timestamp (from TimestampMixin).
    """

    __tablename__ = "projects"
    __table_args__ = (UniqueConstraint("name", name="uq_projects_name"),)

    name: Mapped[str] = mapped_column(Text, nullable=False)
