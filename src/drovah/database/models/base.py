"""SQLAlchemy declarative base and common column mixins for Drovah.

Drovah records are append-only, so the shared mixin only carries an
integer primary key and a creation timestamp.

Example:
    >>> class MyModel(TimestampMixin, Base):
    ...     __tablename__ = "my_table"
    ...     name: Mapped[str] = mapped_column(Text, nullable=False)
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy 2.0 declarative base for all Drovah models."""

    pass


class TimestampMixin:
    """Mixin providing an integer id and created_at column.

    Attributes:
        id: Autoincrementing integer primary key.
        created_at: Timestamp set by the database on row creation.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
