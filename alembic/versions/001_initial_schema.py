"""Initial schema for Drovah.

Creates the projects and builds tables and the build_status enum.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    build_status = sa.Enum("passing", "failing", name="build_status")

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("name", name="uq_projects_name"),
    )

    op.create_table(
        "builds",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "project_id",
            sa.Integer(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("build_number", sa.Integer(), nullable=False),
        sa.Column("branch", sa.Text(), nullable=False, server_default="master"),
        sa.Column("files", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", build_status, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("project_id", "build_number", name="uq_builds_project_number"),
    )
    op.create_index("ix_builds_project_id", "builds", ["project_id"])


def downgrade() -> None:
    op.drop_index("ix_builds_project_id", table_name="builds")
    op.drop_table("builds")
    op.drop_table("projects")

    sa.Enum(name="build_status").drop(op.get_bind(), checkfirst=True)
