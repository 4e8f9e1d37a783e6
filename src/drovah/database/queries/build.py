"""Build query functions for Drovah.

Builds are append-only: there are functions to insert and read build rows
but none to update or delete them.
"""

from __future__ import annotations

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from drovah.database.models.build import (
    DEFAULT_BRANCH,
    Build,
    BuildStatus,
    join_files,
)

logger = structlog.get_logger(__name__)


async def get_latest_build_number(session: AsyncSession, project_id: int) -> int:
    """Return the highest build number for a project, or 0 if it has none."""
    stmt = select(func.max(Build.build_number)).where(Build.project_id == project_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none() or 0


async def get_latest_build(session: AsyncSession, project_id: int) -> Build | None:
    """Return the build with the highest build number for a project."""
    stmt = (
        select(Build)
        .where(Build.project_id == project_id)
        .order_by(Build.build_number.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_build(
    session: AsyncSession,
    project_id: int,
    build_number: int,
) -> Build | None:
    """Return a specific build of a project."""
    stmt = select(Build).where(
        Build.project_id == project_id,
        Build.build_number == build_number,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_recent_builds(
    session: AsyncSession,
    project_id: int,
    limit: int = 10,
) -> list[Build]:
    """Return up to ``limit`` builds of a project, newest first."""
    stmt = (
        select(Build)
        .where(Build.project_id == project_id)
        .order_by(Build.build_number.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_build(
    session: AsyncSession,
    project_id: int,
    build_number: int,
    status: BuildStatus,
    files: list[str],
    branch: str = DEFAULT_BRANCH,
) -> Build:
    """Append a build record.

    Args:
        session: Active async database session.
        project_id: Owning project id.
        build_number: Build number, unique per project.
        status: Build outcome.
        files: Archived file names in order.
        branch: Branch label.

    Returns:
        The newly created Build instance.

    Raises:
        sqlalchemy.exc.IntegrityError: If the build number is already taken.
    """
    build = Build(
        project_id=project_id,
        build_number=build_number,
        branch=branch,
        files=join_files(files),
        status=status,
    )
    session.add(build)
    await session.commit()
    await session.refresh(build)

    logger.info(
        "build_recorded",
        project_id=project_id,
        build_number=build_number,
        status=status.value,
        file_count=len(files),
    )
    return build
