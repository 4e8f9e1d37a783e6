"""Project query functions for Drovah.

Provides async functions for registering and looking up Project records
using SQLAlchemy 2.0 select() API.
"""

from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from drovah.database.models.project import Project

logger = structlog.get_logger(__name__)


async def get_project_by_name(session: AsyncSession, name: str) -> Project | None:
    """Retrieve a project by its unique name.

    Args:
        session: Active async database session.
        name: Project name.

    Returns:
        The Project instance if found, None otherwise.
    """
    stmt = select(Project).where(Project.name == name).limit(1)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_project(session: AsyncSession, project_id: int) -> Project | None:
    """Retrieve a project by ID.

    Args:
        session: Active async database session.
        project_id: Integer id of the project.

    Returns:
        The Project instance if found, None otherwise.
    """
    stmt = select(Project).where(Project.id == project_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_projects(session: AsyncSession) -> list[Project]:
    """List all registered projects ordered by name."""
    stmt = select(Project).order_by(Project.name)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_project(session: AsyncSession, name: str) -> Project:
    """Register a project, returning the existing row if one already exists.

    Args:
        session: Active async database session.
        name: Project name.

    Returns:
        The new or existing Project instance.
    """
    existing = await get_project_by_name(session, name)
    if existing is not None:
        return existing

    project = Project(name=name)
    session.add(project)
    try:
        await session.commit()
    except IntegrityError:
        # Registered concurrently by another session
        await session.rollback()
        existing = await get_project_by_name(session, name)
        if existing is None:
            raise
        return existing

    await session.refresh(project)
    logger.info("project_created", project_id=project.id, name=name)
    return project
