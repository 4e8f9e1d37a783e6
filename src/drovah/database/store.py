"""Build Store interface and its implementations.

The build pipeline only talks to the ``BuildStore`` protocol. Two engines
satisfy it:

- ``SqlBuildStore`` persists projects and builds through SQLAlchemy async
  sessions (PostgreSQL in production, SQLite in tests).
- ``InMemoryBuildStore`` keeps everything in process memory, for tests and
  throwaway instances.

A store handle is constructed explicitly and passed to the orchestrator,
archiver and routes; there is no module-level connection state.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from drovah.database.models.build import DEFAULT_BRANCH, Build, BuildStatus
from drovah.database.queries import build as build_queries
from drovah.database.queries import project as project_queries
from drovah.errors import StoreError
from drovah.logging import get_logger

logger = get_logger(__name__)

SessionFactory = Callable[[], AsyncSession]


@dataclass(frozen=True)
class BuildRecord:
    """Engine-independent view of a persisted build.

    Attributes:
        project_id: Owning project id.
        build_number: Per-project build number.
        status: Build outcome.
        archived_files: Archived file names in order (build log excluded).
        branch: Branch label.
    """

    project_id: int
    build_number: int
    status: BuildStatus
    archived_files: tuple[str, ...] = ()
    branch: str = DEFAULT_BRANCH

    @classmethod
    def from_model(cls, build: Build) -> BuildRecord:
        return cls(
            project_id=build.project_id,
            build_number=build.build_number,
            status=build.status,
            archived_files=tuple(build.archived_files),
            branch=build.branch,
        )


@runtime_checkable
class BuildStore(Protocol):
    """Durable record of projects and their builds."""

    async def get_project_id(self, name: str) -> int | None: ...

    async def get_project_name(self, project_id: int) -> str | None: ...

    async def ensure_project(self, name: str) -> int: ...

    async def list_project_names(self) -> list[str]: ...

    async def get_latest_build_number(self, project_id: int) -> int: ...

    async def get_latest_status(self, project_id: int) -> BuildStatus | None: ...

    async def get_status(self, project_id: int, build_number: int) -> BuildStatus | None: ...

    async def append_build(
        self,
        project_id: int,
        build_number: int,
        status: BuildStatus,
        files: list[str],
    ) -> BuildRecord: ...

    async def get_recent_builds(self, project_id: int, limit: int) -> list[BuildRecord]: ...

    async def ping(self) -> bool: ...


class SqlBuildStore:
    """BuildStore backed by SQLAlchemy async sessions.

    Every operation opens its own session. Database errors are logged and
    re-raised as ``StoreError``.

    Attributes:
        session_factory: Callable returning new AsyncSession instances.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self.session_factory = session_factory
        self._logger = logger.bind(component="SqlBuildStore")

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            self._logger.error(
                "store_operation_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StoreError(f"{operation} failed: {e}") from e

    async def get_project_id(self, name: str) -> int | None:
        async with self._session("get_project_id") as session:
            project = await project_queries.get_project_by_name(session, name)
            return project.id if project is not None else None

    async def get_project_name(self, project_id: int) -> str | None:
        async with self._session("get_project_name") as session:
            project = await project_queries.get_project(session, project_id)
            return project.name if project is not None else None

    async def ensure_project(self, name: str) -> int:
        async with self._session("ensure_project") as session:
            project = await project_queries.create_project(session, name)
            return project.id

    async def list_project_names(self) -> list[str]:
        async with self._session("list_project_names") as session:
            return [p.name for p in await project_queries.list_projects(session)]

    async def get_latest_build_number(self, project_id: int) -> int:
        async with self._session("get_latest_build_number") as session:
            return await build_queries.get_latest_build_number(session, project_id)

    async def get_latest_status(self, project_id: int) -> BuildStatus | None:
        async with self._session("get_latest_status") as session:
            build = await build_queries.get_latest_build(session, project_id)
            return build.status if build is not None else None

    async def get_status(self, project_id: int, build_number: int) -> BuildStatus | None:
        async with self._session("get_status") as session:
            build = await build_queries.get_build(session, project_id, build_number)
            return build.status if build is not None else None

    async def append_build(
        self,
        project_id: int,
        build_number: int,
        status: BuildStatus,
        files: list[str],
    ) -> BuildRecord:
        async with self._session("append_build") as session:
            build = await build_queries.create_build(
                session,
                project_id=project_id,
                build_number=build_number,
                status=status,
                files=files,
            )
            return BuildRecord.from_model(build)

    async def get_recent_builds(self, project_id: int, limit: int) -> list[BuildRecord]:
        async with self._session("get_recent_builds") as session:
            builds = await build_queries.list_recent_builds(session, project_id, limit)
            return [BuildRecord.from_model(b) for b in builds]

    async def ping(self) -> bool:
        async with self._session("ping") as session:
            await session.execute(text("SELECT 1"))
        return True


@dataclass
class InMemoryBuildStore:
    """BuildStore kept entirely in process memory.

    Mirrors the SQL engine's rules: project names are unique and a build
    number can only be used once per project.
    """

    _projects: dict[int, str] = field(default_factory=dict)
    _builds: dict[int, list[BuildRecord]] = field(default_factory=dict)

    async def get_project_id(self, name: str) -> int | None:
        for project_id, project_name in self._projects.items():
            if project_name == name:
                return project_id
        return None

    async def get_project_name(self, project_id: int) -> str | None:
        return self._projects.get(project_id)

    async def ensure_project(self, name: str) -> int:
        project_id = await self.get_project_id(name)
        if project_id is None:
            project_id = len(self._projects) + 1
            self._projects[project_id] = name
            self._builds[project_id] = []
        return project_id

    async def list_project_names(self) -> list[str]:
        return sorted(self._projects.values())

    async def get_latest_build_number(self, project_id: int) -> int:
        builds = self._builds.get(project_id, [])
        return max((b.build_number for b in builds), default=0)

    async def get_latest_status(self, project_id: int) -> BuildStatus | None:
        builds = self._builds.get(project_id, [])
        if not builds:
            return None
        return max(builds, key=lambda b: b.build_number).status

    async def get_status(self, project_id: int, build_number: int) -> BuildStatus | None:
        for build in self._builds.get(project_id, []):
            if build.build_number == build_number:
                return build.status
        return None

    async def append_build(
        self,
        project_id: int,
        build_number: int,
        status: BuildStatus,
        files: list[str],
    ) -> BuildRecord:
        if project_id not in self._projects:
            raise StoreError(f"append_build failed: unknown project id {project_id}")
        if await self.get_status(project_id, build_number) is not None:
            raise StoreError(
                f"append_build failed: build {build_number} already exists "
                f"for project {project_id}"
            )
        record = BuildRecord(
            project_id=project_id,
            build_number=build_number,
            status=status,
            archived_files=tuple(files),
        )
        self._builds[project_id].append(record)
        return record

    async def get_recent_builds(self, project_id: int, limit: int) -> list[BuildRecord]:
        builds = sorted(
            self._builds.get(project_id, []),
            key=lambda b: b.build_number,
            reverse=True,
        )
        return builds[:limit]

    async def ping(self) -> bool:
        return True
