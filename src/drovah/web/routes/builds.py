"""Build information, badge and artifact endpoints for Drovah.

All routes live under ``/api/v1``. Badge and artifact routes answer 404
for unknown projects, builds and files.

Example:
    >>> from fastapi import FastAPI
    >>> from drovah.web.routes.builds import create_builds_router
    >>>
    >>> app = FastAPI()
    >>> app.include_router(create_builds_router())
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi import status as http_status
from fastapi.responses import FileResponse
from pydantic import BaseModel, ConfigDict, Field

from drovah.config import DrovahConfig
from drovah.database.models.build import BuildStatus
from drovah.database.store import BuildRecord, BuildStore
from drovah.logging import get_logger
from drovah.pipeline.matcher import is_within
from drovah.pipeline.runner import BUILD_LOG_NAME
from drovah.web.badges import render_badge

logger = get_logger(__name__)

SVG_MEDIA_TYPE = "image/svg+xml"


class BuildInfo(BaseModel):
    """One build in the projects listing.

    Attributes:
        build_number: Per-project build number
        build_status: "passing" or "failing"
        archived_files: Archived file names in order
    """

    model_config = ConfigDict(populate_by_name=True)

    build_number: int = Field(alias="buildNumber")
    build_status: str = Field(alias="buildStatus")
    archived_files: list[str] = Field(alias="archivedFiles")

    @classmethod
    def from_record(cls, record: BuildRecord) -> BuildInfo:
        return cls(
            build_number=record.build_number,
            build_status=record.status.value,
            archived_files=list(record.archived_files),
        )


class ProjectInfo(BaseModel):
    """A project and its most recent builds, newest first."""

    project: str
    builds: list[BuildInfo]


class ProjectsResponse(BaseModel):
    projects: list[ProjectInfo]


def get_store(request: Request) -> BuildStore:
    """Dependency that retrieves the build store from app state."""
    return request.app.state.store  # type: ignore[no-any-return]


def get_config(request: Request) -> DrovahConfig:
    """Dependency that retrieves the configuration from app state."""
    return request.app.state.config  # type: ignore[no-any-return]


def _project_directories(projects_root: Path) -> list[str]:
    try:
        with os.scandir(projects_root) as entries:
            return sorted(entry.name for entry in entries if entry.is_dir())
    except OSError as e:
        logger.warning("projects_root_unreadable", path=str(projects_root), error=str(e))
        return []


def _badge_response(status: BuildStatus | None) -> Response:
    badge = render_badge(status)
    if badge is None:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail="No build status")
    return Response(
        content=badge,
        media_type=SVG_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache"},
    )


def pick_latest_file(build_dir: Path) -> Path | None:
    """Choose the file served for a project's latest build.

    Returns the first file that is not a ``.log``, the log itself when it
    is the only file, or None for a missing or empty directory.
    """
    try:
        names = sorted(os.listdir(build_dir))
    except OSError:
        return None

    files = [build_dir / name for name in names if (build_dir / name).is_file()]
    for path in files:
        if path.suffix != ".log":
            return path
    return files[-1] if files else None


def create_builds_router() -> APIRouter:
    """Create the build information router.

    Routes:
        GET /api/v1/projects - Projects with their recent builds
        GET /api/v1/{project}/badge - Badge for the latest build
        GET /api/v1/{project}/latest - Main artifact of the latest build
        GET /api/v1/{project}/{build}/badge - Badge for one build
        GET /api/v1/{project}/{build}/{file} - One archived file
    """
    router = APIRouter(prefix="/api/v1", tags=["builds"])

    async def resolve_project(store: BuildStore, project: str) -> int:
        project_id = await store.get_project_id(project)
        if project_id is None:
            raise HTTPException(
                status_code=http_status.HTTP_404_NOT_FOUND,
                detail=f"Project {project} not found",
            )
        return project_id

    @router.get("/projects", response_model=ProjectsResponse, response_model_by_alias=True)
    async def list_projects(
        store: BuildStore = Depends(get_store),  # noqa: B008
        config: DrovahConfig = Depends(get_config),  # noqa: B008
    ) -> dict[str, Any]:
        projects: list[ProjectInfo] = []
        for name in _project_directories(config.paths.projects_root):
            project_id = await store.get_project_id(name)
            if project_id is None:
                continue
            records = await store.get_recent_builds(
                project_id, config.pipeline.recent_builds_limit
            )
            projects.append(
                ProjectInfo(
                    project=name,
                    builds=[BuildInfo.from_record(r) for r in records],
                )
            )

        logger.debug("projects_listed", count=len(projects))
        return {"projects": projects}

    @router.get("/{project}/badge")
    async def latest_badge(
        project: str,
        store: BuildStore = Depends(get_store),  # noqa: B008
    ) -> Response:
        project_id = await resolve_project(store, project)
        return _badge_response(await store.get_latest_status(project_id))

    @router.get("/{project}/latest")
    async def latest_file(
        project: str,
        store: BuildStore = Depends(get_store),  # noqa: B008
        config: DrovahConfig = Depends(get_config),  # noqa: B008
    ) -> FileResponse:
        project_id = await resolve_project(store, project)
        build_number = await store.get_latest_build_number(project_id)

        archive_root = config.paths.archive_root
        build_dir = archive_root / project / str(build_number)
        path = None
        if build_number > 0 and is_within(build_dir, archive_root):
            path = pick_latest_file(build_dir)

        if path is None:
            raise HTTPException(
                status_code=http_status.HTTP_404_NOT_FOUND,
                detail="No archived files",
            )
        return FileResponse(path, filename=path.name)

    @router.get("/{project}/{build}/badge")
    async def build_badge(
        project: str,
        build: int,
        store: BuildStore = Depends(get_store),  # noqa: B008
    ) -> Response:
        project_id = await resolve_project(store, project)
        return _badge_response(await store.get_status(project_id, build))

    @router.get("/{project}/{build}/{file}")
    async def build_file(
        project: str,
        build: int,
        file: str,
        config: DrovahConfig = Depends(get_config),  # noqa: B008
    ) -> FileResponse:
        archive_root = config.paths.archive_root
        path = archive_root / project / str(build) / file

        if not is_within(path, archive_root) or not path.is_file():
            logger.debug("archived_file_missing", project=project, build=build, file=file)
            raise HTTPException(
                status_code=http_status.HTTP_404_NOT_FOUND,
                detail="File not found",
            )

        media_type = "text/plain" if file == BUILD_LOG_NAME else None
        return FileResponse(path, media_type=media_type, filename=path.name)

    return router
