"""Artifact archival under per-build numbers.

Archived files live at ``{archive_root}/{project}/{build_number}/{name}``.
The build number is the project's latest stored build number plus one,
computed when archival starts. A captured build log is moved next to the
artifacts as ``build.log``.

Archival uses a partial-success policy. Patterns that match nothing or
reach outside the project checkout (absolute paths, ``..`` or symlinks)
are logged and skipped, as are files that fail to copy. The step succeeds
when at least one artifact was copied. On success a passing build is
recorded with the destination names of the copied artifacts.
"""

from __future__ import annotations

import asyncio
import shutil
from dataclasses import dataclass, field
from pathlib import Path, PurePath

from drovah.database.models.build import BuildStatus
from drovah.database.store import BuildRecord, BuildStore
from drovah.errors import StoreError
from drovah.logging import get_logger
from drovah.pipeline.matcher import ArtifactMatcher, is_within
from drovah.pipeline.runner import BUILD_LOG_NAME

logger = get_logger(__name__)


def build_file_name(file_name: str, build_number: int) -> str:
    """Embed the build number before a file's extension.

    ``project-v2.1.zip`` at build 5 becomes ``project-v2.1-b5.zip``. A name
    without an extension gets the suffix appended.
    """
    suffix = PurePath(file_name).suffix
    if not suffix:
        return f"{file_name}-b{build_number}"
    stem = file_name[: -len(suffix)]
    return f"{stem}-b{build_number}{suffix}"


@dataclass
class ArchiveResult:
    """Outcome of one archive step.

    Attributes:
        success: True if at least one artifact was copied.
        build_number: Number the artifacts were archived under.
        files: Destination names of copied artifacts, in pattern order.
        log_archived: True if the build log was moved into the archive.
        record: The persisted build, None if archival failed or the store
            rejected the write.
    """

    success: bool
    build_number: int
    files: list[str] = field(default_factory=list)
    log_archived: bool = False
    record: BuildRecord | None = None


class Archiver:
    """Copies build artifacts into the numbered archive tree.

    Attributes:
        store: Build store used for numbering and recording builds.
        projects_root: Directory containing project checkouts.
        archive_root: Directory receiving archived artifacts.
        matcher: Resolves manifest patterns to files.
    """

    def __init__(
        self,
        store: BuildStore,
        projects_root: Path,
        archive_root: Path,
        matcher: ArtifactMatcher | None = None,
    ) -> None:
        self.store = store
        self.projects_root = projects_root
        self.archive_root = archive_root
        self.matcher = matcher or ArtifactMatcher()
        self.logger = logger.bind(component="Archiver")

    def build_directory(self, project: str, build_number: int) -> Path:
        return self.archive_root / project / str(build_number)

    async def archive(
        self,
        project: str,
        project_id: int,
        patterns: list[str],
        append_build_number: bool | None = None,
    ) -> ArchiveResult:
        """Archive the artifacts matched by ``patterns``.

        Args:
            project: Project name (directory name).
            project_id: Store id of the project.
            patterns: Manifest file patterns, relative to the project directory.
            append_build_number: Rename artifacts to embed the build number.

        Returns:
            ArchiveResult describing what was copied and recorded.
        """
        build_number = await self.store.get_latest_build_number(project_id) + 1
        result = ArchiveResult(success=False, build_number=build_number)

        project_archive = self.archive_root / project
        try:
            project_archive.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.logger.error(
                "archive_directory_failed",
                project=project,
                path=str(project_archive),
                error=str(e),
            )
            return result

        build_dir = self.build_directory(project, build_number)
        result.log_archived = await self._archive_log(project, build_dir)

        project_dir = self.projects_root / project
        for pattern in patterns:
            if PurePath(pattern).is_absolute():
                self.logger.warning("artifact_pattern_rejected", project=project, pattern=pattern)
                continue

            matched = self.matcher.match(project_dir / pattern)
            if matched is None:
                self.logger.warning("artifact_not_found", project=project, pattern=pattern)
                continue
            if not is_within(matched, project_dir):
                self.logger.warning(
                    "artifact_pattern_rejected",
                    project=project,
                    pattern=pattern,
                    resolved=str(matched.resolve()),
                )
                continue

            if append_build_number:
                destination_name = build_file_name(matched.name, build_number)
            else:
                destination_name = matched.name

            if await self._copy(matched, build_dir / destination_name):
                result.files.append(destination_name)

        result.success = bool(result.files)
        if not result.success:
            self.logger.warning(
                "archive_empty",
                project=project,
                build_number=build_number,
                pattern_count=len(patterns),
            )
            return result

        try:
            result.record = await self.store.append_build(
                project_id,
                build_number,
                BuildStatus.passing,
                list(result.files),
            )
        except StoreError as e:
            self.logger.error(
                "build_record_failed",
                project=project,
                build_number=build_number,
                error=str(e),
            )

        self.logger.info(
            "archive_completed",
            project=project,
            build_number=build_number,
            files=result.files,
            log_archived=result.log_archived,
        )
        return result

    async def _archive_log(self, project: str, build_dir: Path) -> bool:
        source = self.projects_root / project / BUILD_LOG_NAME
        if not source.is_file():
            self.logger.debug("build_log_absent", project=project)
            return False

        if not await self._copy(source, build_dir / BUILD_LOG_NAME):
            return False

        try:
            source.unlink()
        except OSError as e:
            self.logger.error("build_log_delete_failed", project=project, error=str(e))
        return True

    async def _copy(self, source: Path, destination: Path) -> bool:
        """Copy a file, creating parent directories. Failures are logged."""
        try:
            await asyncio.to_thread(_copy_file, source, destination)
        except OSError as e:
            self.logger.error(
                "archive_copy_failed",
                source=str(source),
                destination=str(destination),
                error=str(e),
            )
            return False

        self.logger.debug("archive_copied", source=str(source), destination=str(destination))
        return True


def _copy_file(source: Path, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy(source, destination)
