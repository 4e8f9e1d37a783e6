"""Build orchestration for Drovah.

The BuildOrchestrator turns "project X was pushed" into a durable build
record. A run reads the project's manifest, runs the build commands,
archives artifacts when the manifest asks for it, runs post-archive
commands, and records the outcome in the BuildStore:

- build commands fail: a failing build with no files is recorded
- build passes without an ``[archive]`` section: a passing build with no files
- build passes and archival copies at least one artifact: the Archiver
  records a passing build with the archived names, then post-archive
  commands run and their result is only logged
- archival copies nothing: a failing build with no files is recorded, or
  nothing at all when ``record_failed_archives`` is turned off

Pushes are handled in background tasks. Runs for one project are
serialized by a ProjectLocker so they never share a checkout or a build
number.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from drovah.config import DrovahConfig, PathsConfig, PipelineConfig
from drovah.database.models.build import BuildStatus
from drovah.database.store import BuildStore
from drovah.errors import ConfigurationError, StoreError
from drovah.logging import bind_build_context, get_logger
from drovah.orchestrator.project_locker import ProjectLocker
from drovah.orchestrator.state_machine import BuildRun, BuildState
from drovah.pipeline.archiver import Archiver
from drovah.pipeline.manifest import ArchiveSection, PostArchiveSection, load_manifest
from drovah.pipeline.matcher import ArtifactMatcher
from drovah.pipeline.runner import CommandRunner

logger = get_logger(__name__)


class BuildOrchestrator:
    """Sequences pull, build, archive and post-archive steps for a project.

    Attributes:
        store: Build store receiving build records.
        paths: Filesystem layout.
        pipeline: Pipeline behaviour settings.
        runner: Executes command lists.
        archiver: Copies artifacts and records archived builds.
        locker: Serializes runs per project.
    """

    def __init__(
        self,
        store: BuildStore,
        paths: PathsConfig | None = None,
        pipeline: PipelineConfig | None = None,
        runner: CommandRunner | None = None,
        archiver: Archiver | None = None,
        locker: ProjectLocker | None = None,
    ) -> None:
        self.store = store
        self.paths = paths or PathsConfig()
        self.pipeline = pipeline or PipelineConfig()
        self.runner = runner or CommandRunner()
        self.archiver = archiver or Archiver(
            store,
            projects_root=self.paths.projects_root,
            archive_root=self.paths.archive_root,
            matcher=ArtifactMatcher(sort_entries=self.pipeline.sort_matches),
        )
        self.locker = locker or ProjectLocker()
        self._tasks: set[asyncio.Task[BuildRun | None]] = set()
        self.logger = logger.bind(component="BuildOrchestrator")

    @classmethod
    def from_config(cls, config: DrovahConfig, store: BuildStore) -> BuildOrchestrator:
        return cls(store, paths=config.paths, pipeline=config.pipeline)

    def project_directory(self, project: str) -> Path:
        return self.paths.projects_root / project

    def project_exists(self, project: str) -> bool:
        """True if ``project`` names a directory under the projects root."""
        if not project or project in {".", ".."} or "/" in project or "\\" in project:
            return False
        return self.project_directory(project).is_dir()

    # ------------------------------------------------------------------
    # Background execution
    # ------------------------------------------------------------------

    def submit(self, project: str) -> asyncio.Task[BuildRun | None]:
        """Handle a push for ``project`` in a background task.

        The task is tracked until it finishes; errors inside it are logged
        and never reach the caller.
        """
        task = asyncio.create_task(self.handle_push(project), name=f"drovah-build-{project}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.logger.info("build_submitted", project=project, pending=len(self._tasks))
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait for every submitted build task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def handle_push(self, project: str) -> BuildRun | None:
        """Pull and build ``project`` while holding its lock.

        Returns:
            The finished run, or None if the run was skipped or aborted.
        """
        async with self.locker.hold(project):
            bind_build_context(project)
            try:
                await self.pull(project)
                return await self.run_build(project)
            except ConfigurationError as e:
                self.logger.error("build_configuration_error", project=project, error=str(e))
            except StoreError as e:
                self.logger.error("build_store_error", project=project, error=str(e))
            except Exception as e:
                self.logger.error(
                    "build_crashed",
                    project=project,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
            return None

    async def pull(self, project: str) -> bool:
        """Run the configured pull command in the project directory.

        The result is only logged; a failed pull still builds the current
        checkout. An unset pull command skips this step.
        """
        command = self.pipeline.pull_command.strip()
        if not command:
            return True

        directory = self.project_directory(project)
        if not directory.is_dir():
            return False

        ok = await self.runner.run([command], directory, capture_log=False)
        if ok:
            self.logger.info("project_pulled", project=project)
        else:
            self.logger.warning("project_pull_failed", project=project, command=command)
        return ok

    # ------------------------------------------------------------------
    # Build run
    # ------------------------------------------------------------------

    async def run_build(self, project: str) -> BuildRun | None:
        """Build ``project`` once and record the outcome.

        Returns:
            The finished BuildRun, or None if the project directory does not
            exist.

        Raises:
            ManifestError: If the manifest is missing or malformed.
            CommandNotFoundError: If a build command cannot be spawned.
            StoreError: If the project cannot be registered.
        """
        directory = self.project_directory(project)
        if not directory.is_dir():
            self.logger.warning("project_directory_missing", project=project)
            return None

        manifest = load_manifest(directory / self.pipeline.manifest_name)
        project_id = await self.store.ensure_project(project)

        run = BuildRun(project=project)
        run.advance(BuildState.building)
        self.logger.info(
            "build_started",
            project=project,
            command_count=len(manifest.build.commands),
            archive=manifest.archive is not None,
        )

        passed = await self.runner.run(
            manifest.build.commands,
            directory,
            capture_log=manifest.archive is not None,
        )

        if not passed:
            self.logger.info("build_failed", project=project)
            await self._record(run, project_id, BuildStatus.failing)
            return run

        self.logger.info("build_passed", project=project)

        if manifest.archive is None:
            run.advance(BuildState.archive_skipped)
            await self._record(run, project_id, BuildStatus.passing)
            return run

        run.advance(BuildState.archiving)
        await self._archive(run, project_id, manifest.archive, manifest.postarchive)
        return run

    async def _archive(
        self,
        run: BuildRun,
        project_id: int,
        archive: ArchiveSection,
        postarchive: PostArchiveSection | None,
    ) -> None:
        result = await self.archiver.archive(
            run.project,
            project_id,
            archive.files,
            bool(archive.append_buildnumber),
        )

        if not result.success:
            self.logger.error(
                "archive_failed",
                project=run.project,
                build_number=result.build_number,
            )
            if self.pipeline.record_failed_archives:
                await self._record(run, project_id, BuildStatus.failing)
            else:
                run.finish(None)
            return

        run.archived_files = list(result.files)
        status = result.record.status if result.record is not None else None
        bind_build_context(run.project, result.build_number)

        if postarchive is not None:
            run.advance(BuildState.post_archive)
            run.post_archive_succeeded = await self._post_archive(
                run.project, postarchive.commands
            )

        run.finish(status, result.build_number)

    async def _post_archive(self, project: str, commands: list[str]) -> bool:
        try:
            ok = await self.runner.run(
                commands,
                self.project_directory(project),
                capture_log=False,
            )
        except ConfigurationError as e:
            self.logger.error("post_archive_configuration_error", project=project, error=str(e))
            return False

        if ok:
            self.logger.info("post_archive_succeeded", project=project)
        else:
            self.logger.warning("post_archive_failed", project=project)
        return ok

    async def _record(self, run: BuildRun, project_id: int, status: BuildStatus) -> None:
        """Append a build with no archived files and finish the run."""
        try:
            build_number = await self.store.get_latest_build_number(project_id) + 1
            await self.store.append_build(project_id, build_number, status, [])
        except StoreError as e:
            self.logger.error(
                "build_record_failed",
                project=run.project,
                status=status.value,
                error=str(e),
            )
            run.finish(None)
            return

        bind_build_context(run.project, build_number)
        self.logger.info(
            "build_recorded",
            project=run.project,
            build_number=build_number,
            status=status.value,
        )
        run.finish(status, build_number)
