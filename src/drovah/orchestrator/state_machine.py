"""Build run state machine for the Drovah orchestrator.

A build run moves through:

    idle -> building -> archive_skipped -> done
                     -> archiving -> post_archive -> done
                                  -> done
                     -> done                         (build failed)

The terminal outcome of a run is a BuildStatus (passing or failing) or no
status at all when archival failed and nothing was recorded.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

import structlog

from drovah.database.models.build import BuildStatus

logger = structlog.get_logger(__name__)


class BuildState(enum.Enum):
    """Stage of a single build run."""

    idle = "idle"
    building = "building"
    archive_skipped = "archive_skipped"
    archiving = "archiving"
    post_archive = "post_archive"
    done = "done"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted.

    Attributes:
        current: The current run state.
        target: The attempted target state.
        project: The project whose run failed to transition.
    """

    def __init__(self, current: BuildState, target: BuildState, project: str | None = None):
        self.current = current
        self.target = target
        self.project = project
        msg = f"Invalid transition from {current.value} to {target.value}"
        if project:
            msg += f" for project {project}"
        super().__init__(msg)


VALID_TRANSITIONS: dict[BuildState, set[BuildState]] = {
    BuildState.idle: {BuildState.building},
    BuildState.building: {BuildState.archive_skipped, BuildState.archiving, BuildState.done},
    BuildState.archive_skipped: {BuildState.done},
    BuildState.archiving: {BuildState.post_archive, BuildState.done},
    BuildState.post_archive: {BuildState.done},
    BuildState.done: set(),
}


def validate_transition(current: BuildState, target: BuildState) -> bool:
    """Return True if ``current -> target`` is allowed."""
    return target in VALID_TRANSITIONS.get(current, set())


@dataclass
class BuildRun:
    """Progress and outcome of one orchestration run.

    Attributes:
        project: Project name.
        state: Current stage.
        status: Recorded outcome, None until a build has been recorded.
        build_number: Build number of the recorded build.
        archived_files: Destination names of archived artifacts.
        post_archive_succeeded: Result of post-archive commands, None if
            they did not run.
        history: States visited, in order.
    """

    project: str
    state: BuildState = BuildState.idle
    status: BuildStatus | None = None
    build_number: int | None = None
    archived_files: list[str] = field(default_factory=list)
    post_archive_succeeded: bool | None = None
    history: list[BuildState] = field(default_factory=lambda: [BuildState.idle])

    @property
    def recorded(self) -> bool:
        return self.status is not None

    def advance(self, target: BuildState) -> None:
        """Move to ``target``.

        Raises:
            InvalidTransitionError: If the transition is not valid.
        """
        if not validate_transition(self.state, target):
            raise InvalidTransitionError(self.state, target, self.project)

        logger.debug(
            "build_transition",
            project=self.project,
            from_state=self.state.value,
            to_state=target.value,
        )
        self.state = target
        self.history.append(target)

    def finish(self, status: BuildStatus | None, build_number: int | None = None) -> None:
        """Record the outcome and move to ``done``."""
        self.status = status
        if build_number is not None:
            self.build_number = build_number
        self.advance(BuildState.done)
