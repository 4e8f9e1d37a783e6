"""Unit tests for the build run state machine."""

from __future__ import annotations

import pytest

from drovah.database.models.build import BuildStatus
from drovah.orchestrator.state_machine import (
    VALID_TRANSITIONS,
    BuildRun,
    BuildState,
    InvalidTransitionError,
    validate_transition,
)


class TestValidTransitions:
    """Test the VALID_TRANSITIONS mapping and validation."""

    def test_every_state_has_an_entry(self) -> None:
        assert set(VALID_TRANSITIONS) == set(BuildState)

    def test_done_is_terminal(self) -> None:
        assert VALID_TRANSITIONS[BuildState.done] == set()

    @pytest.mark.parametrize(
        "current,target,expected",
        [
            (BuildState.idle, BuildState.building, True),
            (BuildState.building, BuildState.archive_skipped, True),
            (BuildState.building, BuildState.archiving, True),
            (BuildState.building, BuildState.done, True),
            (BuildState.archive_skipped, BuildState.done, True),
            (BuildState.archiving, BuildState.post_archive, True),
            (BuildState.archiving, BuildState.done, True),
            (BuildState.post_archive, BuildState.done, True),
            (BuildState.idle, BuildState.done, False),
            (BuildState.idle, BuildState.archiving, False),
            (BuildState.building, BuildState.post_archive, False),
            (BuildState.archive_skipped, BuildState.post_archive, False),
            (BuildState.done, BuildState.idle, False),
            (BuildState.done, BuildState.building, False),
        ],
    )
    def test_validate_transition(
        self, current: BuildState, target: BuildState, expected: bool
    ) -> None:
        assert validate_transition(current, target) is expected


class TestInvalidTransitionError:
    def test_error_without_project(self) -> None:
        error = InvalidTransitionError(BuildState.idle, BuildState.done)
        assert "idle" in str(error)
        assert "done" in str(error)
        assert error.current == BuildState.idle
        assert error.target == BuildState.done
        assert error.project is None

    def test_error_with_project(self) -> None:
        error = InvalidTransitionError(BuildState.done, BuildState.building, "biomebot")
        assert "biomebot" in str(error)
        assert error.project == "biomebot"


class TestBuildRun:
    def test_new_run_is_idle(self) -> None:
        run = BuildRun(project="app")
        assert run.state == BuildState.idle
        assert run.status is None
        assert run.recorded is False
        assert run.history == [BuildState.idle]

    def test_archive_path(self) -> None:
        run = BuildRun(project="app")
        run.advance(BuildState.building)
        run.advance(BuildState.archiving)
        run.advance(BuildState.post_archive)
        run.finish(BuildStatus.passing, 3)

        assert run.state == BuildState.done
        assert run.status is BuildStatus.passing
        assert run.build_number == 3
        assert run.recorded is True
        assert run.history == [
            BuildState.idle,
            BuildState.building,
            BuildState.archiving,
            BuildState.post_archive,
            BuildState.done,
        ]

    def test_finish_without_status(self) -> None:
        run = BuildRun(project="app")
        run.advance(BuildState.building)
        run.advance(BuildState.archiving)
        run.finish(None)

        assert run.state == BuildState.done
        assert run.recorded is False
        assert run.build_number is None

    def test_invalid_advance_raises(self) -> None:
        run = BuildRun(project="app")
        with pytest.raises(InvalidTransitionError):
            run.advance(BuildState.post_archive)
        assert run.state == BuildState.idle

    def test_cannot_finish_twice(self) -> None:
        run = BuildRun(project="app")
        run.advance(BuildState.building)
        run.finish(BuildStatus.failing, 1)
        with pytest.raises(InvalidTransitionError):
            run.finish(BuildStatus.passing, 2)
