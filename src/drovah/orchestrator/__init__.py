"""Build orchestration for Drovah.

This module sequences build runs, tracks their state and serializes runs
per project.
"""

from drovah.orchestrator.builder import BuildOrchestrator
from drovah.orchestrator.project_locker import ProjectLocker
from drovah.orchestrator.state_machine import (
    VALID_TRANSITIONS,
    BuildRun,
    BuildState,
    InvalidTransitionError,
    validate_transition,
)

__all__ = [
    "BuildOrchestrator",
    "BuildRun",
    "BuildState",
    "InvalidTransitionError",
    "ProjectLocker",
    "VALID_TRANSITIONS",
    "validate_transition",
]
