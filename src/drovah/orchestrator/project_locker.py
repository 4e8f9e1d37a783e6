"""Per-project mutual exclusion for build runs.

Two overlapping pushes to the same project would otherwise run commands in
the same checkout at once and compute the same next build number. The
ProjectLocker hands out one asyncio lock per project name; a build run holds
it from the pull until its record is written. Runs for different projects
do not contend.

Example:
    >>> locker = ProjectLocker()
    >>> async with locker.hold("biomebot"):
    ...     await orchestrator.run_build("biomebot")
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog

logger = structlog.get_logger(__name__)


class ProjectLocker:
    """Named asyncio locks keyed by project name.

    Locks are created on first use and dropped once nobody holds or waits
    for them.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}
        self._logger = logger.bind(component="ProjectLocker")

    def is_locked(self, project: str) -> bool:
        lock = self._locks.get(project)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, project: str) -> AsyncIterator[None]:
        """Hold the lock for ``project`` for the duration of the block.

        The lock is released on every exit path, including exceptions and
        cancellation.
        """
        lock = self._locks.setdefault(project, asyncio.Lock())
        self._waiters[project] = self._waiters.get(project, 0) + 1

        if lock.locked():
            self._logger.info("project_lock_waiting", project=project)

        try:
            async with lock:
                self._logger.debug("project_lock_acquired", project=project)
                yield
        finally:
            self._waiters[project] -= 1
            if self._waiters[project] == 0:
                del self._waiters[project]
                del self._locks[project]
            self._logger.debug("project_lock_released", project=project)
