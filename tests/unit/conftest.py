"""Pytest fixtures for unit tests.

Provides a throwaway projects/archive layout under ``tmp_path`` and a helper
for creating project checkouts with a ``.drovah`` manifest.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from drovah.config import PathsConfig, PipelineConfig
from drovah.database.store import InMemoryBuildStore


@pytest.fixture
def paths(tmp_path: Path) -> PathsConfig:
    """Projects and archive roots inside the test's temporary directory."""
    config = PathsConfig(
        projects_root=tmp_path / "projects",
        archive_root=tmp_path / "archive",
    )
    config.projects_root.mkdir()
    config.archive_root.mkdir()
    return config


@pytest.fixture
def pipeline() -> PipelineConfig:
    """Pipeline settings with the pull step disabled."""
    return PipelineConfig(pull_command="")


@pytest.fixture
def store() -> InMemoryBuildStore:
    return InMemoryBuildStore()


@pytest.fixture
def make_project(paths: PathsConfig) -> Callable[..., Path]:
    """Factory creating a project checkout, optionally with a manifest."""

    def _make(name: str, manifest: str | None = None) -> Path:
        directory = paths.projects_root / name
        directory.mkdir(parents=True)
        if manifest is not None:
            (directory / ".drovah").write_text(manifest, encoding="utf-8")
        return directory

    return _make
