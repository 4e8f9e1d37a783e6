"""Unit tests for artifact archival.

Tests cover:
- Build-number file renaming
- Copying matched artifacts into numbered build directories
- Moving the captured build log
- Partial success and empty archives
- Build records written on success
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from drovah.config import PathsConfig
from drovah.database.models.build import BuildStatus
from drovah.database.store import InMemoryBuildStore
from drovah.pipeline.archiver import Archiver, build_file_name


@pytest.mark.parametrize(
    "name,number,expected",
    [
        ("project-v2.1.zip", 5, "project-v2.1-b5.zip"),
        ("app.jar", 1, "app-b1.jar"),
        ("release.tar.gz", 12, "release.tar-b12.gz"),
        ("binary", 3, "binary-b3"),
    ],
)
def test_build_file_name(name: str, number: int, expected: str) -> None:
    assert build_file_name(name, number) == expected


@pytest.fixture
def archiver(store: InMemoryBuildStore, paths: PathsConfig) -> Archiver:
    return Archiver(store, projects_root=paths.projects_root, archive_root=paths.archive_root)


async def _seed_builds(store: InMemoryBuildStore, project: str, count: int) -> int:
    project_id = await store.ensure_project(project)
    for number in range(1, count + 1):
        await store.append_build(project_id, number, BuildStatus.passing, [])
    return project_id


@pytest.mark.asyncio
async def test_archive_renames_with_next_build_number(
    archiver: Archiver,
    store: InMemoryBuildStore,
    paths: PathsConfig,
    make_project: Callable[..., Path],
) -> None:
    project_dir = make_project("biomebot")
    (project_dir / "project-v2.1.zip").write_bytes(b"artifact")
    project_id = await _seed_builds(store, "biomebot", 4)

    result = await archiver.archive("biomebot", project_id, ["project-"], append_build_number=True)

    assert result.success is True
    assert result.build_number == 5
    assert result.files == ["project-v2.1-b5.zip"]
    archived = paths.archive_root / "biomebot" / "5" / "project-v2.1-b5.zip"
    assert archived.read_bytes() == b"artifact"
    assert (project_dir / "project-v2.1.zip").exists()

    assert result.record is not None
    assert result.record.status is BuildStatus.passing
    assert result.record.archived_files == ("project-v2.1-b5.zip",)
    assert await store.get_latest_build_number(project_id) == 5


@pytest.mark.asyncio
async def test_archive_keeps_names_without_append(
    archiver: Archiver,
    store: InMemoryBuildStore,
    paths: PathsConfig,
    make_project: Callable[..., Path],
) -> None:
    project_dir = make_project("app")
    (project_dir / "target").mkdir()
    (project_dir / "target" / "app.jar").write_bytes(b"jar")
    (project_dir / "README.md").write_text("docs")
    project_id = await store.ensure_project("app")

    result = await archiver.archive("app", project_id, ["target/app.jar", "README"], False)

    assert result.files == ["app.jar", "README.md"]
    build_dir = archiver.build_directory("app", 1)
    assert build_dir == paths.archive_root / "app" / "1"
    assert (build_dir / "app.jar").is_file()
    assert (build_dir / "README.md").is_file()


@pytest.mark.asyncio
async def test_build_log_is_moved_but_not_recorded(
    archiver: Archiver,
    store: InMemoryBuildStore,
    make_project: Callable[..., Path],
) -> None:
    project_dir = make_project("app")
    (project_dir / "build.log").write_text("compiling\n")
    (project_dir / "app.bin").write_bytes(b"\x00")
    project_id = await store.ensure_project("app")

    result = await archiver.archive("app", project_id, ["app.bin"])

    assert result.log_archived is True
    assert not (project_dir / "build.log").exists()
    assert (archiver.build_directory("app", 1) / "build.log").read_text() == "compiling\n"
    assert result.files == ["app.bin"]


@pytest.mark.asyncio
async def test_unmatched_patterns_are_skipped(
    archiver: Archiver,
    store: InMemoryBuildStore,
    make_project: Callable[..., Path],
) -> None:
    project_dir = make_project("app")
    (project_dir / "present.txt").write_text("here")
    project_id = await store.ensure_project("app")

    result = await archiver.archive("app", project_id, ["missing-", "present"])

    assert result.success is True
    assert result.files == ["present.txt"]


@pytest.mark.asyncio
async def test_nothing_copied_records_nothing(
    archiver: Archiver,
    store: InMemoryBuildStore,
    make_project: Callable[..., Path],
) -> None:
    project_dir = make_project("app")
    (project_dir / "build.log").write_text("output\n")
    project_id = await store.ensure_project("app")

    result = await archiver.archive("app", project_id, ["nothing-"])

    assert result.success is False
    assert result.files == []
    assert result.record is None
    assert result.log_archived is True
    assert await store.get_latest_build_number(project_id) == 0


@pytest.mark.asyncio
async def test_archive_directory_failure_fails_step(
    store: InMemoryBuildStore,
    paths: PathsConfig,
    tmp_path: Path,
    make_project: Callable[..., Path],
) -> None:
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("file")
    archiver = Archiver(store, projects_root=paths.projects_root, archive_root=blocker)
    project_dir = make_project("app")
    (project_dir / "app.bin").write_bytes(b"\x00")
    project_id = await store.ensure_project("app")

    result = await archiver.archive("app", project_id, ["app.bin"])

    assert result.success is False
    assert await store.get_latest_build_number(project_id) == 0


@pytest.mark.asyncio
async def test_store_rejection_keeps_copied_files(
    archiver: Archiver,
    store: InMemoryBuildStore,
    make_project: Callable[..., Path],
) -> None:
    project_dir = make_project("app")
    (project_dir / "app.bin").write_bytes(b"\x00")

    # Unknown project id: the store refuses the record
    result = await archiver.archive("app", 99, ["app.bin"])

    assert result.success is True
    assert result.record is None
    assert (archiver.build_directory("app", 1) / "app.bin").is_file()


@pytest.mark.asyncio
async def test_patterns_outside_project_are_skipped(
    archiver: Archiver,
    store: InMemoryBuildStore,
    tmp_path: Path,
    make_project: Callable[..., Path],
) -> None:
    secret = tmp_path / "secret.txt"
    secret.write_text("do not archive")
    project_dir = make_project("app")
    (project_dir / "app.bin").write_bytes(b"\x00")
    (project_dir / "linked.txt").symlink_to(secret)
    project_id = await store.ensure_project("app")

    result = await archiver.archive(
        "app",
        project_id,
        [str(secret), "../../secret.txt", "linked", "app.bin"],
    )

    assert result.files == ["app.bin"]
    build_dir = archiver.build_directory("app", 1)
    assert sorted(p.name for p in build_dir.iterdir()) == ["app.bin"]


@pytest.mark.asyncio
async def test_only_outside_patterns_archive_nothing(
    archiver: Archiver,
    store: InMemoryBuildStore,
    tmp_path: Path,
    make_project: Callable[..., Path],
) -> None:
    (tmp_path / "secret.txt").write_text("do not archive")
    make_project("app")
    project_id = await store.ensure_project("app")

    result = await archiver.archive("app", project_id, [str(tmp_path / "secret.txt")])

    assert result.success is False
    assert result.record is None
    assert await store.get_latest_build_number(project_id) == 0
