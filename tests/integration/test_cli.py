"""Integration tests for the drovah CLI.

Commands run against a configuration file in the test's temporary
directory with a file-backed SQLite database, so every ``asyncio.run``
inside a command sees the same data.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any

import git
import pytest
import structlog
import uvicorn
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import create_async_engine
from typer.testing import CliRunner

from drovah.cli.project import project_name_from_url
from drovah.database.models import Base
from drovah.main import app, get_app_context
from drovah.web.app import CONFIG_FILE_ENV, create_app_from_env

CONFIG_TEMPLATE = """
[database]
url = "sqlite+aiosqlite:///{root}/drovah.db"

[logging]
level = "DEBUG"
file = "{root}/logs/drovah.log"

[paths]
projects_root = "{root}/projects"
archive_root = "{root}/archive"

[pipeline]
pull_command = ""
"""


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Config file plus an initialized SQLite schema under tmp_path."""
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "drovah.toml"
    path.write_text(CONFIG_TEMPLATE.format(root=tmp_path.as_posix()), encoding="utf-8")

    async def _create_schema() -> None:
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path.as_posix()}/drovah.db")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()

    asyncio.run(_create_schema())
    return path


@pytest.fixture
def projects_root(tmp_path: Path) -> Path:
    root = tmp_path / "projects"
    root.mkdir(exist_ok=True)
    return root


@pytest.fixture
def source_repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A local git repository with a build manifest, usable as a clone URL."""
    for var, value in {
        "GIT_AUTHOR_NAME": "Drovah Tests",
        "GIT_AUTHOR_EMAIL": "tests@drovah.invalid",
        "GIT_COMMITTER_NAME": "Drovah Tests",
        "GIT_COMMITTER_EMAIL": "tests@drovah.invalid",
    }.items():
        monkeypatch.setenv(var, value)

    path = tmp_path / "upstream" / "biomebot"
    path.mkdir(parents=True)
    repo = git.Repo.init(path)
    (path / ".drovah").write_text('[build]\ncommands = ["true"]\n', encoding="utf-8")
    repo.index.add([".drovah"])
    repo.index.commit("Add build manifest")
    return path


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://github.com/user/biomebot.git", "biomebot"),
        ("https://github.com/user/biomebot", "biomebot"),
        ("https://github.com/user/biomebot/", "biomebot"),
        ("git@github.com:biomebot.git", "biomebot"),
        ("/srv/git/app", "app"),
    ],
)
def test_project_name_from_url(url: str, expected: str) -> None:
    assert project_name_from_url(url) == expected


@pytest.mark.integration
class TestInit:
    def test_creates_directories_and_config(
        self, runner: CliRunner, config_file: Path, tmp_path: Path
    ) -> None:
        target = tmp_path / "generated.toml"

        result = runner.invoke(
            app, ["--config", str(config_file), "init", "--write-config", str(target)]
        )

        assert result.exit_code == 0
        assert (tmp_path / "projects").is_dir()
        assert (tmp_path / "archive").is_dir()
        assert "[webhook]" in target.read_text()
        assert "Wrote default configuration" in result.stdout

    def test_existing_config_is_kept(self, runner: CliRunner, config_file: Path) -> None:
        original = config_file.read_text()

        result = runner.invoke(
            app, ["--config", str(config_file), "init", "--write-config", str(config_file)]
        )

        assert result.exit_code == 0
        assert "already exists" in result.stdout
        assert config_file.read_text() == original


@pytest.mark.integration
class TestProjectCommands:
    def test_new_clones_and_registers(
        self,
        runner: CliRunner,
        config_file: Path,
        projects_root: Path,
        source_repo: Path,
    ) -> None:
        result = runner.invoke(app, ["--config", str(config_file), "project", "new", str(source_repo)])

        assert result.exit_code == 0, result.stdout
        assert "Project added" in result.stdout
        assert (projects_root / "biomebot" / ".drovah").is_file()

        listing = runner.invoke(app, ["--config", str(config_file), "project", "list"])
        assert listing.exit_code == 0
        assert "biomebot" in listing.stdout
        assert "present" in listing.stdout

    def test_new_refuses_existing_directory(
        self,
        runner: CliRunner,
        config_file: Path,
        projects_root: Path,
        source_repo: Path,
    ) -> None:
        (projects_root / "biomebot").mkdir()

        result = runner.invoke(app, ["--config", str(config_file), "project", "new", str(source_repo)])

        assert result.exit_code == 1
        assert "already exists" in result.stdout

    def test_new_reports_clone_failure(
        self, runner: CliRunner, config_file: Path, tmp_path: Path
    ) -> None:
        missing = tmp_path / "nowhere" / "ghost.git"

        result = runner.invoke(app, ["--config", str(config_file), "project", "new", str(missing)])

        assert result.exit_code == 1
        assert "Clone failed" in result.stdout

    @pytest.mark.parametrize("command", ["remove", "delete"])
    def test_remove_deletes_checkout(
        self, runner: CliRunner, config_file: Path, projects_root: Path, command: str
    ) -> None:
        (projects_root / "app" / "src").mkdir(parents=True)

        result = runner.invoke(app, ["--config", str(config_file), "project", command, "app"])

        assert result.exit_code == 0
        assert not (projects_root / "app").exists()

    @pytest.mark.parametrize("name", ["ghost", ".."])
    def test_remove_unknown_project(
        self, runner: CliRunner, config_file: Path, projects_root: Path, name: str
    ) -> None:
        result = runner.invoke(app, ["--config", str(config_file), "project", "remove", name])

        assert result.exit_code == 1
        assert projects_root.is_dir()

    def test_list_empty(self, runner: CliRunner, config_file: Path) -> None:
        result = runner.invoke(app, ["--config", str(config_file), "project", "list"])

        assert result.exit_code == 0
        assert "No projects found" in result.stdout


@pytest.mark.integration
class TestBuildCommand:
    def test_passing_build(
        self, runner: CliRunner, config_file: Path, projects_root: Path, tmp_path: Path
    ) -> None:
        project = projects_root / "app"
        project.mkdir()
        (project / ".drovah").write_text(
            '[build]\ncommands = ["touch app.zip"]\n[archive]\nfiles = ["app"]\n', encoding="utf-8"
        )

        result = runner.invoke(app, ["--config", str(config_file), "build", "app"])

        assert result.exit_code == 0, result.stdout
        assert "passing" in result.stdout
        assert (tmp_path / "archive" / "app" / "1" / "app-b1.zip").is_file()

    def test_failing_build_exits_nonzero(
        self, runner: CliRunner, config_file: Path, projects_root: Path
    ) -> None:
        project = projects_root / "app"
        project.mkdir()
        (project / ".drovah").write_text('[build]\ncommands = ["false"]\n', encoding="utf-8")

        result = runner.invoke(app, ["--config", str(config_file), "build", "--no-pull", "app"])

        assert result.exit_code == 1
        assert "failing" in result.stdout

    def test_missing_manifest_aborts(
        self, runner: CliRunner, config_file: Path, projects_root: Path
    ) -> None:
        (projects_root / "app").mkdir()

        result = runner.invoke(app, ["--config", str(config_file), "build", "app"])

        assert result.exit_code == 1
        assert "Build aborted" in result.stdout

    def test_unknown_project(self, runner: CliRunner, config_file: Path, projects_root: Path) -> None:
        result = runner.invoke(app, ["--config", str(config_file), "build", "ghost"])

        assert result.exit_code == 1
        assert "doesn't exist" in result.stdout


@pytest.mark.integration
class TestServeCommand:
    @pytest.fixture
    def uvicorn_calls(self, monkeypatch: pytest.MonkeyPatch) -> list[tuple[Any, dict[str, Any]]]:
        calls: list[tuple[Any, dict[str, Any]]] = []
        monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))
        monkeypatch.delenv(CONFIG_FILE_ENV, raising=False)
        return calls

    def test_serve_opens_no_cli_engine(
        self,
        runner: CliRunner,
        config_file: Path,
        uvicorn_calls: list[tuple[Any, dict[str, Any]]],
    ) -> None:
        result = runner.invoke(app, ["--config", str(config_file), "serve", "--port", "9001"])

        assert result.exit_code == 0, result.stdout
        [(target, kwargs)] = uvicorn_calls
        assert isinstance(target, FastAPI)
        assert kwargs["port"] == 9001
        assert get_app_context()._engine is None

    def test_reload_passes_config_file(
        self,
        runner: CliRunner,
        config_file: Path,
        uvicorn_calls: list[tuple[Any, dict[str, Any]]],
    ) -> None:
        result = runner.invoke(app, ["--config", str(config_file), "serve", "--reload"])

        assert result.exit_code == 0, result.stdout
        [(target, kwargs)] = uvicorn_calls
        assert target == "drovah.web.app:create_app_from_env"
        assert kwargs["factory"] is True
        assert os.environ[CONFIG_FILE_ENV] == str(config_file.resolve())

        reloaded = create_app_from_env()
        assert reloaded.state.config.paths.projects_root == config_file.parent / "projects"
