"""Main CLI entry point for Drovah.

This module provides the Typer application for bootstrapping a Drovah
installation, running the web server and triggering builds by hand.

Usage:
    drovah init
    drovah serve --port 8000
    drovah build biomebot
    drovah project new https://github.com/user/biomebot.git
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Optional, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from sqlalchemy.ext.asyncio import AsyncEngine

from drovah.cli import project as project_cli
from drovah.config import DrovahConfig, load_config, write_default_config
from drovah.database.connection import get_engine, get_session_factory
from drovah.database.models.build import BuildStatus
from drovah.database.store import SqlBuildStore
from drovah.errors import DrovahError
from drovah.logging import setup_logging
from drovah.orchestrator.builder import BuildOrchestrator

T = TypeVar("T")

DEFAULT_CONFIG_FILE = Path("drovah.toml")

app = typer.Typer(
    name="drovah",
    help="Drovah: a small self-hosted continuous integration relay",
    no_args_is_help=True,
)

app.add_typer(project_cli.app, name="project", help="Manage projects")

console = Console()


class AppContext:
    """Application context shared across CLI commands.

    The database engine is created on first use, so commands that never
    touch the store (``init``, ``serve``) open no connection pool.

    Attributes:
        config: Loaded Drovah configuration
        config_path: File the configuration was loaded from, if any
    """

    def __init__(self, config: DrovahConfig, config_path: Path | None = None):
        self.config = config
        self.config_path = config_path
        self._engine: AsyncEngine | None = None
        self._store: SqlBuildStore | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = get_engine(self.config.database)
        return self._engine

    @property
    def store(self) -> SqlBuildStore:
        """Build store over the configured database."""
        if self._store is None:
            self._store = SqlBuildStore(get_session_factory(self.engine))
        return self._store

    def run(self, func: Callable[[], Awaitable[T]]) -> T:
        """Run an async operation and release the database afterwards."""

        async def _main() -> T:
            try:
                return await func()
            finally:
                if self._engine is not None:
                    await self._engine.dispose()

        return asyncio.run(_main())



_app_context: AppContext | None = None


def get_app_context() -> AppContext:
    """Get the shared application context.

    Raises:
        RuntimeError: If context has not been initialized
    """
    if _app_context is None:
        raise RuntimeError("Application context not initialized. Call initialize_context first.")
    return _app_context


def initialize_context(config: DrovahConfig, config_path: Path | None = None) -> AppContext:
    global _app_context
    _app_context = AppContext(config, config_path)
    return _app_context


@app.command()
def init(
    config_file: Annotated[
        Path,
        typer.Option("--write-config", help="Where to write the default configuration"),
    ] = DEFAULT_CONFIG_FILE,
) -> None:
    """Create the data directories and a default configuration file."""
    config = get_app_context().config

    for directory in (config.paths.projects_root, config.paths.archive_root):
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            console.print(f"[red]Could not create {directory}:[/red] {e}")
            raise typer.Exit(code=1) from e
        console.print(f"[dim]Directory ready:[/dim] {directory}")

    if write_default_config(config_file):
        console.print(f"[green]Wrote default configuration to {config_file}[/green]")
    else:
        console.print(f"[dim]Configuration already exists:[/dim] {config_file}")


@app.command()
def serve(
    host: Annotated[
        Optional[str],
        typer.Option("--host", "-h", help="Host to bind to (default: web.host)"),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Port to bind to (default: web.port)"),
    ] = None,
    reload: Annotated[
        bool,
        typer.Option("--reload", "-r", help="Enable auto-reload (development)"),
    ] = False,
) -> None:
    """Start the Drovah web server.

    With --reload every worker re-creates the application from the same
    configuration file (passed on through ``DROVAH_CONFIG_FILE``).
    """
    import uvicorn

    from drovah.web.app import CONFIG_FILE_ENV, create_app

    ctx = get_app_context()
    config = ctx.config
    host = host or config.web.host
    port = port or config.web.port

    console.print("[bold cyan]Starting Drovah[/bold cyan]")
    console.print(f"[dim]Host:[/dim] {host}")
    console.print(f"[dim]Port:[/dim] {port}")
    console.print(f"[dim]Projects:[/dim] {config.paths.projects_root}")
    console.print()

    if reload:
        if ctx.config_path is not None:
            os.environ[CONFIG_FILE_ENV] = str(ctx.config_path.resolve())
        uvicorn.run(
            "drovah.web.app:create_app_from_env",
            factory=True,
            host=host,
            port=port,
            reload=True,
            log_level=config.logging.level.lower(),
        )
        return

    uvicorn.run(
        create_app(config),
        host=host,
        port=port,
        log_level=config.logging.level.lower(),
    )


@app.command()
def build(
    project: Annotated[str, typer.Argument(help="Project directory name")],
    pull: Annotated[
        bool,
        typer.Option("--pull/--no-pull", help="Run the pull command first"),
    ] = True,
) -> None:
    """Pull and build a project now, then print the outcome."""
    ctx = get_app_context()
    orchestrator = BuildOrchestrator.from_config(ctx.config, ctx.store)

    if not orchestrator.project_exists(project):
        console.print(f"[red]Project doesn't exist:[/red] {project}")
        raise typer.Exit(code=1)

    async def _build():
        async with orchestrator.locker.hold(project):
            if pull:
                await orchestrator.pull(project)
            return await orchestrator.run_build(project)

    try:
        run = ctx.run(_build)
    except DrovahError as e:
        console.print(f"[red]Build aborted:[/red] {e}")
        raise typer.Exit(code=1) from e

    if run is None or run.status is None:
        console.print(f"[yellow]No build was recorded for {project}[/yellow]")
        raise typer.Exit(code=1)

    color = "green" if run.status is BuildStatus.passing else "red"
    lines = [
        f"[bold]Project:[/bold] {project}",
        f"[bold]Build:[/bold] #{run.build_number}",
        f"[bold]Status:[/bold] [{color}]{run.status.value}[/{color}]",
    ]
    if run.archived_files:
        lines.append(f"[bold]Archived:[/bold] {', '.join(run.archived_files)}")
    if run.post_archive_succeeded is not None:
        outcome = "ok" if run.post_archive_succeeded else "failed"
        lines.append(f"[bold]Post-archive:[/bold] {outcome}")

    console.print(Panel("\n".join(lines), title="Build Finished", border_style=color))
    if run.status is not BuildStatus.passing:
        raise typer.Exit(code=1)


@app.callback()
def main_callback(
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (TOML format)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Load configuration, set up logging and initialize the application context."""
    try:
        config = load_config(config_path)
    except Exception as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=1) from e

    logging_config = config.logging
    if verbose:
        logging_config = logging_config.model_copy(update={"level": "DEBUG"})
    setup_logging(logging_config)

    try:
        initialize_context(config, config_path)
    except Exception as e:
        console.print(f"[red]Error initializing application:[/red] {e}")
        raise typer.Exit(code=1) from e

    if verbose:
        console.print("[dim]Debug logging enabled[/dim]")


if __name__ == "__main__":
    app()
