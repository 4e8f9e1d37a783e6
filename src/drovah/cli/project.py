"""Project management CLI commands.

Projects are git checkouts under ``paths.projects_root``; the directory name
is the project name webhooks refer to.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Annotated

import git
import typer
from git import GitCommandError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from drovah.database.models.build import BuildStatus
from drovah.errors import StoreError

app = typer.Typer(help="Project management commands")
console = Console()


def project_name_from_url(url: str) -> str:
    """Derive a project name from a clone URL.

    ``https://github.com/user/biomebot.git`` becomes ``biomebot``.
    """
    name = url.rstrip("/").rsplit("/", 1)[-1]
    name = name.rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name


def _valid_name(name: str) -> bool:
    return bool(name) and name not in {".", ".."} and "/" not in name and "\\" not in name


@app.command()
def new(
    url: Annotated[str, typer.Argument(help="Git URL to clone")],
) -> None:
    """Clone a repository into the projects directory and register it."""
    from drovah.main import get_app_context

    ctx = get_app_context()
    name = project_name_from_url(url)
    if not _valid_name(name):
        console.print(f"[red]Cannot derive a project name from:[/red] {url}")
        raise typer.Exit(code=1)

    destination = ctx.config.paths.projects_root / name
    if destination.exists():
        console.print(f"[red]Project already exists:[/red] {destination}")
        raise typer.Exit(code=1)

    console.print(f"[dim]Cloning {url} into {destination}[/dim]")
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        git.Repo.clone_from(url, str(destination))
    except (GitCommandError, OSError) as e:
        console.print(f"[red]Clone failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    try:
        project_id = ctx.run(lambda: ctx.store.ensure_project(name))
    except StoreError as e:
        console.print(f"[yellow]Cloned, but could not register the project:[/yellow] {e}")
        raise typer.Exit(code=1) from e

    manifest = destination / ctx.config.pipeline.manifest_name
    hint = "" if manifest.is_file() else f"\n[yellow]No {manifest.name} manifest found[/yellow]"
    console.print(
        Panel(
            f"[green]Project added[/green]\n\n"
            f"[bold]ID:[/bold] {project_id}\n"
            f"[bold]Name:[/bold] {name}\n"
            f"[bold]Path:[/bold] {destination}{hint}",
            title="Project Created",
            border_style="green",
        )
    )


@app.command("remove")
def remove(
    name: Annotated[str, typer.Argument(help="Project directory name")],
) -> None:
    """Delete a project's checkout. Build history and archives are kept."""
    from drovah.main import get_app_context

    ctx = get_app_context()
    if not _valid_name(name):
        console.print(f"[red]Invalid project name:[/red] {name}")
        raise typer.Exit(code=1)

    directory: Path = ctx.config.paths.projects_root / name
    if not directory.is_dir():
        console.print(f"[red]Project doesn't exist:[/red] {name}")
        raise typer.Exit(code=1)

    try:
        shutil.rmtree(directory)
    except OSError as e:
        console.print(f"[red]Could not remove {directory}:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print(f"[green]Removed project {name}[/green]")


app.command("delete", help="Alias of remove.")(remove)


@app.command("list")
def list_projects() -> None:
    """List registered projects with their latest build."""
    from drovah.main import get_app_context

    ctx = get_app_context()
    store = ctx.store

    async def _collect() -> list[tuple[str, int, BuildStatus | None]]:
        rows = []
        for name in await store.list_project_names():
            project_id = await store.get_project_id(name)
            if project_id is None:
                continue
            rows.append(
                (
                    name,
                    await store.get_latest_build_number(project_id),
                    await store.get_latest_status(project_id),
                )
            )
        return rows

    try:
        rows = ctx.run(_collect)
    except StoreError as e:
        console.print(f"[red]Error listing projects:[/red] {e}")
        raise typer.Exit(code=1) from e

    if not rows:
        console.print("[yellow]No projects found[/yellow]")
        return

    projects_root = ctx.config.paths.projects_root
    table = Table(title="Projects")
    table.add_column("Name", style="bold")
    table.add_column("Latest build", justify="right")
    table.add_column("Status")
    table.add_column("Checkout", style="dim")

    for name, build_number, status in rows:
        if status is None:
            status_text = "[dim]none[/dim]"
        elif status is BuildStatus.passing:
            status_text = "[green]passing[/green]"
        else:
            status_text = "[red]failing[/red]"

        table.add_row(
            name,
            str(build_number) if build_number else "-",
            status_text,
            "present" if (projects_root / name).is_dir() else "missing",
        )

    console.print(table)
