"""
subsync mirror - choose and inspect the mirror table.
"""

from pathlib import Path

import typer
from rich.table import Table

from subsync.cli.common import console, load_project
from subsync.core.state import MIRROR_ID, PULL_CURSOR, PUSH_INDEX
from subsync.exceptions import SubsyncError
from subsync.jobs.runtime import Runtime
from subsync.mirror.table import HEADER, validate_mirror_id

app = typer.Typer(name="mirror", help="Choose and inspect the mirror table")


@app.command("set")
def set_mirror(
    mirror_id: str = typer.Argument(..., help="Mirror table name (letters, digits, underscores)"),
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
) -> None:
    """
    Point both jobs at a mirror table, creating it if needed.

    Switching to a different mirror clears both checkpoints, since they are
    positions in the previous mirror.
    """
    runtime = Runtime(load_project(project_dir, env=env))
    try:
        validate_mirror_id(mirror_id)
        previous = runtime.store.get(MIRROR_ID)
        runtime.mirror(mirror_id).ensure()
        runtime.store.set(MIRROR_ID, mirror_id)
        if previous and previous != mirror_id:
            runtime.store.delete(PULL_CURSOR)
            runtime.store.delete(PUSH_INDEX)
    except SubsyncError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e
    finally:
        runtime.close()
    console.print(f"Mirror set to [cyan]{mirror_id}[/cyan]")


@app.command("show")
def show_mirror(
    limit: int = typer.Option(20, "--limit", "-n", help="Rows to show (0 for all)"),
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
) -> None:
    """Print the mirror with its header row."""
    runtime = Runtime(load_project(project_dir, env=env))
    try:
        mirror = runtime.mirror()
        records = mirror.read_records() if mirror.exists() else []
    except SubsyncError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e
    finally:
        runtime.close()

    shown = records if limit <= 0 else records[:limit]
    table = Table(title=f"{mirror.mirror_id} ({len(records)} rows)", show_header=True)
    for column, style in zip(HEADER, ("cyan", "green", "dim")):
        table.add_column(column, style=style)
    for record in shown:
        table.add_row(record.identifier, record.display_name, record.url)
    console.print(table)
    if len(shown) < len(records):
        console.print(f"[dim]... {len(records) - len(shown)} more[/dim]")
