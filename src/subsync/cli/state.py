"""
subsync status / subsync reset - inspect and clear the stored checkpoints.
"""

from enum import StrEnum
from pathlib import Path

import typer
from rich.table import Table

from subsync.cli.common import console, load_project
from subsync.core.state import MIRROR_ID, PULL_CURSOR, PUSH_INDEX
from subsync.exceptions import SubsyncError
from subsync.jobs.runtime import Runtime


class ResetTarget(StrEnum):
    PULL = "pull"
    PUSH = "push"
    ALL = "all"


RESET_KEYS = {
    ResetTarget.PULL: (PULL_CURSOR,),
    ResetTarget.PUSH: (PUSH_INDEX,),
    ResetTarget.ALL: (PULL_CURSOR, PUSH_INDEX),
}


def status(
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
) -> None:
    """Show the configured mirror and both job checkpoints."""
    runtime = Runtime(load_project(project_dir, env=env))
    try:
        stored = runtime.store.items()
        mirror_id = stored.get(MIRROR_ID)
        rows = None
        if mirror_id:
            mirror = runtime.mirror(mirror_id)
            rows = mirror.row_count() if mirror.exists() else 0
    except SubsyncError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e
    finally:
        runtime.close()

    table = Table(title="subsync state", show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("mirror", mirror_id or "[dim]not set[/dim]")
    table.add_row("mirror rows", "-" if rows is None else str(rows))
    table.add_row("puller cursor", stored.get(PULL_CURSOR) or "[dim]start[/dim]")
    table.add_row("pusher index", stored.get(PUSH_INDEX) or "[dim]0[/dim]")
    console.print(table)


def reset(
    target: ResetTarget = typer.Argument(ResetTarget.ALL, help="Which checkpoint to clear"),
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
) -> None:
    """Clear job checkpoints so the next invocation starts from the beginning."""
    runtime = Runtime(load_project(project_dir, env=env))
    try:
        for key in RESET_KEYS[target]:
            runtime.store.delete(key)
    except SubsyncError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e
    finally:
        runtime.close()
    console.print(f"Cleared {', '.join(RESET_KEYS[target])}")
