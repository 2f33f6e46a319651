"""
Helpers shared by the CLI commands.
"""

from pathlib import Path

import typer
from rich.console import Console

from subsync.config.loader import Config, load_config
from subsync.core.types import RunOutcome, RunResult
from subsync.exceptions import SubsyncError
from subsync.utils.logging import get_logger, setup_logging_from_config

logger = get_logger("subsync.cli")

console = Console()

OUTCOME_STYLES = {
    RunOutcome.COMPLETED: "green",
    RunOutcome.YIELDED_ON_BUDGET: "yellow",
    RunOutcome.YIELDED_ON_QUOTA: "yellow",
    RunOutcome.YIELDED_ON_ERROR: "yellow",
    RunOutcome.FATAL: "red",
}


def load_project(project_dir: Path, env: str | None = None, verbose: bool = False) -> Config:
    """
    Load config.yaml from ``project_dir`` and configure logging from it.

    Relative DuckDB paths are resolved against the project directory so the
    scheduler can invoke subsync from any working directory.
    """
    project_dir = project_dir.resolve()
    try:
        config = load_config(project_dir, env=env)
    except SubsyncError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    for conn_config in (config.get("connections") or {}).values():
        path = (conn_config or {}).get("path")
        if path and path != ":memory:" and not Path(path).is_absolute():
            conn_config["path"] = str(project_dir / path)

    if verbose:
        config.data.setdefault("logging", {})["level"] = "DEBUG"
    setup_logging_from_config(config.data, project_dir=project_dir)
    return config


def report(result: RunResult) -> None:
    """Print a one-line run summary and exit non-zero on a fatal outcome."""
    style = OUTCOME_STYLES.get(result.outcome, "white")
    console.print(
        f"[bold]{result.job}[/bold] [{style}]{result.outcome.value}[/{style}] "
        f"applied={result.applied} skipped={result.skipped} failed={result.failed} "
        f"checkpoint={result.checkpoint if result.checkpoint is not None else '-'}",
        highlight=False,
    )
    if result.error:
        console.print(f"[dim]{result.error}[/dim]", highlight=False)
    if result.outcome is RunOutcome.FATAL:
        raise typer.Exit(1)
