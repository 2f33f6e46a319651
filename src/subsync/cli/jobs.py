"""
subsync pull / subsync push - run one scheduled job invocation.

Meant to be called by cron (or any scheduler) on a fixed cadence. Each call
resumes from the stored checkpoint and stops before the time budget runs
out; exit status is 1 only for fatal outcomes.
"""

from pathlib import Path

import typer

from subsync.cli.common import load_project, report
from subsync.jobs import run_puller_sync, run_pusher_sync


def pull(
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
) -> None:
    """Mirror new remote memberships into the mirror table."""
    config = load_project(project_dir, env=env, verbose=verbose)
    report(run_puller_sync(config))


def push(
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
) -> None:
    """Join every mirrored identifier that is not yet a remote membership."""
    config = load_project(project_dir, env=env, verbose=verbose)
    report(run_pusher_sync(config))
