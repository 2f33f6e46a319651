"""
Main CLI entry point.
"""

import typer

from subsync import __version__
from subsync.cli import jobs, mirror, state


def version_callback(value: bool):
    """Callback to display version and exit."""
    if value:
        typer.echo(f"subsync version {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="subsync",
    help="subsync - keep a membership list and its tabular mirror in sync",
    add_completion=False,
)

app.command("pull")(jobs.pull)
app.command("push")(jobs.push)
app.command("status")(state.status)
app.command("reset")(state.reset)
app.add_typer(mirror.app, name="mirror")


@app.callback(invoke_without_command=True)
def entrypoint(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """
    subsync - keep a membership list and its tabular mirror in sync.

    Run 'subsync <command> --help' for help on a specific command.
    """
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
