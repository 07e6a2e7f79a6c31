from __future__ import annotations

import os
from pathlib import Path

import typer

from gw import __version__
from gw.cli.commands.feature import feature
from gw.cli.commands.release_cmd import release
from gw.cli.commands.status import status
from gw.cli.context import ROOT_ENV_VAR
from gw.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(release)
app.command()(status)
app.command()(feature)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        callback=_show_version,
        is_eager=True,
        help="Show version and exit.",
    ),
    directory: Path | None = typer.Option(
        None,
        "--directory",
        "-C",
        help="Project root (default: current directory)",
    ),
) -> None:
    if directory is not None:
        try:
            root = directory.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --directory: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.USAGE))

        if not root.is_dir():
            typer.echo(f"error: --directory '{root}' is not a directory", err=True)
            raise typer.Exit(code=int(ErrorCode.USAGE))

        os.environ[ROOT_ENV_VAR] = str(root)


def main() -> None:
    app()
