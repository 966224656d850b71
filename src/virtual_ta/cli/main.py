"""virtual-ta CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from virtual_ta.cli.ask import ask_cmd
from virtual_ta.cli.config_cmd import config_app
from virtual_ta.cli.init import init_cmd
from virtual_ta.cli.load import load_cmd
from virtual_ta.cli.reindex import reindex_cmd
from virtual_ta.cli.serve import serve_cmd
from virtual_ta.cli.status import questions_cmd, status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("virtual-ta")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"virtual-ta {_installed_version()}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=verbose)],
    )


app = typer.Typer(
    name="virtual-ta",
    help=(
        "virtual-ta answers student questions from course material and forum posts.\n\n"
        "  virtual-ta load   Add course pages and forum posts.\n"
        "  virtual-ta ask    Answer a question from the command line.\n"
        "  virtual-ta serve  Run the HTTP API."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """virtual-ta: retrieval-augmented teaching assistant."""
    _setup_logging(verbose)


app.command("init")(init_cmd)
app.command("load")(load_cmd)
app.command("reindex")(reindex_cmd)
app.command("ask")(ask_cmd)
app.command("status")(status_cmd)
app.command("questions")(questions_cmd)
app.command("serve")(serve_cmd)
app.add_typer(config_app, name="config")


@app.command("version")
def version_cmd() -> None:
    """Show the installed virtual-ta version."""
    typer.echo(f"virtual-ta {_installed_version()}")


if __name__ == "__main__":
    app()
