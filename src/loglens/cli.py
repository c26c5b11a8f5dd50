"""CLI entry point for loglens."""

from __future__ import annotations

from typing import Annotated

import typer

from loglens.commands.config import config
from loglens.commands.filters import filters_app
from loglens.commands.process import process
from loglens.commands.view import view
from loglens.config import configure_logging, load_config

app = typer.Typer(add_completion=False)
app.command()(process)
app.command()(view)
app.command()(config)
app.add_typer(filters_app, name="filters")


@app.callback()
def _setup(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug output to stderr")] = False,  # noqa: FBT002
) -> None:
    configure_logging("DEBUG" if verbose else load_config().log_level)


def main() -> None:
    """Entry point for the CLI."""
    app()
