"""View command - browse a log file with live filter highlighting."""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - typer needs this at runtime for argument parsing
from typing import Annotated

import typer

from loglens.commands.filters import open_filter_manager
from loglens.document import TextDocument


def view(file: Annotated[Path, typer.Argument(help="Log file to view")]) -> None:
    """Open FILE in a terminal viewer highlighting the saved filters."""
    if not file.is_file():
        typer.echo(f"Error: {file} is not a file", err=True)
        raise typer.Exit(1)

    try:
        document = TextDocument.from_file(file)
    except OSError as e:
        typer.echo(f"Error: cannot read {file}: {e}", err=True)
        raise typer.Exit(1) from e

    from loglens.app import LogLensApp  # noqa: PLC0415

    LogLensApp(document, open_filter_manager(), source=str(file)).run(mouse=False)
