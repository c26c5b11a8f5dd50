"""Process command - write a filtered copy of a log file."""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - typer needs this at runtime for argument parsing
from typing import TYPE_CHECKING, Annotated

import typer

from loglens.commands.filters import open_filter_manager, resolve_group
from loglens.config import load_config
from loglens.errors import IoError, NotFoundError, ParseError
from loglens.filter_manager import parse_export_document
from loglens.processor import process_file

if TYPE_CHECKING:
    from loglens.models import FilterGroup


def _load_groups(filters_file: Path | None, group_refs: list[str] | None) -> list[FilterGroup]:
    """Groups from an export document, or the saved ones, optionally narrowed down."""
    if filters_file is not None:
        groups = parse_export_document(filters_file.read_text(encoding="utf-8"))
        if not group_refs:
            return groups
        names = {ref.lower() for ref in group_refs}
        return [g for g in groups if g.id in group_refs or g.name.lower() in names]

    manager = open_filter_manager()
    if not group_refs:
        return manager.get_groups()
    return [resolve_group(manager, ref) for ref in group_refs]


def process(
    file: Annotated[Path, typer.Argument(help="Log file to filter")],
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file (default: temp dir)")] = None,
    filters_file: Annotated[
        Path | None, typer.Option("--filters", "-f", help="Use groups from an export document instead of saved ones")
    ] = None,
    group_refs: Annotated[list[str] | None, typer.Option("--group", "-g", help="Only apply these groups")] = None,
) -> None:
    """Write the lines of FILE that pass the enabled filters (plus context) to a new file."""
    if not file.is_file():
        typer.echo(f"Error: {file} is not a file", err=True)
        raise typer.Exit(1)
    if filters_file is not None and not filters_file.is_file():
        typer.echo(f"Error: filters file {filters_file} not found", err=True)
        raise typer.Exit(1)

    try:
        groups = _load_groups(filters_file, group_refs)
    except (ParseError, NotFoundError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    config = load_config()
    try:
        result = process_file(file, groups, output, prefix=config.temp_file_prefix)
    except IoError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    typer.echo(f"Processed {result.processed} lines, {result.matched} matched -> {result.output_path}")
