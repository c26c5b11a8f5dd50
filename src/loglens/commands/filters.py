"""Filter group management commands."""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - typer needs this at runtime for argument parsing
from typing import Annotated

import typer

from loglens.config import get_state_path
from loglens.errors import NotFoundError, ParseError
from loglens.filter_manager import FilterManager
from loglens.models import ExcludeStyle, FilterGroup, FilterMode, FilterType, HighlightMode
from loglens.store import JsonFileStore

filters_app = typer.Typer(help="Manage filter groups.", no_args_is_help=True)

_MODE_NAMES = {"word": HighlightMode.WORD, "line": HighlightMode.LINE, "full": HighlightMode.FULL_LINE}


def open_filter_manager() -> FilterManager:
    """Filter manager backed by the persisted state file."""
    return FilterManager(JsonFileStore(get_state_path()))


def resolve_group(manager: FilterManager, ref: str) -> FilterGroup:
    """Find a group by id, falling back to a case-insensitive name match."""
    group = manager.get_group(ref) or manager.find_group_by_name(ref)
    if group is None:
        msg = f"Filter group '{ref}' not found"
        raise NotFoundError(msg)
    return group


def _fail(message: str) -> typer.Exit:
    typer.echo(f"Error: {message}", err=True)
    return typer.Exit(1)


def _describe(group: FilterGroup) -> list[str]:
    state = "on " if group.is_enabled else "off"
    mode = "regex" if group.is_regex else "word"
    lines = [f"[{state}] {group.name} ({mode}, id={group.id})"]
    for item in group.filters:
        flag = "+" if item.type == FilterType.INCLUDE else "-"
        enabled = "" if item.is_enabled else " (disabled)"
        extras: list[str] = []
        if item.case_sensitive:
            extras.append("case")
        if item.context_line:
            extras.append(f"context={item.context_line}")
        if item.highlight_mode != HighlightMode.WORD:
            extras.append(item.highlight_mode.name.lower())
        if item.type == FilterType.EXCLUDE and item.exclude_style == ExcludeStyle.HIDDEN:
            extras.append("hidden")
        label = f" [{', '.join(extras)}]" if extras else ""
        nickname = f" ({item.nickname})" if item.nickname else ""
        lines.append(f"    {flag} {item.keyword}{nickname}{label}{enabled}  id={item.id}")
    return lines


@filters_app.command("list")
def list_groups() -> None:
    """List all filter groups and their filters."""
    manager = open_filter_manager()
    for group in manager.get_groups():
        for line in _describe(group):
            typer.echo(line)


@filters_app.command("add-group")
def add_group(
    name: Annotated[str, typer.Argument(help="Group name")],
    regex: Annotated[bool, typer.Option("--regex", help="Interpret the group's filters as regular expressions")] = False,  # noqa: FBT002
) -> None:
    """Create a new, enabled filter group."""
    group = open_filter_manager().add_group(name, is_regex=regex)
    typer.echo(f"Added group '{group.name}' (id={group.id})")


@filters_app.command("add")
def add_filter(  # noqa: PLR0913
    group_ref: Annotated[str, typer.Argument(metavar="GROUP", help="Group name or id")],
    keyword: Annotated[str, typer.Argument(help="Keyword or pattern")],
    exclude: Annotated[bool, typer.Option("--exclude", "-x", help="Exclude matching lines")] = False,  # noqa: FBT002
    regex: Annotated[bool | None, typer.Option("--regex/--literal", help="Override the group's mode")] = None,
    case_sensitive: Annotated[bool, typer.Option("--case-sensitive", "-c")] = False,  # noqa: FBT002
    context: Annotated[int, typer.Option("--context", "-C", min=0, help="Context lines around matches")] = 0,
    mode: Annotated[str, typer.Option("--mode", help="Highlight mode: word, line, full")] = "word",
    hidden: Annotated[bool, typer.Option("--hidden", help="Hide exclude matches instead of striking them")] = False,  # noqa: FBT002
    nickname: Annotated[str | None, typer.Option("--nickname", "-n")] = None,
) -> None:
    """Add an include (default) or exclude filter to a group."""
    if mode not in _MODE_NAMES:
        raise _fail(f"unknown highlight mode '{mode}'. Use: word, line, full")
    manager = open_filter_manager()
    try:
        group = resolve_group(manager, group_ref)
    except NotFoundError as e:
        raise _fail(str(e)) from e

    filter_type = FilterType.EXCLUDE if exclude else FilterType.INCLUDE
    is_regex = group.is_regex if regex is None else regex
    item = manager.add_filter(group.id, keyword, filter_type, is_regex, nickname)
    if item is None:
        raise _fail(f"filter '{keyword}' already exists in '{group.name}'")
    if case_sensitive:
        manager.toggle_filter_case_sensitivity(group.id, item.id)
    if context:
        manager.set_filter_context_line(group.id, item.id, context)
    if _MODE_NAMES[mode] != HighlightMode.WORD:
        manager.set_filter_highlight_mode(group.id, item.id, _MODE_NAMES[mode])
    if hidden:
        manager.set_filter_exclude_style(group.id, item.id, ExcludeStyle.HIDDEN)
    typer.echo(f"Added {filter_type} filter '{keyword}' to '{group.name}' (id={item.id})")


@filters_app.command("remove-group")
def remove_group(group_ref: Annotated[str, typer.Argument(metavar="GROUP", help="Group name or id")]) -> None:
    """Remove a group. Removing the last regex group restores the built-in presets."""
    manager = open_filter_manager()
    try:
        group = resolve_group(manager, group_ref)
    except NotFoundError as e:
        raise _fail(str(e)) from e
    manager.remove_group(group.id)
    typer.echo(f"Removed group '{group.name}'")


@filters_app.command("remove")
def remove_filter(
    group_ref: Annotated[str, typer.Argument(metavar="GROUP", help="Group name or id")],
    filter_id: Annotated[str, typer.Argument(help="Filter id")],
) -> None:
    """Remove a filter from a group."""
    manager = open_filter_manager()
    try:
        group = resolve_group(manager, group_ref)
    except NotFoundError as e:
        raise _fail(str(e)) from e
    manager.remove_filter(group.id, filter_id)
    typer.echo(f"Removed filter {filter_id} from '{group.name}'")


@filters_app.command("toggle")
def toggle(
    group_ref: Annotated[str, typer.Argument(metavar="GROUP", help="Group name or id")],
    filter_id: Annotated[str | None, typer.Argument(help="Filter id (toggles the whole group if omitted)")] = None,
) -> None:
    """Enable or disable a group or a single filter."""
    manager = open_filter_manager()
    try:
        group = resolve_group(manager, group_ref)
    except NotFoundError as e:
        raise _fail(str(e)) from e
    if filter_id is None:
        manager.toggle_group(group.id)
    else:
        manager.toggle_filter(group.id, filter_id)
    for line in _describe(manager.require_group(group.id)):
        typer.echo(line)


@filters_app.command("export")
def export(
    mode: Annotated[FilterMode, typer.Argument(help="Which groups to export: word or regex")],
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Write to file instead of stdout")] = None,
    group_refs: Annotated[list[str] | None, typer.Option("--group", "-g", help="Only these groups")] = None,
) -> None:
    """Export filter groups of one mode as JSON."""
    manager = open_filter_manager()
    group_ids: list[str] | None = None
    if group_refs:
        try:
            group_ids = [resolve_group(manager, ref).id for ref in group_refs]
        except NotFoundError as e:
            raise _fail(str(e)) from e
    document = manager.export_filters(mode, group_ids)
    if output is None:
        typer.echo(document)
        return
    output.write_text(document + "\n", encoding="utf-8")
    typer.echo(f"Exported filters to {output}")


@filters_app.command("import")
def import_(
    file: Annotated[Path, typer.Argument(help="Export document to import")],
    mode: Annotated[FilterMode, typer.Argument(help="Mode of the imported groups: word or regex")],
    overwrite: Annotated[bool, typer.Option("--overwrite", help="Replace existing groups of this mode")] = False,  # noqa: FBT002
) -> None:
    """Import filter groups from a JSON export document."""
    if not file.is_file():
        raise _fail(f"{file} is not a file")
    manager = open_filter_manager()
    try:
        result = manager.import_filters(file.read_text(encoding="utf-8"), mode, overwrite=overwrite)
    except ParseError as e:
        raise _fail(str(e)) from e
    typer.echo(f"Imported {result.count} group(s)")
