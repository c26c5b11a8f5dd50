"""Config command - show or change settings in config.toml."""

from __future__ import annotations

from typing import Annotated

import typer
from pydantic import ValidationError

from loglens.config import load_config, save_config
from loglens.models import AppConfig


def config(
    key: Annotated[str | None, typer.Argument(help="Setting name (omit to list all)")] = None,
    value: Annotated[str | None, typer.Argument(help="New value (omit to print the current one)")] = None,
) -> None:
    """Show or change a setting."""
    current = load_config()
    if key is None:
        for name, setting in current.model_dump().items():
            typer.echo(f"{name} = {setting}")
        return

    if key not in AppConfig.model_fields:
        typer.echo(f"Error: unknown setting '{key}'. Use: {', '.join(AppConfig.model_fields)}", err=True)
        raise typer.Exit(1)
    if value is None:
        typer.echo(getattr(current, key))
        return

    try:
        updated = AppConfig.model_validate({**current.model_dump(), key: value})
    except ValidationError as e:
        typer.echo(f"Error: invalid value for {key}: {e.errors()[0]['msg']}", err=True)
        raise typer.Exit(1) from e
    save_config(updated)
    typer.echo(f"{key} = {getattr(updated, key)}")
