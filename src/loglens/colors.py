"""Highlight color palette and style-key to rich Style mapping."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.style import Style

from loglens.models import ExcludeStyle, FilterType

if TYPE_CHECKING:
    from loglens.highlighter import StyleKey

# 16 distinct background colors (dark theme, light theme) for include filters.
COLOR_PRESETS: dict[str, tuple[str, str]] = {
    "color1": ("#8a2a28", "#f0b8b6"),  # red
    "color2": ("#1f5a85", "#b3d6ef"),  # blue
    "color3": ("#8a5400", "#ffd4a3"),  # orange
    "color4": ("#55620a", "#d9e3a3"),  # green
    "color5": ("#4a4d85", "#c9cbee"),  # violet
    "color6": ("#7a6800", "#fff0a3"),  # yellow
    "color7": ("#1c6a64", "#b0e3df"),  # cyan
    "color8": ("#7a1f7a", "#ffb3ff"),  # magenta
    "color9": ("#2a7a2a", "#bdf0bd"),  # lime
    "color10": ("#3a1f5c", "#d2c2e6"),  # indigo
    "color11": ("#8a3a62", "#ffd0e8"),  # pink
    "color12": ("#0a5c54", "#a8ddd6"),  # teal
    "color13": ("#5c3315", "#dcc2ad"),  # brown
    "color14": ("#0a5a7a", "#b0e8ff"),  # sky
    "color15": ("#3f3680", "#cdc8f0"),  # slate
    "color16": ("#1f7a48", "#b5ecc9"),  # emerald
}

DEFAULT_HIGHLIGHT = "#6e5600"


def preset_ids() -> list[str]:
    """Color preset ids in palette order."""
    return list(COLOR_PRESETS)


def preset_color(color_id: str | None, *, dark: bool = True) -> str:
    """Background color for a preset id, falling back to the default amber."""
    if color_id is None or color_id not in COLOR_PRESETS:
        return DEFAULT_HIGHLIGHT
    return COLOR_PRESETS[color_id][0 if dark else 1]


def decoration_style(key: StyleKey, *, dark: bool = True) -> Style:
    """Build the rich Style a decoration of this key is drawn with."""
    if key.filter_type == FilterType.INCLUDE:
        return Style(bgcolor=preset_color(key.color, dark=dark), color="#ffffff", bold=True)
    if key.exclude_style == ExcludeStyle.HIDDEN:
        return Style(conceal=True, dim=True)
    if key.part == "line":
        return Style(strike=True, dim=True)
    return Style(bold=True)
