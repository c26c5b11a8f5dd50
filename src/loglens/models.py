"""Pydantic models for loglens."""

from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class FilterType(StrEnum):
    """Type of filter rule."""

    INCLUDE = "include"
    EXCLUDE = "exclude"


class HighlightMode(IntEnum):
    """How much of a line a match highlights."""

    WORD = 0
    LINE = 1
    FULL_LINE = 2


class ExcludeStyle(StrEnum):
    """Presentation of exclude matches in the live view."""

    LINE_THROUGH = "line-through"
    HIDDEN = "hidden"


class FilterMode(StrEnum):
    """Partition of groups used by export and import."""

    WORD = "word"
    REGEX = "regex"

    @property
    def is_regex(self) -> bool:
        return self is FilterMode.REGEX


class _CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FilterItem(_CamelModel):
    """A single include/exclude rule."""

    id: str
    keyword: str
    type: FilterType
    is_enabled: bool = True
    is_regex: bool = False
    case_sensitive: bool = False
    context_line: int = Field(default=0, ge=0)
    highlight_mode: HighlightMode = HighlightMode.WORD
    exclude_style: ExcludeStyle = ExcludeStyle.LINE_THROUGH
    nickname: str | None = None
    color: str | None = None
    result_count: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _migrate_full_line_flag(cls, data: Any) -> Any:  # noqa: ANN401
        """Map the legacy `enableFullLineHighlight` flag onto highlight_mode."""
        if isinstance(data, dict) and "enableFullLineHighlight" in data:
            data = dict(data)
            legacy = data.pop("enableFullLineHighlight")
            if data.get("highlightMode") is None and data.get("highlight_mode") is None:
                data["highlightMode"] = HighlightMode.LINE if legacy else HighlightMode.WORD
        return data


class FilterGroup(_CamelModel):
    """A named, independently toggled collection of filter items."""

    id: str
    name: str
    is_enabled: bool = True
    is_regex: bool = False
    is_expanded: bool = True
    filters: list[FilterItem] = []
    result_count: int | None = None


class ExportDocument(BaseModel):
    """Top-level shape of an exported filter file."""

    version: str
    groups: list[FilterGroup] = []


class ImportResult(BaseModel):
    """Outcome of an import."""

    count: int


class ProcessResult(BaseModel):
    """Summary of a batch filtering run."""

    processed: int
    matched: int
    output_path: str


class AppConfig(BaseModel):
    """Application configuration persisted to disk."""

    theme: str = "textual-dark"
    temp_file_prefix: str = "filtered_"
    chunk_size: int = 1000
    chunk_threshold: int = 5000
    log_level: str = "WARNING"
