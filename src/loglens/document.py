"""Document abstraction consumed by the live highlighter."""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pathlib import Path


@dataclass(frozen=True, slots=True)
class Position:
    line: int
    character: int


@dataclass(frozen=True, slots=True)
class LineSpan:
    """Half-open range of line indices [start, end)."""

    start: int
    end: int


class Document(Protocol):
    """What the highlighter needs from an open document."""

    @property
    def line_count(self) -> int: ...

    def line_at(self, index: int) -> str: ...

    def offset_at(self, position: Position) -> int: ...

    def position_at(self, offset: int) -> Position: ...


class TextDocument:
    """In-memory document split into lines on newline."""

    def __init__(self, text: str = "") -> None:
        self._lines: list[str] = text.split("\n")
        self._starts: list[int] = []
        self._reindex()

    @classmethod
    def from_lines(cls, lines: list[str]) -> TextDocument:
        return cls("\n".join(lines))

    @classmethod
    def from_file(cls, path: Path) -> TextDocument:
        text = path.read_text(encoding="utf-8", errors="replace").replace("\r\n", "\n")
        return cls(text.removesuffix("\n"))

    def _reindex(self) -> None:
        self._starts = []
        offset = 0
        for line in self._lines:
            self._starts.append(offset)
            offset += len(line) + 1

    @property
    def line_count(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> list[str]:
        return self._lines

    def line_at(self, index: int) -> str:
        return self._lines[index]

    def offset_at(self, position: Position) -> int:
        line = min(max(position.line, 0), len(self._lines) - 1)
        return self._starts[line] + min(max(position.character, 0), len(self._lines[line]))

    def position_at(self, offset: int) -> Position:
        offset = max(offset, 0)
        line = bisect.bisect_right(self._starts, offset) - 1
        return Position(line, min(offset - self._starts[line], len(self._lines[line])))
