"""Scrollable document view that renders filter highlights."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from rich.segment import Segment
from rich.style import Style
from textual.binding import Binding, BindingType
from textual.geometry import Size
from textual.scroll_view import ScrollView
from textual.strip import Strip

from loglens.colors import decoration_style

if TYPE_CHECKING:
    from loglens.document import TextDocument
    from loglens.highlighter import DecorationRange, StyleKey


@dataclass(eq=False)
class Decoration:
    """Renderer handle: one rich Style and the ranges currently drawn with it."""

    key: StyleKey
    style: Style
    by_line: dict[int, list[DecorationRange]] = field(default_factory=dict)


def split_with_decorations(
    text: str, spans: list[tuple[int, int, Style]], normal_style: Style
) -> list[Segment]:
    """Split a line into segments, layering span styles over the normal style.

    Spans are painted in order, so later spans combine on top of earlier ones.
    """
    if not spans or not text:
        return [Segment(text, normal_style)]

    styles: list[Style] = [normal_style] * len(text)
    for start, end, style in spans:
        for pos in range(max(start, 0), min(end, len(text))):
            styles[pos] = styles[pos] + style

    segments: list[Segment] = []
    run_start = 0
    for pos in range(1, len(text) + 1):
        if pos == len(text) or styles[pos] != styles[run_start]:
            segments.append(Segment(text[run_start:pos], styles[run_start]))
            run_start = pos
    return segments


class LogView(ScrollView, can_focus=True):
    """Line-API view of a document; also the highlighter's renderer."""

    DEFAULT_CSS = """
    LogView {
        background: $surface;
        height: 1fr;
    }

    LogView > .logview--line-number {
        color: $text-disabled;
    }
    """

    COMPONENT_CLASSES: ClassVar[set[str]] = {"logview--line-number"}

    BINDINGS: ClassVar[list[BindingType]] = [
        Binding("up", "scroll_up", "Up", show=False),
        Binding("down", "scroll_down", "Down", show=False),
        Binding("pageup", "page_up", "Page Up", show=False),
        Binding("pagedown", "page_down", "Page Down", show=False),
        Binding("home", "scroll_home", "Home", show=False),
        Binding("end", "scroll_end", "End", show=False),
        Binding("#", "toggle_line_numbers", "Lines#"),
    ]

    def __init__(self, document: TextDocument, *, dark: bool = True, **kwargs: Any) -> None:  # noqa: ANN401
        super().__init__(**kwargs)
        self._document = document
        self._display: list[int] = list(range(document.line_count))
        self._decorations: list[Decoration] = []
        self._show_line_numbers = True
        self._dark = dark
        self._update_virtual_size()

    # --- renderer protocol ---

    def create_decoration(self, key: StyleKey) -> Decoration:
        decoration = Decoration(key=key, style=decoration_style(key, dark=self._dark))
        self._decorations.append(decoration)
        return decoration

    def set_decorations(self, handle: Decoration, ranges: list[DecorationRange]) -> None:
        by_line: dict[int, list[DecorationRange]] = {}
        for r in ranges:
            by_line.setdefault(r.start_line, []).append(r)
        handle.by_line = by_line
        self.refresh()

    def dispose_decoration(self, handle: Decoration) -> None:
        if handle in self._decorations:
            self._decorations.remove(handle)
        self.refresh()

    # --- display ---

    @property
    def document(self) -> TextDocument:
        return self._document

    @property
    def displayed_count(self) -> int:
        return len(self._display)

    def set_displayed_lines(self, indices: list[int] | None) -> None:
        """Show only the given document lines, or all lines for None."""
        self._display = list(range(self._document.line_count)) if indices is None else list(indices)
        self._update_virtual_size()
        self.scroll_home(animate=False)
        self.refresh()

    def _gutter_width(self) -> int:
        return len(str(self._document.line_count)) + 1 if self._show_line_numbers else 0

    def _update_virtual_size(self) -> None:
        width = max((len(self._document.line_at(i)) for i in self._display), default=0)
        self.virtual_size = Size(width + self._gutter_width(), len(self._display))

    def action_toggle_line_numbers(self) -> None:
        self._show_line_numbers = not self._show_line_numbers
        self._update_virtual_size()
        self.refresh()

    def _line_spans(self, index: int, text: str) -> list[tuple[int, int, Style]]:
        spans: list[tuple[int, int, Style]] = []
        for decoration in self._decorations:
            for r in decoration.by_line.get(index, ()):
                end = len(text) if r.whole_line else r.end_col
                spans.append((r.start_col, end, decoration.style))
        return spans

    def render_line(self, y: int) -> Strip:
        scroll_x, scroll_y = self.scroll_offset
        row = scroll_y + y
        width = self.scrollable_content_region.width
        if row >= len(self._display) or width <= 0:
            return Strip.blank(max(width, 0), self.rich_style)

        index = self._display[row]
        text = self._document.line_at(index)
        segments: list[Segment] = []
        gutter = self._gutter_width()
        if gutter:
            lineno_style = self.get_component_rich_style("logview--line-number")
            segments.append(Segment(f"{index + 1:>{gutter - 1}} ", lineno_style))
        segments.extend(split_with_decorations(text, self._line_spans(index, text), self.rich_style))
        strip = Strip(segments)
        return strip.crop(scroll_x, scroll_x + width).extend_cell_length(width, self.rich_style)
