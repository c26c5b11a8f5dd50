"""Textual application for loglens."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from textual.app import App, ComposeResult
from textual.binding import Binding, BindingType
from textual.widgets import Footer, Static

from loglens.config import load_config
from loglens.highlighter import LiveHighlighter
from loglens.processor import select_lines
from loglens.widgets.log_view import LogView

if TYPE_CHECKING:
    from loglens.document import TextDocument
    from loglens.filter_manager import FilterManager


class LogLensApp(App[None]):
    """Log viewer with live filter highlighting."""

    ENABLE_COMMAND_PALETTE = False

    BINDINGS: ClassVar[list[BindingType]] = [
        Binding("f", "toggle_filtered", "Filtered"),
        Binding("r", "refresh_highlights", "Refresh"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self, document: TextDocument, filter_manager: FilterManager, source: str = "") -> None:
        super().__init__()
        self._document = document
        self._filter_manager = filter_manager
        self._source = source
        self._filtered = False
        self._config = load_config()
        self.theme = self._config.theme
        self._highlighter: LiveHighlighter | None = None
        self._unsubscribe = filter_manager.on_change(self._on_filters_changed)

    def compose(self) -> ComposeResult:
        yield LogView(self._document, dark="light" not in self.theme, id="log-view")
        yield Static(self._source, id="status-bar")
        yield Footer()

    def on_mount(self) -> None:
        log_view = self.query_one("#log-view", LogView)
        self._highlighter = LiveHighlighter(
            self._filter_manager,
            log_view,
            chunk_size=self._config.chunk_size,
            chunk_threshold=self._config.chunk_threshold,
        )
        log_view.focus()
        self._schedule_highlight()

    def on_unmount(self) -> None:
        self._unsubscribe()
        if self._highlighter is not None:
            self._highlighter.dispose()

    def _schedule_highlight(self) -> None:
        self.run_worker(self._highlight(), exclusive=True, group="highlight")

    async def _highlight(self) -> None:
        if self._highlighter is None:
            return
        log_view = self.query_one("#log-view", LogView)
        counts = await self._highlighter.update_highlights(self._document)
        if counts is None:
            return
        self._filter_manager.update_result_counts(counts)
        total = sum(counts.values())
        status = f"{self._source}  {log_view.displayed_count}/{self._document.line_count} lines  {total} matches"
        self.query_one("#status-bar", Static).update(status)

    def _on_filters_changed(self) -> None:
        if self._highlighter is not None:
            self._highlighter.refresh_decoration_type()
        if self._filtered:
            self._apply_filtered_view()
        self._schedule_highlight()

    def _apply_filtered_view(self) -> None:
        log_view = self.query_one("#log-view", LogView)
        if self._filtered:
            indices, _ = select_lines(self._document.lines, self._filter_manager.get_groups())
            log_view.set_displayed_lines(indices)
        else:
            log_view.set_displayed_lines(None)

    def action_toggle_filtered(self) -> None:
        self._filtered = not self._filtered
        self._apply_filtered_view()
        self._schedule_highlight()

    def action_refresh_highlights(self) -> None:
        if self._highlighter is not None:
            self._highlighter.refresh_decoration_type()
        self._schedule_highlight()
