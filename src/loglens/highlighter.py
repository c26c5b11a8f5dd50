"""Live highlighting of filter matches in an open document."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Protocol

from loglens.matcher import CompiledFilter, compile_groups, find_ranges
from loglens.models import ExcludeStyle, FilterItem, FilterType, HighlightMode

if TYPE_CHECKING:
    from collections.abc import Sequence

    from loglens.document import Document, LineSpan
    from loglens.filter_manager import FilterManager

logger = logging.getLogger(__name__)

CHUNK_THRESHOLD = 5000
CHUNK_SIZE = 1000

DecorationPart = Literal["text", "line", "keyword"]


@dataclass(frozen=True, slots=True)
class StyleKey:
    """Identity of a decoration style; one renderer handle exists per key."""

    filter_type: FilterType
    highlight_mode: HighlightMode
    exclude_style: ExcludeStyle | None = None
    color: str | None = None
    part: DecorationPart = "text"


@dataclass(frozen=True, slots=True)
class DecorationRange:
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    whole_line: bool = False


class Renderer(Protocol):
    """Applies style ranges to a displayed document."""

    def create_decoration(self, key: StyleKey) -> Any: ...  # noqa: ANN401

    def set_decorations(self, handle: Any, ranges: list[DecorationRange]) -> None: ...  # noqa: ANN401

    def dispose_decoration(self, handle: Any) -> None: ...  # noqa: ANN401


def style_keys_for(item: FilterItem) -> list[StyleKey]:
    """Decoration styles a filter renders with.

    Include filters use one colored style. Hidden excludes use one
    transparent style over the match; line-through excludes strike the
    whole line and embolden the matched keyword.
    """
    if item.type == FilterType.INCLUDE:
        return [StyleKey(item.type, item.highlight_mode, color=item.color)]
    if item.exclude_style == ExcludeStyle.HIDDEN:
        return [StyleKey(item.type, item.highlight_mode, ExcludeStyle.HIDDEN)]
    return [
        StyleKey(item.type, item.highlight_mode, ExcludeStyle.LINE_THROUGH, part="line"),
        StyleKey(item.type, item.highlight_mode, ExcludeStyle.LINE_THROUGH, part="keyword"),
    ]


@dataclass(slots=True)
class ScanResult:
    ranges: dict[StyleKey, list[DecorationRange]] = field(default_factory=dict)
    counts: dict[str, int] = field(default_factory=dict)


def scan_lines(document: Document, indices: Sequence[int], filters: list[CompiledFilter]) -> ScanResult:
    """Evaluate every filter on the given lines. Lines are independent of each other."""
    result = ScanResult(counts={f.id: 0 for f in filters})
    keys = {f.id: style_keys_for(f.item) for f in filters}
    for index in indices:
        text = document.line_at(index)
        for compiled in filters:
            spans, count = find_ranges(text, compiled)
            if not count:
                continue
            result.counts[compiled.id] += count
            for key in keys[compiled.id]:
                bucket = result.ranges.setdefault(key, [])
                if key.part == "line":
                    bucket.append(DecorationRange(index, 0, index, len(text), whole_line=True))
                    continue
                bucket.extend(DecorationRange(index, s.start, index, s.end, s.whole_line) for s in spans)
    return result


def merge_results(partials: dict[int, ScanResult]) -> ScanResult:
    """Combine chunk results in chunk order."""
    merged = ScanResult()
    for chunk_index in sorted(partials):
        part = partials[chunk_index]
        for key, ranges in part.ranges.items():
            merged.ranges.setdefault(key, []).extend(ranges)
        for filter_id, count in part.counts.items():
            merged.counts[filter_id] = merged.counts.get(filter_id, 0) + count
    return merged


def visible_line_indices(line_count: int, visible_ranges: Sequence[LineSpan] | None) -> list[int]:
    """Sorted, de-duplicated line indices covered by the visible ranges."""
    if visible_ranges is None:
        return list(range(line_count))
    covered: set[int] = set()
    for span in visible_ranges:
        covered.update(range(max(span.start, 0), min(span.end, line_count)))
    return sorted(covered)


class LiveHighlighter:
    """Computes filter highlights for a document and hands them to a renderer.

    Documents with at least chunk_threshold lines are scanned in chunks of
    chunk_size lines, yielding to the event loop between chunks. Every pass
    gets a generation number; a pass whose generation is no longer the
    newest is dropped before anything is applied.
    """

    def __init__(
        self,
        filter_manager: FilterManager,
        renderer: Renderer,
        *,
        chunk_size: int = CHUNK_SIZE,
        chunk_threshold: int = CHUNK_THRESHOLD,
    ) -> None:
        self._filter_manager = filter_manager
        self._renderer = renderer
        self._chunk_size = max(1, chunk_size)
        self._chunk_threshold = chunk_threshold
        self._handles: dict[StyleKey, Any] = {}
        self._applied: set[StyleKey] = set()
        self._generation = 0
        self._disposed = False

    @property
    def generation(self) -> int:
        return self._generation

    def _handle_for(self, key: StyleKey) -> Any:  # noqa: ANN401
        handle = self._handles.get(key)
        if handle is None:
            handle = self._renderer.create_decoration(key)
            self._handles[key] = handle
        return handle

    def _apply(self, result: ScanResult) -> None:
        for key, ranges in result.ranges.items():
            self._renderer.set_decorations(self._handle_for(key), ranges)
        for key in self._applied - result.ranges.keys():
            if key in self._handles:
                self._renderer.set_decorations(self._handles[key], [])
        self._applied = set(result.ranges)

    def update_highlights_sync(
        self, document: Document, visible_ranges: Sequence[LineSpan] | None = None
    ) -> dict[str, int]:
        """Single blocking pass over the visible lines."""
        self._generation += 1
        if self._disposed:
            return {}
        filters = compile_groups(self._filter_manager.get_groups()).filters
        result = scan_lines(document, visible_line_indices(document.line_count, visible_ranges), filters)
        self._apply(result)
        return result.counts

    async def update_highlights(
        self, document: Document, visible_ranges: Sequence[LineSpan] | None = None
    ) -> dict[str, int] | None:
        """Recompute and apply highlights; returns match counts per filter id.

        Returns None when the pass was superseded by a newer one (or the
        highlighter was disposed) and nothing was applied.
        """
        self._generation += 1
        generation = self._generation
        if self._disposed:
            return None

        filters = compile_groups(self._filter_manager.get_groups()).filters
        indices = visible_line_indices(document.line_count, visible_ranges)

        if len(indices) < self._chunk_threshold:
            result = scan_lines(document, indices, filters)
        else:
            partials: dict[int, ScanResult] = {}
            for chunk_index, start in enumerate(range(0, len(indices), self._chunk_size)):
                partials[chunk_index] = scan_lines(document, indices[start : start + self._chunk_size], filters)
                await asyncio.sleep(0)
                if generation != self._generation:
                    logger.debug("Highlight pass %d superseded after chunk %d", generation, chunk_index)
                    return None
            result = merge_results(partials)

        if generation != self._generation:
            return None
        self._apply(result)
        return result.counts

    def refresh_decoration_type(self) -> None:
        """Drop cached renderer handles so the next pass recreates them.

        Needed whenever a filter's highlight mode or exclude style changes.
        """
        for handle in self._handles.values():
            self._renderer.dispose_decoration(handle)
        self._handles.clear()
        self._applied.clear()

    def dispose(self) -> None:
        """Release all renderer handles and cancel any in-flight pass."""
        self._generation += 1
        self._disposed = True
        self.refresh_decoration_type()
