"""Match engine shared by the batch processor and the live highlighter.

Semantics:
- Only filters that are enabled inside an enabled group are active.
- No active filters at all: every line is shown.
- Otherwise each enabled group gives a verdict of
  (no include filters OR any include matches) AND (no exclude matches),
  and a line is shown if any group's verdict is true.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loglens.errors import InvalidPatternError
from loglens.models import FilterItem, FilterType, HighlightMode

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from loglens.models import FilterGroup

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MatchRange:
    """Character span of a match on one line."""

    start: int
    end: int
    whole_line: bool = False


@dataclass(slots=True)
class CompiledFilter:
    """A filter item with its pattern compiled once for the whole pass."""

    item: FilterItem
    group_id: str
    pattern: re.Pattern[str] | None

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def filter_type(self) -> FilterType:
        return self.item.type

    @property
    def context_line(self) -> int:
        return self.item.context_line

    def matches(self, line: str) -> bool:
        return self.pattern is not None and self.pattern.search(line) is not None

    def finditer(self, line: str) -> Iterator[re.Match[str]]:
        if self.pattern is None:
            return iter(())
        return (m for m in self.pattern.finditer(line) if m.end() > m.start())


@dataclass(slots=True)
class CompiledGroup:
    group_id: str
    includes: list[CompiledFilter] = field(default_factory=list)
    excludes: list[CompiledFilter] = field(default_factory=list)


@dataclass(slots=True)
class LineMatch:
    """Verdict for a single line.

    context_lines is the largest context setting among include filters that
    matched inside a group whose verdict was true.
    """

    matched: bool
    context_lines: int = 0


@dataclass(slots=True)
class MatchPlan:
    """Compiled, immutable view of the active filters for one pass."""

    groups: list[CompiledGroup] = field(default_factory=list)
    errors: list[InvalidPatternError] = field(default_factory=list)

    @property
    def filters(self) -> list[CompiledFilter]:
        return [f for g in self.groups for f in (*g.includes, *g.excludes)]

    @property
    def is_empty(self) -> bool:
        """True when no filter is active (every line is shown)."""
        return not any(g.includes or g.excludes for g in self.groups)

    @property
    def max_context(self) -> int:
        return max((f.context_line for g in self.groups for f in g.includes), default=0)


def compile_pattern(item: FilterItem, *, is_regex: bool | None = None) -> re.Pattern[str] | None:
    """Compile a filter keyword. Empty keywords compile to None (never match).

    Raises InvalidPatternError if a regex keyword does not compile.
    """
    if not item.keyword:
        return None
    regex = item.is_regex if is_regex is None else is_regex
    source = item.keyword if regex else re.escape(item.keyword)
    flags = 0 if item.case_sensitive else re.IGNORECASE
    try:
        return re.compile(source, flags)
    except re.error as e:
        raise InvalidPatternError(item.id, item.keyword, str(e)) from e


def compile_groups(groups: Iterable[FilterGroup]) -> MatchPlan:
    """Build the match plan from enabled groups and their enabled items.

    A filter whose pattern fails to compile is kept in the plan as a
    never-matching filter; the error is logged once and recorded on the plan.
    """
    plan = MatchPlan()
    for group in groups:
        if not group.is_enabled:
            continue
        compiled = CompiledGroup(group_id=group.id)
        for item in group.filters:
            if not item.is_enabled:
                continue
            try:
                pattern = compile_pattern(item, is_regex=item.is_regex or group.is_regex)
            except InvalidPatternError as e:
                logger.warning("%s; filter disabled for this pass", e)
                plan.errors.append(e)
                pattern = None
            cf = CompiledFilter(item=item.model_copy(), group_id=group.id, pattern=pattern)
            if item.type == FilterType.INCLUDE:
                compiled.includes.append(cf)
            else:
                compiled.excludes.append(cf)
        plan.groups.append(compiled)
    return plan


def _group_verdict(line: str, group: CompiledGroup) -> tuple[bool, int]:
    if any(f.matches(line) for f in group.excludes):
        return False, 0
    if not group.includes:
        return True, 0
    matched = [f for f in group.includes if f.matches(line)]
    if not matched:
        return False, 0
    return True, max(f.context_line for f in matched)


def check_line(line: str, plan: MatchPlan) -> LineMatch:
    """Decide whether a single line is shown under the plan."""
    if plan.is_empty:
        return LineMatch(matched=True)

    shown = False
    context = 0
    for group in plan.groups:
        verdict, group_context = _group_verdict(line, group)
        if verdict:
            shown = True
            context = max(context, group_context)
    return LineMatch(matched=shown, context_lines=context)


def find_ranges(line: str, compiled: CompiledFilter) -> tuple[list[MatchRange], int]:
    """Ranges to highlight for one filter on one line, and the number of matches.

    Word mode yields every match span; line mode spans from the first match
    to the end of the line; full-line mode covers the whole line.
    """
    spans = [(m.start(), m.end()) for m in compiled.finditer(line)]
    if not spans:
        return [], 0
    mode = compiled.item.highlight_mode
    if mode == HighlightMode.WORD:
        return [MatchRange(start, end) for start, end in spans], len(spans)
    if mode == HighlightMode.LINE:
        return [MatchRange(spans[0][0], len(line))], len(spans)
    return [MatchRange(0, len(line), whole_line=True)], len(spans)


def apply_filters(lines: list[str], groups: Iterable[FilterGroup]) -> list[int]:
    """Indices of lines shown under the given groups (no context expansion)."""
    plan = compile_groups(groups)
    return [i for i, line in enumerate(lines) if check_line(line, plan).matched]
