"""Filter group model: CRUD, persistence, default presets and export/import."""

from __future__ import annotations

import json
import logging
import uuid
from typing import TYPE_CHECKING, Any, Literal

from pydantic import ValidationError

from loglens import __version__
from loglens.colors import preset_ids
from loglens.errors import NotFoundError, ParseError
from loglens.models import (
    ExcludeStyle,
    FilterGroup,
    FilterItem,
    FilterMode,
    FilterType,
    HighlightMode,
    ImportResult,
)
from loglens.store import KeyValueStore, MemoryStore

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)

STORAGE_KEY = "loglens.filterGroups"

_CONTEXT_LEVELS = (0, 3, 5, 9)

_DEFAULT_PRESETS: list[tuple[str, str]] = [
    (r"^\d{2}-\d{2}\s\d{2}:\d{2}:\d{2}\.\d{3}", "Logcat style"),
    (r"^\s*\d+\s+\d+\s+[a-zA-Z_]\S*\s+\S+\s+-?\d+", "Process Info"),
]


def _new_id(taken: Iterable[str] = ()) -> str:
    used = set(taken)
    while True:
        candidate = uuid.uuid4().hex[:12]
        if candidate not in used:
            return candidate


def default_groups() -> list[FilterGroup]:
    """Built-in preset groups, created disabled."""
    filters = [
        FilterItem(id=_new_id(), keyword=keyword, type=FilterType.INCLUDE, is_regex=True, nickname=nickname)
        for keyword, nickname in _DEFAULT_PRESETS
    ]
    return [FilterGroup(id=_new_id(), name="Presets", is_enabled=False, is_regex=True, filters=filters)]


def restore_defaults(groups: list[FilterGroup]) -> list[FilterGroup]:
    """Return groups with the default presets appended when no regex group is left.

    Called after every removal: deleting the last regex-mode group brings
    the built-in presets back.
    """
    if any(g.is_regex for g in groups):
        return groups
    taken = {g.id for g in groups}
    restored = list(groups)
    for group in default_groups():
        if group.id in taken:
            group.id = _new_id(taken)
        restored.append(group)
    return restored


def _filter_to_dict(item: FilterItem) -> dict[str, Any]:
    d: dict[str, Any] = {
        "id": item.id,
        "keyword": item.keyword,
        "type": item.type.value,
        "isRegex": item.is_regex,
        "isEnabled": item.is_enabled,
        "caseSensitive": item.case_sensitive,
        "contextLine": item.context_line,
        "highlightMode": int(item.highlight_mode),
        "excludeStyle": item.exclude_style.value,
    }
    if item.nickname is not None:
        d["nickname"] = item.nickname
    if item.color is not None:
        d["color"] = item.color
    return d


def _group_to_dict(group: FilterGroup) -> dict[str, Any]:
    return {
        "id": group.id,
        "name": group.name,
        "isRegex": group.is_regex,
        "isEnabled": group.is_enabled,
        "filters": [_filter_to_dict(f) for f in group.filters],
    }


def _dict_to_filter(d: Any, taken: set[str]) -> FilterItem:  # noqa: ANN401
    if not isinstance(d, dict) or not isinstance(d.get("keyword"), str):
        msg = "Each filter needs a 'keyword' string"
        raise ParseError(msg)
    data = {k: v for k, v in d.items() if v is not None and k not in {"resultCount", "result_count"}}
    item_id = data.get("id")
    if not isinstance(item_id, str) or not item_id or item_id in taken:
        data["id"] = _new_id(taken)
    data.setdefault("type", FilterType.INCLUDE.value)
    try:
        item = FilterItem.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid filter {d.get('keyword')!r}: {e.errors()[0]['msg']}"
        raise ParseError(msg) from e
    taken.add(item.id)
    return item


def _dict_to_group(d: Any, mode: FilterMode, taken: set[str]) -> FilterGroup:  # noqa: ANN401
    if not isinstance(d, dict) or not isinstance(d.get("name"), str):
        msg = "Each group needs a 'name' string"
        raise ParseError(msg)
    raw_filters = d.get("filters") or []
    if not isinstance(raw_filters, list):
        msg = f"Group {d['name']!r}: 'filters' must be a list"
        raise ParseError(msg)
    filter_ids: set[str] = set()
    filters = [_dict_to_filter(f, filter_ids) for f in raw_filters]
    group_id = d.get("id")
    if not isinstance(group_id, str) or not group_id or group_id in taken:
        group_id = _new_id(taken)
    data = {k: d[k] for k in ("isEnabled", "isRegex", "isExpanded") if d.get(k) is not None}
    data.setdefault("isRegex", mode.is_regex)
    try:
        group = FilterGroup.model_validate({**data, "id": group_id, "name": d["name"], "filters": filters})
    except ValidationError as e:
        msg = f"Invalid group {d['name']!r}: {e.errors()[0]['msg']}"
        raise ParseError(msg) from e
    taken.add(group_id)
    return group


def parse_export_document(text: str, mode: FilterMode = FilterMode.WORD) -> list[FilterGroup]:
    """Parse an export document into groups, assigning ids where missing."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        msg = f"Import document is not valid JSON: {e.msg} (line {e.lineno})"
        raise ParseError(msg) from e
    if not isinstance(data, dict) or not isinstance(data.get("groups"), list):
        msg = "Import document lacks a 'groups' array"
        raise ParseError(msg)
    taken: set[str] = set()
    return [_dict_to_group(g, mode, taken) for g in data["groups"]]


class FilterManager:
    """Single source of truth for filter groups.

    Every mutation persists immediately to the key-value store and notifies
    listeners. Mutations referencing unknown ids are silent no-ops, since
    they come from interactive flows where the target may just have been
    deleted.
    """

    def __init__(self, store: KeyValueStore | None = None, version: str = __version__) -> None:
        self._store: KeyValueStore = store if store is not None else MemoryStore()
        self._version = version
        self._listeners: list[Callable[[], None]] = []
        self._count_listeners: list[Callable[[], None]] = []
        self._groups: list[FilterGroup] = self._load()
        if not self._groups:
            self._groups = default_groups()
            self._save()

    # --- persistence ---

    def _load(self) -> list[FilterGroup]:
        saved = self._store.get(STORAGE_KEY)
        if not isinstance(saved, list):
            return []
        groups: list[FilterGroup] = []
        for raw in saved:
            try:
                groups.append(FilterGroup.model_validate(raw))
            except ValidationError:
                logger.warning("Dropping unreadable persisted group: %r", raw)
        return groups

    def _save(self) -> None:
        data = [g.model_dump(mode="json", by_alias=True, exclude={"result_count": True}) for g in self._groups]
        for group in data:
            for item in group["filters"]:
                item.pop("resultCount", None)
        self._store.set(STORAGE_KEY, data)

    def _changed(self) -> None:
        self._save()
        for listener in list(self._listeners):
            listener()

    def on_change(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a change listener. Returns a function that unregisters it."""
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def on_result_counts(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a listener for result count updates."""
        self._count_listeners.append(callback)
        return lambda: self._count_listeners.remove(callback)

    # --- lookup ---

    def get_groups(self) -> list[FilterGroup]:
        """Snapshot of all groups in insertion order."""
        return [g.model_copy(deep=True) for g in self._groups]

    def _find_group(self, group_id: str) -> FilterGroup | None:
        return next((g for g in self._groups if g.id == group_id), None)

    def _find_filter(self, group_id: str, filter_id: str) -> tuple[FilterGroup, FilterItem] | None:
        group = self._find_group(group_id)
        if group is None:
            logger.debug("Group %s not found", group_id)
            return None
        item = next((f for f in group.filters if f.id == filter_id), None)
        if item is None:
            logger.debug("Filter %s not found in group '%s'", filter_id, group.name)
            return None
        return group, item

    def get_group(self, group_id: str) -> FilterGroup | None:
        group = self._find_group(group_id)
        return group.model_copy(deep=True) if group is not None else None

    def require_group(self, group_id: str) -> FilterGroup:
        """Like get_group, but raise NotFoundError for unknown ids."""
        group = self.get_group(group_id)
        if group is None:
            msg = f"Filter group '{group_id}' not found"
            raise NotFoundError(msg)
        return group

    def find_group_by_name(self, name: str) -> FilterGroup | None:
        group = next((g for g in self._groups if g.name.lower() == name.lower()), None)
        return group.model_copy(deep=True) if group is not None else None

    # --- groups ---

    def add_group(self, name: str, is_regex: bool = False) -> FilterGroup:  # noqa: FBT001, FBT002
        group = FilterGroup(id=_new_id(g.id for g in self._groups), name=name, is_enabled=True, is_regex=is_regex)
        self._groups.append(group)
        logger.info("Filter group added: %s (regex: %s)", name, is_regex)
        self._changed()
        return group.model_copy(deep=True)

    def remove_group(self, group_id: str) -> None:
        """Remove a group.

        Defaults are restored when the last group is removed: if no regex-mode
        group remains afterwards, the built-in presets are recreated.
        """
        group = self._find_group(group_id)
        if group is None:
            logger.debug("Group %s not found", group_id)
            return
        self._groups = restore_defaults([g for g in self._groups if g.id != group_id])
        logger.info("Filter group removed: %s", group.name)
        self._changed()

    def rename_group(self, group_id: str, name: str) -> None:
        group = self._find_group(group_id)
        if group is None:
            return
        group.name = name
        self._changed()

    def toggle_group(self, group_id: str) -> None:
        group = self._find_group(group_id)
        if group is None:
            logger.debug("Group %s not found", group_id)
            return
        group.is_enabled = not group.is_enabled
        logger.info("Filter group '%s' %s", group.name, "enabled" if group.is_enabled else "disabled")
        self._changed()

    # --- filters ---

    def add_filter(
        self,
        group_id: str,
        keyword: str,
        filter_type: FilterType | str,
        is_regex: bool = False,  # noqa: FBT001, FBT002
        nickname: str | None = None,
    ) -> FilterItem | None:
        """Append a filter to a group.

        Returns None if the group does not exist or an equivalent filter is
        already present.
        """
        group = self._find_group(group_id)
        if group is None:
            logger.debug("Cannot add filter: group %s not found", group_id)
            return None
        ftype = FilterType(filter_type)
        for existing in group.filters:
            if is_regex:
                duplicate = existing.keyword == keyword and existing.nickname == nickname
            else:
                duplicate = existing.keyword.lower() == keyword.lower() and existing.type == ftype
            if duplicate:
                return None

        item = FilterItem(
            id=_new_id(f.id for f in group.filters),
            keyword=keyword,
            type=ftype,
            is_regex=is_regex,
            nickname=nickname,
            color=self._assign_color(group) if not is_regex and ftype == FilterType.INCLUDE else None,
        )
        group.filters.append(item)
        logger.info("Filter added to group '%s': %s (type: %s, regex: %s)", group.name, keyword, ftype, is_regex)
        self._changed()
        return item.model_copy(deep=True)

    @staticmethod
    def _assign_color(group: FilterGroup) -> str:
        """First color preset unused in the group, cycling once all are taken."""
        used = {f.color for f in group.filters if f.color}
        presets = preset_ids()
        return next((c for c in presets if c not in used), presets[len(group.filters) % len(presets)])

    def remove_filter(self, group_id: str, filter_id: str) -> None:
        found = self._find_filter(group_id, filter_id)
        if found is None:
            return
        group, item = found
        group.filters = [f for f in group.filters if f.id != filter_id]
        logger.info("Filter removed from group '%s': %s", group.name, item.keyword)
        self._changed()

    def toggle_filter(self, group_id: str, filter_id: str) -> None:
        found = self._find_filter(group_id, filter_id)
        if found is None:
            return
        group, item = found
        item.is_enabled = not item.is_enabled
        logger.info(
            "Filter '%s' in group '%s' %s", item.keyword, group.name, "enabled" if item.is_enabled else "disabled"
        )
        self._changed()

    def set_filter_exclude_style(self, group_id: str, filter_id: str, style: ExcludeStyle | str) -> None:
        found = self._find_filter(group_id, filter_id)
        if found is None:
            return
        found[1].exclude_style = ExcludeStyle(style)
        self._changed()

    def set_filter_highlight_mode(self, group_id: str, filter_id: str, mode: HighlightMode | int) -> None:
        found = self._find_filter(group_id, filter_id)
        if found is None:
            return
        found[1].highlight_mode = HighlightMode(mode)
        self._changed()

    def toggle_filter_highlight_mode(self, group_id: str, filter_id: str) -> None:
        """Cycle word -> line -> full line -> word."""
        found = self._find_filter(group_id, filter_id)
        if found is None:
            return
        item = found[1]
        item.highlight_mode = HighlightMode((item.highlight_mode + 1) % len(HighlightMode))
        self._changed()

    def toggle_filter_case_sensitivity(self, group_id: str, filter_id: str) -> None:
        found = self._find_filter(group_id, filter_id)
        if found is None:
            return
        found[1].case_sensitive = not found[1].case_sensitive
        self._changed()

    def set_filter_context_line(self, group_id: str, filter_id: str, context_line: int) -> None:
        found = self._find_filter(group_id, filter_id)
        if found is None:
            return
        found[1].context_line = max(0, context_line)
        self._changed()

    def toggle_filter_context_line(self, group_id: str, filter_id: str) -> None:
        """Cycle the context size through 0, 3, 5 and 9 lines."""
        found = self._find_filter(group_id, filter_id)
        if found is None:
            return
        item = found[1]
        current = _CONTEXT_LEVELS.index(item.context_line) if item.context_line in _CONTEXT_LEVELS else -1
        item.context_line = _CONTEXT_LEVELS[(current + 1) % len(_CONTEXT_LEVELS)]
        self._changed()

    def update_filter_color(self, group_id: str, filter_id: str, color: str) -> None:
        found = self._find_filter(group_id, filter_id)
        if found is None:
            return
        found[1].color = color
        self._changed()

    def move_filter(
        self, group_id: str, active_id: str, target_id: str, position: Literal["before", "after"] = "before"
    ) -> None:
        """Move a filter next to another one within the same group."""
        group = self._find_group(group_id)
        if group is None or active_id == target_id:
            return
        ids = [f.id for f in group.filters]
        if active_id not in ids or target_id not in ids:
            return
        active = group.filters.pop(ids.index(active_id))
        target_index = next(i for i, f in enumerate(group.filters) if f.id == target_id)
        if position == "after":
            target_index += 1
        group.filters.insert(target_index, active)
        self._changed()

    def update_result_counts(self, counts: dict[str, int]) -> None:
        """Store per-filter match counts; group counts are the sum of their filters."""
        changed = False
        for group in self._groups:
            total = 0
            for item in group.filters:
                count = counts.get(item.id, 0)
                total += count
                if item.result_count != count:
                    item.result_count = count
                    changed = True
            if group.result_count != total:
                group.result_count = total
                changed = True
        if changed:
            for listener in list(self._count_listeners):
                listener()

    # --- export / import ---

    def _document(self, groups: Iterable[FilterGroup]) -> str:
        return json.dumps({"version": self._version, "groups": [_group_to_dict(g) for g in groups]}, indent=2)

    def export_group(self, group_id: str) -> str | None:
        group = self._find_group(group_id)
        if group is None:
            return None
        return self._document([group])

    def export_filters(self, mode: FilterMode | str, group_ids: Iterable[str] | None = None) -> str:
        """Export every group of the given mode, optionally restricted to group_ids."""
        wanted = FilterMode(mode).is_regex
        selected = [g for g in self._groups if g.is_regex == wanted]
        if group_ids is not None:
            ids = set(group_ids)
            selected = [g for g in selected if g.id in ids]
        return self._document(selected)

    def import_filters(self, text: str, mode: FilterMode | str, overwrite: bool = False) -> ImportResult:  # noqa: FBT001, FBT002
        """Import groups from an export document.

        With overwrite, existing groups of the same mode are dropped first;
        groups of the other mode are untouched. Raises ParseError without
        changing anything if the document is invalid.
        """
        fmode = FilterMode(mode)
        imported = parse_export_document(text, fmode)

        kept = [g for g in self._groups if g.is_regex != fmode.is_regex] if overwrite else list(self._groups)
        taken = {g.id for g in kept}
        for group in imported:
            if group.id in taken:
                group.id = _new_id(taken)
            taken.add(group.id)
        self._groups = kept + imported
        if overwrite:
            self._groups = restore_defaults(self._groups)
        logger.info("Imported %d %s group(s) (overwrite: %s)", len(imported), fmode, overwrite)
        self._changed()
        return ImportResult(count=len(imported))
