"""Tests for the filter manager."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from loglens.errors import NotFoundError, ParseError
from loglens.filter_manager import (
    STORAGE_KEY,
    FilterManager,
    default_groups,
    parse_export_document,
    restore_defaults,
)
from loglens.models import ExcludeStyle, FilterGroup, FilterMode, FilterType, HighlightMode
from loglens.store import JsonFileStore, MemoryStore

if TYPE_CHECKING:
    from pathlib import Path


def _regex_groups(manager: FilterManager) -> list[FilterGroup]:
    return [g for g in manager.get_groups() if g.is_regex]


class TestDefaults:
    def test_new_manager_has_presets(self, manager: FilterManager) -> None:
        groups = manager.get_groups()
        assert len(groups) == 1
        presets = groups[0]
        assert presets.name == "Presets"
        assert presets.is_regex is True
        assert presets.is_enabled is False
        assert [f.nickname for f in presets.filters] == ["Logcat style", "Process Info"]
        assert all(f.is_regex for f in presets.filters)

    def test_presets_persisted_on_first_start(self, store: MemoryStore, manager: FilterManager) -> None:
        saved = store.get(STORAGE_KEY)
        assert saved[0]["name"] == "Presets"
        assert saved[0]["isRegex"] is True

    def test_restore_defaults_adds_presets_without_regex_group(self) -> None:
        groups = [FilterGroup(id="g1", name="Words")]
        restored = restore_defaults(groups)
        assert [g.name for g in restored] == ["Words", "Presets"]

    def test_restore_defaults_keeps_existing_regex_group(self) -> None:
        groups = [FilterGroup(id="g1", name="Mine", is_regex=True)]
        assert restore_defaults(groups) == groups

    def test_default_groups_have_unique_ids(self) -> None:
        presets = default_groups()[0]
        assert len({f.id for f in presets.filters}) == 2


class TestGroups:
    def test_add_group(self, store: MemoryStore, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        assert group.name == "Errors"
        assert group.is_enabled is True
        assert group.is_regex is False
        assert group.filters == []
        assert store.get(STORAGE_KEY)[-1]["id"] == group.id

    def test_group_ids_unique(self, manager: FilterManager) -> None:
        ids = {manager.add_group(f"G{i}").id for i in range(20)}
        assert len(ids) == 20

    def test_remove_word_group_keeps_regex_groups(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        manager.remove_group(group.id)
        assert [g.name for g in manager.get_groups()] == ["Presets"]

    def test_remove_last_regex_group_restores_presets(self, manager: FilterManager) -> None:
        words = manager.add_group("Errors")
        presets = manager.get_groups()[0]
        manager.remove_group(presets.id)

        groups = manager.get_groups()
        assert [g.name for g in groups] == ["Errors", "Presets"]
        assert groups[0].id == words.id
        assert groups[1].id != presets.id
        assert groups[1].is_enabled is False

    def test_remove_regex_group_with_another_left(self, manager: FilterManager) -> None:
        mine = manager.add_group("Mine", is_regex=True)
        presets = manager.get_groups()[0]
        manager.remove_group(presets.id)
        assert [g.id for g in _regex_groups(manager)] == [mine.id]

    def test_remove_unknown_group_is_noop(self, manager: FilterManager) -> None:
        before = manager.get_groups()
        manager.remove_group("nope")
        assert manager.get_groups() == before

    def test_toggle_group(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        manager.toggle_group(group.id)
        assert manager.require_group(group.id).is_enabled is False
        manager.toggle_group(group.id)
        assert manager.require_group(group.id).is_enabled is True

    def test_toggle_unknown_group_is_noop(self, manager: FilterManager) -> None:
        manager.toggle_group("nope")

    def test_rename_and_find_by_name(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        manager.rename_group(group.id, "Failures")
        found = manager.find_group_by_name("FAILURES")
        assert found is not None
        assert found.id == group.id

    def test_require_group_raises(self, manager: FilterManager) -> None:
        with pytest.raises(NotFoundError):
            manager.require_group("nope")

    def test_get_groups_returns_snapshot(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        snapshot = manager.get_groups()
        snapshot[-1].name = "changed"
        snapshot[-1].filters.append(snapshot[0].filters[0])
        current = manager.require_group(group.id)
        assert current.name == "Errors"
        assert current.filters == []


class TestFilters:
    def test_add_filter_defaults(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        item = manager.add_filter(group.id, "ERROR", FilterType.INCLUDE)
        assert item is not None
        assert item.keyword == "ERROR"
        assert item.is_enabled is True
        assert item.context_line == 0
        assert item.highlight_mode == HighlightMode.WORD
        assert item.exclude_style == ExcludeStyle.LINE_THROUGH
        assert manager.require_group(group.id).filters[0].id == item.id

    def test_word_include_gets_distinct_colors(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        first = manager.add_filter(group.id, "ERROR", FilterType.INCLUDE)
        second = manager.add_filter(group.id, "WARN", FilterType.INCLUDE)
        excluded = manager.add_filter(group.id, "noise", FilterType.EXCLUDE)
        assert first is not None and second is not None and excluded is not None
        assert first.color == "color1"
        assert second.color == "color2"
        assert excluded.color is None

    def test_add_filter_unknown_group(self, manager: FilterManager) -> None:
        assert manager.add_filter("nope", "ERROR", FilterType.INCLUDE) is None

    def test_duplicate_word_filter_rejected(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        manager.add_filter(group.id, "ERROR", FilterType.INCLUDE)
        assert manager.add_filter(group.id, "error", FilterType.INCLUDE) is None
        assert manager.add_filter(group.id, "error", FilterType.EXCLUDE) is not None

    def test_duplicate_regex_filter_rejected(self, manager: FilterManager) -> None:
        group = manager.add_group("Patterns", is_regex=True)
        manager.add_filter(group.id, r"\d+", FilterType.INCLUDE, is_regex=True, nickname="digits")
        assert manager.add_filter(group.id, r"\d+", FilterType.INCLUDE, is_regex=True, nickname="digits") is None
        assert manager.add_filter(group.id, r"\d+", FilterType.INCLUDE, is_regex=True, nickname="numbers") is not None

    def test_remove_filter(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        item = manager.add_filter(group.id, "ERROR", FilterType.INCLUDE)
        assert item is not None
        manager.remove_filter(group.id, item.id)
        assert manager.require_group(group.id).filters == []

    def test_mutations_on_unknown_ids_are_noops(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        before = manager.get_groups()
        manager.remove_filter(group.id, "nope")
        manager.toggle_filter("nope", "nope")
        manager.set_filter_exclude_style(group.id, "nope", ExcludeStyle.HIDDEN)
        manager.set_filter_highlight_mode("nope", "nope", HighlightMode.LINE)
        manager.toggle_filter_context_line(group.id, "nope")
        manager.update_filter_color(group.id, "nope", "color3")
        assert manager.get_groups() == before

    def test_toggle_filter_and_case(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        item = manager.add_filter(group.id, "ERROR", FilterType.INCLUDE)
        assert item is not None
        manager.toggle_filter(group.id, item.id)
        manager.toggle_filter_case_sensitivity(group.id, item.id)
        stored = manager.require_group(group.id).filters[0]
        assert stored.is_enabled is False
        assert stored.case_sensitive is True

    def test_context_line_cycles(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        item = manager.add_filter(group.id, "ERROR", FilterType.INCLUDE)
        assert item is not None
        seen = []
        for _ in range(5):
            manager.toggle_filter_context_line(group.id, item.id)
            seen.append(manager.require_group(group.id).filters[0].context_line)
        assert seen == [3, 5, 9, 0, 3]

    def test_set_context_line_clamps_negative(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        item = manager.add_filter(group.id, "ERROR", FilterType.INCLUDE)
        assert item is not None
        manager.set_filter_context_line(group.id, item.id, -4)
        assert manager.require_group(group.id).filters[0].context_line == 0

    def test_highlight_mode_cycles(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        item = manager.add_filter(group.id, "ERROR", FilterType.INCLUDE)
        assert item is not None
        modes = []
        for _ in range(3):
            manager.toggle_filter_highlight_mode(group.id, item.id)
            modes.append(manager.require_group(group.id).filters[0].highlight_mode)
        assert modes == [HighlightMode.LINE, HighlightMode.FULL_LINE, HighlightMode.WORD]

    def test_set_exclude_style(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        item = manager.add_filter(group.id, "noise", FilterType.EXCLUDE)
        assert item is not None
        manager.set_filter_exclude_style(group.id, item.id, "hidden")
        assert manager.require_group(group.id).filters[0].exclude_style == ExcludeStyle.HIDDEN

    def test_move_filter(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        ids = []
        for keyword in ("a", "b", "c"):
            item = manager.add_filter(group.id, keyword, FilterType.INCLUDE)
            assert item is not None
            ids.append(item.id)

        manager.move_filter(group.id, ids[2], ids[0], "before")
        assert [f.keyword for f in manager.require_group(group.id).filters] == ["c", "a", "b"]
        manager.move_filter(group.id, ids[2], ids[1], "after")
        assert [f.keyword for f in manager.require_group(group.id).filters] == ["a", "b", "c"]


class TestListeners:
    def test_change_listener_called_per_mutation(self, manager: FilterManager) -> None:
        calls: list[int] = []
        unsubscribe = manager.on_change(lambda: calls.append(1))
        group = manager.add_group("Errors")
        manager.toggle_group(group.id)
        assert len(calls) == 2

        unsubscribe()
        manager.toggle_group(group.id)
        assert len(calls) == 2

    def test_result_counts(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        a = manager.add_filter(group.id, "a", FilterType.INCLUDE)
        b = manager.add_filter(group.id, "b", FilterType.INCLUDE)
        assert a is not None and b is not None
        notified: list[int] = []
        manager.on_result_counts(lambda: notified.append(1))

        manager.update_result_counts({a.id: 3, b.id: 4})
        stored = manager.require_group(group.id)
        assert [f.result_count for f in stored.filters] == [3, 4]
        assert stored.result_count == 7
        assert notified == [1]

        manager.update_result_counts({a.id: 3, b.id: 4})
        assert notified == [1]

    def test_result_counts_not_persisted(self, store: MemoryStore, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        item = manager.add_filter(group.id, "a", FilterType.INCLUDE)
        assert item is not None
        manager.update_result_counts({item.id: 5})
        manager.toggle_group(group.id)
        saved = store.get(STORAGE_KEY)[-1]
        assert "resultCount" not in saved
        assert "resultCount" not in saved["filters"][0]


class TestPersistence:
    def test_reload_from_memory_store(self, store: MemoryStore, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        manager.add_filter(group.id, "ERROR", FilterType.INCLUDE)

        reloaded = FilterManager(store)
        assert [g.name for g in reloaded.get_groups()] == ["Presets", "Errors"]
        assert reloaded.require_group(group.id).filters[0].keyword == "ERROR"

    def test_reload_from_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "state.json"
        manager = FilterManager(JsonFileStore(path))
        group = manager.add_group("Errors")
        item = manager.add_filter(group.id, "ERROR", FilterType.INCLUDE)
        assert item is not None
        manager.set_filter_highlight_mode(group.id, item.id, HighlightMode.FULL_LINE)

        reloaded = FilterManager(JsonFileStore(path))
        assert reloaded.require_group(group.id).filters[0].highlight_mode == HighlightMode.FULL_LINE

    def test_unreadable_persisted_group_dropped(self) -> None:
        store = MemoryStore({STORAGE_KEY: [{"id": "g1", "name": "ok", "isRegex": True}, {"bogus": True}]})
        manager = FilterManager(store)
        assert [g.id for g in manager.get_groups()] == ["g1"]


class TestExport:
    def test_export_group(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        manager.add_filter(group.id, "ERROR", FilterType.INCLUDE)
        text = manager.export_group(group.id)
        assert text is not None
        data = json.loads(text)
        assert data["version"] == "0.0.0-test"
        assert len(data["groups"]) == 1
        exported = data["groups"][0]
        assert exported["name"] == "Errors"
        assert exported["isRegex"] is False
        assert set(exported["filters"][0]) == {
            "id",
            "keyword",
            "type",
            "isRegex",
            "isEnabled",
            "caseSensitive",
            "contextLine",
            "highlightMode",
            "excludeStyle",
            "color",
        }

    def test_export_unknown_group(self, manager: FilterManager) -> None:
        assert manager.export_group("nope") is None

    def test_export_filters_by_mode(self, manager: FilterManager) -> None:
        manager.add_group("Words")
        words = json.loads(manager.export_filters(FilterMode.WORD))
        regex = json.loads(manager.export_filters("regex"))
        assert [g["name"] for g in words["groups"]] == ["Words"]
        assert [g["name"] for g in regex["groups"]] == ["Presets"]

    def test_export_filters_subset(self, manager: FilterManager) -> None:
        first = manager.add_group("One")
        manager.add_group("Two")
        data = json.loads(manager.export_filters(FilterMode.WORD, [first.id]))
        assert [g["name"] for g in data["groups"]] == ["One"]


class TestImport:
    def test_roundtrip_between_managers(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        manager.add_filter(group.id, "ERROR", FilterType.INCLUDE)
        manager.add_filter(group.id, "heartbeat", FilterType.EXCLUDE)
        document = manager.export_filters(FilterMode.WORD)

        other = FilterManager(MemoryStore())
        result = other.import_filters(document, FilterMode.WORD)
        assert result.count == 1
        imported = other.find_group_by_name("Errors")
        assert imported is not None
        assert [(f.keyword, f.type) for f in imported.filters] == [
            ("ERROR", FilterType.INCLUDE),
            ("heartbeat", FilterType.EXCLUDE),
        ]

    def test_import_appends_with_fresh_ids_on_collision(self, manager: FilterManager) -> None:
        group = manager.add_group("Errors")
        document = manager.export_group(group.id)
        assert document is not None
        manager.import_filters(document, FilterMode.WORD)
        names = [g.name for g in manager.get_groups()]
        assert names == ["Presets", "Errors", "Errors"]
        ids = [g.id for g in manager.get_groups()]
        assert len(set(ids)) == 3

    def test_overwrite_replaces_only_same_mode(self, manager: FilterManager) -> None:
        manager.add_group("Old words")
        document = json.dumps({"version": "1", "groups": [{"name": "New words", "filters": []}]})
        manager.import_filters(document, FilterMode.WORD, overwrite=True)
        assert [g.name for g in manager.get_groups()] == ["Presets", "New words"]

    def test_overwrite_regex_with_empty_document_restores_presets(self, manager: FilterManager) -> None:
        manager.add_group("Words")
        old_presets = manager.get_groups()[0]
        result = manager.import_filters('{"groups": []}', FilterMode.REGEX, overwrite=True)
        assert result.count == 0
        groups = manager.get_groups()
        assert [g.name for g in groups] == ["Words", "Presets"]
        assert groups[1].id != old_presets.id

    def test_empty_groups_array_imports_nothing(self, manager: FilterManager) -> None:
        before = manager.get_groups()
        assert manager.import_filters('{"groups": []}', FilterMode.WORD).count == 0
        assert manager.get_groups() == before

    def test_missing_fields_get_defaults(self) -> None:
        groups = parse_export_document(
            '{"groups": [{"name": "G", "filters": [{"keyword": "x"}, {"keyword": "y", "type": "exclude"}]}]}',
            FilterMode.REGEX,
        )
        group = groups[0]
        assert group.id
        assert group.is_regex is True
        assert group.is_enabled is True
        first, second = group.filters
        assert first.id != second.id
        assert first.type == FilterType.INCLUDE
        assert first.is_enabled is True
        assert first.context_line == 0
        assert second.type == FilterType.EXCLUDE

    def test_group_flags_validated(self) -> None:
        groups = parse_export_document(
            '{"groups": [{"name": "G", "isEnabled": "false", "isRegex": 0, "isExpanded": null}]}', FilterMode.REGEX
        )
        assert groups[0].is_enabled is False
        assert groups[0].is_regex is False
        assert groups[0].is_expanded is True

    @pytest.mark.parametrize("field", ["isEnabled", "isRegex", "isExpanded"])
    def test_bad_group_flag_rejected(self, manager: FilterManager, field: str) -> None:
        before = manager.get_groups()
        with pytest.raises(ParseError):
            manager.import_filters(json.dumps({"groups": [{"name": "G", field: "sometimes"}]}), FilterMode.WORD)
        assert manager.get_groups() == before

    def test_legacy_flag_on_import(self) -> None:
        groups = parse_export_document(
            '{"groups": [{"name": "G", "filters": [{"keyword": "x", "enableFullLineHighlight": true}]}]}'
        )
        assert groups[0].filters[0].highlight_mode == HighlightMode.LINE

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            "[]",
            '{"version": "1"}',
            '{"groups": {}}',
            '{"groups": [{"filters": []}]}',
            '{"groups": [{"name": "G", "filters": [{"type": "include"}]}]}',
            '{"groups": [{"name": "G", "filters": [{"keyword": "x", "type": "bogus"}]}]}',
        ],
    )
    def test_invalid_documents_rejected(self, manager: FilterManager, text: str) -> None:
        before = manager.get_groups()
        with pytest.raises(ParseError):
            manager.import_filters(text, FilterMode.WORD, overwrite=True)
        assert manager.get_groups() == before
