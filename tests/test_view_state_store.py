"""Tests for view state persistence."""

import json

import pytest

from winstride.config.view_state_store import (
    ViewStateStore,
    load_filters,
    load_visible_columns,
    save_filters,
    save_visible_columns,
)
from winstride.data.filter_pipeline import EventFilters
from winstride.data.filter_state import FilterState, select_only
from winstride.modules import get_module
from winstride.utils.error_handler import StateStoreError


@pytest.fixture
def state_file(tmp_path):
    return str(tmp_path / "state" / "view_state.json")


def _same_defaults(filters, module):
    """Compare against defaults, ignoring the time-dependent start bound."""
    defaults = module.default_filters()
    assert filters.replace(time_start="") == defaults.replace(time_start="")
    assert filters.time_start


# ── ViewStateStore ────────────────────────────────────────────────────


class TestViewStateStore:
    def test_memory_store(self):
        store = ViewStateStore()
        store.set("a", "1")
        assert store.get("a") == "1"
        assert "a" in store
        store.remove("a")
        assert store.get("a") is None

    def test_persists_across_instances(self, state_file):
        ViewStateStore(state_file).set("winstride:psColumns", '["time"]')
        reopened = ViewStateStore(state_file)
        assert reopened.get("winstride:psColumns") == '["time"]'
        assert reopened.keys() == ["winstride:psColumns"]

    @pytest.mark.parametrize("content", ["", "{not json", "[1, 2]"])
    def test_unreadable_file_is_empty(self, tmp_path, content):
        path = tmp_path / "view_state.json"
        path.write_text(content)
        assert ViewStateStore(str(path)).keys() == []

    def test_non_string_entries_ignored(self, tmp_path):
        path = tmp_path / "view_state.json"
        path.write_text(json.dumps({"good": "x", "bad": 5}))
        assert ViewStateStore(str(path)).keys() == ["good"]

    def test_write_failure_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = ViewStateStore(str(blocker / "view_state.json"))
        with pytest.raises(StateStoreError):
            store.set("k", "v")


# ── Filters ───────────────────────────────────────────────────────────


class TestFilterPersistence:
    def test_missing_entry_gives_defaults(self):
        module = get_module("security")
        _same_defaults(load_filters(ViewStateStore(), module), module)

    def test_round_trip(self, state_file):
        module = get_module("sysmon")
        filters = module.default_filters().replace(
            event_filters=select_only([3]),
            process_filters={"powershell.exe": FilterState.EXCLUDE},
            level_filter="warning-only",
        )
        assert save_filters(ViewStateStore(state_file), module, filters) is True

        restored = load_filters(ViewStateStore(state_file), module)
        assert restored == filters

    def test_modules_use_separate_keys(self):
        store = ViewStateStore()
        sysmon = get_module("sysmon")
        save_filters(store, sysmon, EventFilters(event_filters=select_only([1])))
        assert sysmon.storage_key in store
        assert get_module("powershell").storage_key not in store

    @pytest.mark.parametrize("raw", [
        "{not json",
        "null",
        "[]",
        json.dumps({"event_filters": "4624", "time_start": "", "time_end": ""}),
        json.dumps({"event_filters": [], "time_end": ""}),
    ])
    def test_corrupt_entry_gives_defaults(self, raw):
        module = get_module("security")
        store = ViewStateStore()
        store.set(module.storage_key, raw)
        _same_defaults(load_filters(store, module), module)

    def test_partial_entry_keeps_defaults_for_missing_fields(self):
        module = get_module("security")
        store = ViewStateStore()
        store.set(module.storage_key, json.dumps({
            "event_filters": [[4625, "select"]],
            "time_start": "",
            "time_end": "",
        }))
        restored = load_filters(store, module)
        assert restored.event_filters == {4625: FilterState.SELECT}
        assert restored.time_start == ""
        assert restored.hide_machine_accounts is True

    def test_save_failure_returns_false(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = ViewStateStore(str(blocker / "view_state.json"))
        module = get_module("powershell")
        assert save_filters(store, module, module.default_filters()) is False


# ── Columns ───────────────────────────────────────────────────────────


class TestColumnPersistence:
    def test_defaults(self):
        module = get_module("security")
        assert load_visible_columns(ViewStateStore(), module) == module.default_visible_columns()

    def test_round_trip_in_column_order(self):
        module = get_module("sysmon")
        store = ViewStateStore()
        save_visible_columns(store, module, {"time", "hashes", "process"})
        assert json.loads(store.get(module.columns_storage_key)) == ["process", "time", "hashes"]
        assert load_visible_columns(store, module) == {"process", "time", "hashes"}

    def test_unknown_keys_dropped(self):
        module = get_module("powershell")
        store = ViewStateStore()
        store.set(module.columns_storage_key, json.dumps(["command", "retired", 7]))
        assert load_visible_columns(store, module) == {"command"}

    @pytest.mark.parametrize("raw", ["{oops", '{"time": true}'])
    def test_malformed_gives_defaults(self, raw):
        module = get_module("powershell")
        store = ViewStateStore()
        store.set(module.columns_storage_key, raw)
        assert load_visible_columns(store, module) == module.default_visible_columns()
