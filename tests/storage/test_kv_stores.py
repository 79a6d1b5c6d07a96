"""
Unit tests for the key-value store implementations.
"""

import json

from multichat.storage import InMemoryKeyValueStore, JsonFileKeyValueStore


class TestInMemoryKeyValueStore:
    """Tests for the in-memory store."""

    def test_get_set_remove(self):
        store = InMemoryKeyValueStore({"a": "1"})

        store.set("b", "2")
        store.remove("a")
        store.remove("missing")

        assert store.get("a") is None
        assert store.get("b") == "2"
        assert store.keys() == ["b"]

    def test_initial_mapping_is_copied(self):
        initial = {"a": "1"}
        store = InMemoryKeyValueStore(initial)
        store.set("a", "2")
        assert initial == {"a": "1"}


class TestJsonFileKeyValueStore:
    """Tests for the JSON file store."""

    def test_missing_file_is_empty(self, tmp_path):
        store = JsonFileKeyValueStore(tmp_path / "state.json")
        assert store.keys() == []

    def test_writes_through_and_reloads(self, tmp_path):
        path = tmp_path / "nested" / "state.json"
        store = JsonFileKeyValueStore(path)

        store.set("multichat.agents.active", "code-master")

        assert json.loads(path.read_text(encoding="utf-8")) == {"multichat.agents.active": "code-master"}
        assert JsonFileKeyValueStore(path).get("multichat.agents.active") == "code-master"
        assert not (tmp_path / "nested" / "state.json.tmp").exists()

    def test_remove_persists(self, tmp_path):
        path = tmp_path / "state.json"
        store = JsonFileKeyValueStore(path)
        store.set("a", "1")
        store.set("b", "2")

        store.remove("a")

        assert JsonFileKeyValueStore(path).keys() == ["b"]

    def test_unicode_values(self, tmp_path):
        path = tmp_path / "state.json"
        JsonFileKeyValueStore(path).set("icon", "💻 código")
        assert JsonFileKeyValueStore(path).get("icon") == "💻 código"

    def test_corrupt_file_is_treated_as_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{broken", encoding="utf-8")

        store = JsonFileKeyValueStore(path)
        assert store.keys() == []

        store.set("a", "1")
        assert json.loads(path.read_text(encoding="utf-8")) == {"a": "1"}

    def test_non_object_file_is_treated_as_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("[1, 2]", encoding="utf-8")
        assert JsonFileKeyValueStore(path).keys() == []

    def test_non_string_values_are_dropped(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"a": "1", "b": 2}), encoding="utf-8")
        assert JsonFileKeyValueStore(path).keys() == ["a"]
