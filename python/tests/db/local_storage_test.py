"""Tests for the local storage emulation."""

from __future__ import annotations

import pytest
from propertydex.db.local_storage import LocalStorage


class TestItems:
    """Tests for get/set/remove."""

    def test_missing_key_is_none(self, storage):
        assert storage.get_item("nope") is None

    def test_set_then_get(self, storage):
        storage.set_item("k", "v1")
        assert storage.get_item("k") == "v1"

    def test_set_replaces(self, storage):
        storage.set_item("k", "v1")
        storage.set_item("k", "v2")
        assert storage.get_item("k") == "v2"
        assert storage.keys() == ["k"]

    def test_remove(self, storage):
        storage.set_item("k", "v")
        storage.remove_item("k")
        storage.remove_item("k")
        assert storage.get_item("k") is None

    def test_keys_and_clear_by_prefix(self, storage):
        storage.set_item("a-1", "x")
        storage.set_item("a-2", "x")
        storage.set_item("b-1", "x")

        assert storage.keys("a-") == ["a-1", "a-2"]
        assert storage.clear("a-") == 2
        assert storage.keys() == ["b-1"]


class TestTransaction:
    """Tests for grouped writes."""

    def test_commit(self, storage):
        with storage.transaction():
            storage.set_item("a", "1")
            storage.set_item("b", "2")
        assert storage.get_item("a") == "1"
        assert storage.get_item("b") == "2"

    def test_rollback_on_error(self, storage):
        storage.set_item("a", "old")
        with pytest.raises(RuntimeError), storage.transaction():
            storage.set_item("a", "new")
            storage.set_item("b", "2")
            raise RuntimeError("abort")

        assert storage.get_item("a") == "old"
        assert storage.get_item("b") is None

    def test_nested_blocks_join_outer(self, storage):
        with pytest.raises(RuntimeError), storage.transaction():
            with storage.transaction():
                storage.set_item("inner", "1")
            raise RuntimeError("abort")

        assert storage.get_item("inner") is None


class TestFileStorage:
    """Tests for file-backed storage."""

    def test_values_survive_reopen(self, tmp_path):
        path = tmp_path / "storage.duckdb"
        first = LocalStorage.open(path)
        first.set_item("propertydex-session", '{"user": {}}')
        first.close()

        second = LocalStorage.open(path)
        assert second.get_item("propertydex-session") == '{"user": {}}'
        second.close()
