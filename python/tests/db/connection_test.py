"""Tests for opening the storage database."""

from __future__ import annotations

import duckdb
import pytest
from propertydex.db.connection import connect_storage, ensure_schema
from propertydex.db.local_storage import LocalStorage
from propertydex.errors import StorageSchemaError


class TestConnectStorage:
    """Tests for storage database creation."""

    def test_in_memory_has_empty_kv_table(self):
        conn = connect_storage()
        table_names = {t[0] for t in conn.execute("SHOW TABLES").fetchall()}
        assert "kv_store" in table_names
        assert conn.execute("SELECT COUNT(*) FROM kv_store").fetchone() == (0,)
        conn.close()

    def test_creates_parent_directories(self, tmp_path):
        db_path = tmp_path / "nested" / "deep" / "storage.duckdb"
        connect_storage(db_path).close()
        assert db_path.exists()

    def test_file_persists_between_opens(self, tmp_path):
        db_path = tmp_path / "storage.duckdb"
        storage = LocalStorage.open(db_path)
        storage.set_item("propertydex-db-version", "4")
        storage.close()

        storage = LocalStorage.open(db_path)
        assert storage.get_item("propertydex-db-version") == "4"
        storage.close()


class TestEnsureSchema:
    """Tests for schema creation and verification."""

    def test_idempotent(self):
        conn = connect_storage()
        conn.execute(
            "INSERT INTO kv_store (storage_key, storage_value) VALUES ('k', 'v')"
        )
        ensure_schema(conn)
        assert conn.execute("SELECT storage_value FROM kv_store").fetchone() == ("v",)
        conn.close()

    def test_incompatible_table_rejected(self, tmp_path):
        db_path = tmp_path / "storage.duckdb"
        conn = duckdb.connect(str(db_path))
        conn.execute("CREATE TABLE kv_store (k VARCHAR PRIMARY KEY, v VARCHAR)")
        conn.close()

        with pytest.raises(StorageSchemaError) as exc_info:
            connect_storage(db_path)
        assert exc_info.value.missing_columns == [
            "storage_key",
            "storage_value",
            "updated_at",
        ]
        assert "kv_store" in str(exc_info.value)
