"""DuckDB schema for the local storage table.

Browser local storage is a flat string-to-string map, so a single
key/value table is enough. Every collection and the session live in
it as JSON text under a namespaced key.

"""

from __future__ import annotations

# ── Key/Value Store ──

CREATE_KV_STORE = """
CREATE TABLE IF NOT EXISTS kv_store (
    storage_key    VARCHAR PRIMARY KEY,
    storage_value  VARCHAR NOT NULL,
    updated_at     TIMESTAMP DEFAULT current_timestamp
);
"""

# Columns LocalStorage depends on
KV_STORE_COLUMNS = frozenset({"storage_key", "storage_value", "updated_at"})

# All DDL statements in creation order
ALL_TABLES: list[str] = [
    CREATE_KV_STORE,
]
