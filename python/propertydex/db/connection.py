"""Open the DuckDB database behind local storage.

A storage database holds the single ``kv_store`` table. Opening one
creates the file's directory, applies the DDL, and checks that an
existing table still has the columns ``LocalStorage`` reads and writes,
so a file left by an incompatible build fails at open time rather than
on the first ``get_item``.
"""

from __future__ import annotations

import logging
from pathlib import Path

import duckdb

from propertydex.db.schema import ALL_TABLES, KV_STORE_COLUMNS
from propertydex.errors import StorageSchemaError

logger = logging.getLogger(__name__)


def connect_storage(db_path: str | Path | None = None) -> duckdb.DuckDBPyConnection:
    """Open a storage database with its schema in place.

    Args:
        db_path: Path to the .duckdb file, created if missing. None opens
            an in-memory database that disappears when closed.

    Returns:
        DuckDB connection with ``kv_store`` ready.

    Raises:
        StorageSchemaError: If an existing ``kv_store`` lacks a required column.

    """
    if db_path is None:
        conn = duckdb.connect(":memory:")
    else:
        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        conn = duckdb.connect(str(path))

    try:
        ensure_schema(conn)
    except StorageSchemaError:
        conn.close()
        raise
    logger.debug("Storage opened at %s", db_path or ":memory:")
    return conn


def ensure_schema(conn: duckdb.DuckDBPyConnection) -> None:
    """Create ``kv_store`` if needed and verify its columns."""
    for ddl in ALL_TABLES:
        conn.execute(ddl)

    rows = conn.execute(
        "SELECT column_name FROM information_schema.columns "
        "WHERE table_name = 'kv_store'"
    ).fetchall()
    missing = KV_STORE_COLUMNS - {str(row[0]) for row in rows}
    if missing:
        raise StorageSchemaError("kv_store", sorted(missing))
