"""Local storage emulation on top of a DuckDB key/value table.

Mirrors the browser ``localStorage`` surface (get/set/remove of string
values) and adds a ``transaction()`` block so several keys can be
committed together. The storage instance also owns the change channel:
every client bound to the same ``LocalStorage`` sees the same events,
the way browser tabs sharing an origin do.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from propertydex.db.connection import connect_storage
from propertydex.events import ChangeChannel

if TYPE_CHECKING:
    import duckdb

logger = logging.getLogger(__name__)


class LocalStorage:
    """String key/value store with browser ``localStorage`` semantics."""

    def __init__(self, conn: duckdb.DuckDBPyConnection) -> None:
        self._conn = conn
        self._tx_depth = 0
        self.events = ChangeChannel()

    @classmethod
    def open(cls, db_path: str | Path) -> LocalStorage:
        """Open (creating if needed) file-backed storage at ``db_path``."""
        return cls(connect_storage(db_path))

    @classmethod
    def in_memory(cls) -> LocalStorage:
        """Create ephemeral storage, discarded when closed."""
        return cls(connect_storage())

    # ── item access ───────────────────────────────────────────────

    def get_item(self, key: str) -> str | None:
        """Return the stored value for ``key``, or None if absent."""
        row = self._conn.execute(
            "SELECT storage_value FROM kv_store WHERE storage_key = ?", [key]
        ).fetchone()
        return None if row is None else str(row[0])

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        self._conn.execute(
            """
            INSERT OR REPLACE INTO kv_store (storage_key, storage_value, updated_at)
            VALUES (?, ?, current_timestamp)
            """,
            [key, value],
        )

    def remove_item(self, key: str) -> None:
        """Delete ``key``. Removing a missing key is a no-op."""
        self._conn.execute("DELETE FROM kv_store WHERE storage_key = ?", [key])

    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys, optionally restricted to a prefix."""
        rows = self._conn.execute(
            "SELECT storage_key FROM kv_store "
            "WHERE starts_with(storage_key, ?) ORDER BY storage_key",
            [prefix],
        ).fetchall()
        return [str(row[0]) for row in rows]

    def clear(self, prefix: str = "") -> int:
        """Delete every key under ``prefix``. Returns the number removed."""
        doomed = self.keys(prefix)
        with self.transaction():
            for key in doomed:
                self.remove_item(key)
        return len(doomed)

    # ── transactions ──────────────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator[LocalStorage]:
        """Group writes so they commit together or not at all.

        Nested blocks join the outermost transaction.
        """
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield self
            finally:
                self._tx_depth -= 1
            return

        self._conn.begin()
        self._tx_depth = 1
        try:
            yield self
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise
        finally:
            self._tx_depth = 0

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        self._conn.close()
