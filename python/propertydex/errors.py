"""Exception types raised inside the local backend.

Once storage is open, callers of the public client never see these: the
query facade and the sidecar turn them into ``{"message": ...}`` error
values. Opening storage raises ``StorageSchemaError`` directly.
"""

from __future__ import annotations


class PropertyDexError(Exception):
    """Base class for local backend errors."""


class StaleSnapshotError(PropertyDexError):
    """Raised when a write is based on a snapshot another writer replaced.

    Attributes:
        expected_version: Version the writer read before mutating.
        actual_version: Version found in storage at write time.

    """

    def __init__(self, expected_version: int, actual_version: int) -> None:
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Snapshot version changed from {expected_version} to "
            f"{actual_version} before it could be written"
        )


class StorageSchemaError(PropertyDexError):
    """Raised when an existing storage table lacks required columns.

    Attributes:
        table: Table that failed the check.
        missing_columns: Required columns not found, sorted.

    """

    def __init__(self, table: str, missing_columns: list[str]) -> None:
        self.table = table
        self.missing_columns = missing_columns
        super().__init__(
            f"Table {table} is missing columns {', '.join(missing_columns)}"
        )
