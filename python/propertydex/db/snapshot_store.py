"""Snapshot store: the five JSON collections over local storage.

Each collection is one JSON array under its own namespaced key, plus a
version counter bumped on every write::

    propertydex-db-profiles       [UserProfile, ...]
    propertydex-db-roles          [UserRole, ...]
    propertydex-db-investments    [Investment, ...]
    propertydex-db-orders         [Order, ...]
    propertydex-db-transactions   [Transaction, ...]
    propertydex-db-version        integer

Reads never fail: a missing, unparsable or non-array blob is an empty
collection. Writes skip investments, orders and transactions when the
supplied list is empty so an accidentally-empty batch cannot wipe
history; callers that really mean "now empty" say so via
``allow_empty``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from propertydex.errors import StaleSnapshotError
from propertydex.events import StorageEvent
from propertydex.models import COLLECTIONS, Snapshot

if TYPE_CHECKING:
    from propertydex.db.local_storage import LocalStorage

logger = logging.getLogger(__name__)

# Collections that are only written when non-empty
_GUARDED_COLLECTIONS = frozenset({"investments", "orders", "transactions"})


class SnapshotStore:
    """Read and write whole snapshots of the collections."""

    def __init__(self, storage: LocalStorage, namespace: str = "propertydex") -> None:
        self.storage = storage
        self.namespace = namespace
        self.keys: dict[str, str] = {
            name: f"{namespace}-db-{name}" for name in COLLECTIONS
        }
        self.version_key = f"{namespace}-db-version"

    def read(self) -> Snapshot:
        """Load the current snapshot.

        Returns:
            Snapshot with every collection present (possibly empty).

        """
        collections = {
            name: self._load_rows(key) for name, key in self.keys.items()
        }
        return Snapshot(**collections, version=self._load_version())

    def write(
        self,
        snapshot: Snapshot,
        *,
        expected_version: int | None = None,
        allow_empty: Iterable[str] = (),
    ) -> int:
        """Persist ``snapshot`` and publish one change event.

        Args:
            snapshot: Collections to write.
            expected_version: If given, the write only succeeds when the
                stored version still equals it (compare-and-swap).
                None means last writer wins.
            allow_empty: Guarded collections that should be written even
                when empty.

        Returns:
            The new stored version.

        Raises:
            StaleSnapshotError: If ``expected_version`` no longer matches.

        """
        allowed = frozenset(allow_empty)
        written: list[str] = []

        with self.storage.transaction():
            current = self._load_version()
            if expected_version is not None and current != expected_version:
                raise StaleSnapshotError(expected_version, current)

            for name, key in self.keys.items():
                rows = snapshot.collection(name)
                if name in _GUARDED_COLLECTIONS and not rows and name not in allowed:
                    continue
                self.storage.set_item(key, json.dumps(rows))
                written.append(key)

            new_version = current + 1
            self.storage.set_item(self.version_key, str(new_version))

        snapshot.version = new_version
        logger.debug("Wrote snapshot v%d (%s)", new_version, ", ".join(written))
        self.storage.events.publish(
            StorageEvent(keys=(*written, self.version_key), source="store")
        )
        return new_version

    def _load_rows(self, key: str) -> list[dict[str, Any]]:
        raw = self.storage.get_item(key)
        if raw is None:
            return []
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unparsable blob under %s", key)
            return []
        if not isinstance(value, list):
            logger.warning("Discarding non-array blob under %s", key)
            return []
        return [row for row in value if isinstance(row, dict)]

    def _load_version(self) -> int:
        raw = self.storage.get_item(self.version_key)
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError:
            return 0
