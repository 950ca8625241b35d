"""Client factory: the object the front end talks to.

``create_client()`` wires storage, snapshot store, settlement engine,
auth and query facade together. Clients built over the same
``LocalStorage`` share its change channel, like browser tabs sharing
an origin::

    storage = LocalStorage.in_memory()
    tab_a = create_client(storage=storage)
    tab_b = create_client(storage=storage)

    tab_a.auth.sign_up("ana@example.com", options={"data": {"full_name": "Ana"}})
    tab_b.from_("profiles").select()   # sees Ana's profile

"""

from __future__ import annotations

from typing import Any

from propertydex.auth.session import AuthClient
from propertydex.config import Settings
from propertydex.db.local_storage import LocalStorage
from propertydex.db.snapshot_store import SnapshotStore
from propertydex.ledger.settlement import SettlementEngine
from propertydex.query import QueryFacade, Table


class PropertyDexClient:
    """Remote-client lookalike with ``auth`` and ``from_``."""

    def __init__(self, storage: LocalStorage, settings: Settings) -> None:
        self.settings = settings
        self.storage = storage
        self.store = SnapshotStore(storage, namespace=settings.namespace)
        self.engine = SettlementEngine(self.store, settings)
        self.auth = AuthClient(storage, self.store, settings)
        self.query = QueryFacade(self.store, self.engine)

    def from_(self, table: str) -> Table:
        """Return the handler for ``table``."""
        return self.query.from_(table)

    def table(self, table: str) -> Table:
        """Alias for ``from_``."""
        return self.query.from_(table)

    def close(self) -> None:
        """Close the underlying storage."""
        self.storage.close()

    def __enter__(self) -> PropertyDexClient:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


def create_client(
    settings: Settings | None = None,
    storage: LocalStorage | None = None,
) -> PropertyDexClient:
    """Build a client.

    Args:
        settings: Runtime settings. Defaults to ``Settings.from_env()``.
        storage: Shared storage. Defaults to the DuckDB file at
            ``settings.storage_path``.

    Returns:
        A ready client.

    """
    settings = settings or Settings.from_env()
    if storage is None:
        storage = LocalStorage.open(settings.storage_path)
    return PropertyDexClient(storage, settings)
