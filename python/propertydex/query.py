"""Query facade: per-table ``select``/``insert`` in the remote-client shape.

Each table name maps to a handler. All tables can be selected; only the
orders table stores inserts, and those go through the settlement engine
so the position update happens as part of the insert. Inserts into any
other table, known or not, are accepted and ignored. Results use the
remote client's ``{"data": ..., "error": ...}`` envelope.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from propertydex.errors import StaleSnapshotError

if TYPE_CHECKING:
    from propertydex.db.snapshot_store import SnapshotStore
    from propertydex.ledger.settlement import SettlementEngine

logger = logging.getLogger(__name__)


class TableName(StrEnum):
    """Tables exposed through ``from_()``."""

    PROFILES = "profiles"
    USER_ROLES = "user_roles"
    INVESTMENTS = "investments"
    ORDERS = "orders"
    TRANSACTIONS = "transactions"


# Table name -> snapshot collection
_COLLECTION_FOR_TABLE: dict[TableName, str] = {
    TableName.PROFILES: "profiles",
    TableName.USER_ROLES: "roles",
    TableName.INVESTMENTS: "investments",
    TableName.ORDERS: "orders",
    TableName.TRANSACTIONS: "transactions",
}


class ReadOnlyTable:
    """A table callers can read but not write."""

    def __init__(self, name: TableName, store: SnapshotStore) -> None:
        self.name = name
        self.store = store

    def select(self, query: str | None = None) -> dict[str, Any]:
        """Return every row of the table.

        Args:
            query: Column list in the remote client's syntax. Accepted
                for call-shape compatibility; rows are returned whole.

        """
        del query
        rows = self.store.read().collection(_COLLECTION_FOR_TABLE[self.name])
        return {"data": rows, "error": None}

    def insert(self, data: Any) -> dict[str, Any]:
        """Ignore the insert; this table is written by the backend only."""
        del data
        logger.debug("Insert on %s ignored: table is read-only", self.name)
        return {"data": [None], "error": None}


class OrdersTable(ReadOnlyTable):
    """The orders table: inserts settle against investment positions."""

    def __init__(self, store: SnapshotStore, engine: SettlementEngine) -> None:
        super().__init__(TableName.ORDERS, store)
        self.engine = engine

    def insert(self, data: Any) -> dict[str, Any]:
        """Record an order and settle it.

        Args:
            data: A single order dict, or a list whose first item is used.

        Returns:
            ``{"data": [order], "error": None}`` with the assigned id and
            created_at, or ``{"data": [None], "error": {"message": ...}}``
            if concurrent writers kept invalidating the snapshot.

        """
        try:
            result = self.engine.settle(data)
        except StaleSnapshotError as exc:
            return {"data": [None], "error": {"message": str(exc)}}
        return {"data": [result.order], "error": None}


class UnknownTable:
    """Handler for names outside ``TableName``: always empty."""

    def __init__(self, name: str) -> None:
        self.name = name

    def select(self, query: str | None = None) -> dict[str, Any]:
        """Return no rows."""
        del query
        return {"data": [], "error": None}

    def insert(self, data: Any) -> dict[str, Any]:
        """Ignore the insert."""
        del data
        logger.debug("Insert on unknown table %r ignored", self.name)
        return {"data": [None], "error": None}


Table = ReadOnlyTable | OrdersTable | UnknownTable


class QueryFacade:
    """Route table names to their handlers."""

    def __init__(self, store: SnapshotStore, engine: SettlementEngine) -> None:
        self.store = store
        self.engine = engine

    def from_(self, name: str) -> Table:
        """Return the handler for table ``name``."""
        try:
            table = TableName(name)
        except ValueError:
            logger.debug("Query on unknown table %r", name)
            return UnknownTable(name)
        if table is TableName.ORDERS:
            return OrdersTable(self.store, self.engine)
        return ReadOnlyTable(table, self.store)

    table = from_
