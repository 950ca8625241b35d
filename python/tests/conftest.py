"""Shared pytest fixtures for the PropertyDex local backend tests."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
from propertydex.client import PropertyDexClient
from propertydex.config import Settings
from propertydex.db.local_storage import LocalStorage
from propertydex.db.snapshot_store import SnapshotStore


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Provide settings pointed at a throwaway data directory."""
    return Settings(data_dir=tmp_path)


@pytest.fixture
def storage() -> Iterator[LocalStorage]:
    """Provide empty in-memory local storage."""
    store = LocalStorage.in_memory()
    yield store
    store.close()


@pytest.fixture
def store(storage: LocalStorage) -> SnapshotStore:
    """Provide a snapshot store over the in-memory storage."""
    return SnapshotStore(storage)


@pytest.fixture
def client(storage: LocalStorage, settings: Settings) -> PropertyDexClient:
    """Provide a client over the in-memory storage."""
    return PropertyDexClient(storage, settings)


@pytest.fixture
def make_order():
    """Build order payloads for user U / property P with overridable fields."""

    def _make(tx_type: str = "buy", tokens: float = 100, **overrides: Any) -> dict:
        order = {
            "user_id": "U",
            "property_id": "P",
            "tokens": tokens,
            "unit_price_cents": 500,
            "gross_amount_cents": int(tokens * 500),
            "tx_type": tx_type,
            "status": "paid",
        }
        order.update(overrides)
        return order

    return _make
