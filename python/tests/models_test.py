"""Tests for persisted record shapes."""

from __future__ import annotations

import pytest
from propertydex.models import (
    LEDGER_TX_TYPES,
    USER_ROLES,
    Snapshot,
    Transaction,
    UserRole,
    random_token,
)


def _transaction(tx_type: str) -> Transaction:
    return Transaction(
        id="tx-1",
        user_id="U",
        property_id="P",
        order_id="ord-1",
        tx_type=tx_type,
        tokens=1,
        amount_cents=500,
        currency="EUR",
        occurred_at="2024-06-01T12:00:00+00:00",
    )


class TestUserRole:
    """Tests for role records."""

    def test_defaults(self):
        assert UserRole(user_id="U").to_dict() == {
            "user_id": "U",
            "role": "user",
            "kyc_status": "pending",
            "accreditation_status": "none",
            "updated_at": "",
        }

    @pytest.mark.parametrize("role", sorted(USER_ROLES))
    def test_known_roles(self, role):
        assert UserRole(user_id="U", role=role).role == role

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError, match="Unknown role 'superuser'"):
            UserRole(user_id="U", role="superuser")


class TestTransaction:
    """Tests for ledger entries."""

    @pytest.mark.parametrize("tx_type", sorted(LEDGER_TX_TYPES))
    def test_known_types(self, tx_type):
        assert _transaction(tx_type).to_dict()["tx_type"] == tx_type

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError, match="Unknown transaction type 'swap'"):
            _transaction("swap")


class TestSnapshot:
    """Tests for the in-memory snapshot."""

    def test_copy_is_deep(self):
        snapshot = Snapshot(orders=[{"id": "ord-1"}], version=3)
        clone = snapshot.copy()
        clone.orders[0]["id"] = "changed"
        assert snapshot.orders == [{"id": "ord-1"}]
        assert clone.version == 3

    def test_unknown_collection(self):
        with pytest.raises(ValueError, match="Unknown collection 'properties'"):
            Snapshot().collection("properties")


def test_random_token_shape():
    token = random_token("inv-")
    assert token.startswith("inv-")
    assert len(token) == len("inv-") + 9
    assert token[4:].isalnum()
    assert token[4:] == token[4:].lower()
