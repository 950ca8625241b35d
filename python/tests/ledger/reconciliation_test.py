"""Tests for position reconciliation."""

from __future__ import annotations

import pytest
from propertydex.ledger.reconciliation import (
    detect_discrepancies,
    reconcile_snapshot,
    replay_positions,
)
from propertydex.ledger.settlement import settle_order
from propertydex.models import Snapshot


def _order(tx_type, tokens, created_at, user_id="U", property_id="P", gross=None):
    return {
        "id": f"ord-{created_at}",
        "user_id": user_id,
        "property_id": property_id,
        "tx_type": tx_type,
        "tokens": tokens,
        "unit_price_cents": 500,
        "gross_amount_cents": tokens * 500 if gross is None else gross,
        "created_at": created_at,
    }


class TestReplayPositions:
    """Tests for rebuilding positions from orders."""

    def test_buys_accumulate(self):
        positions = replay_positions(
            [_order("buy", 100, "2024-01-01"), _order("buy", 50, "2024-01-02")]
        )
        assert len(positions) == 1
        assert positions[0]["tokens_owned"] == 150
        assert positions[0]["investment_amount"] == pytest.approx(750)

    def test_replays_in_created_order(self):
        # Stored out of order: the sell must apply after both buys.
        positions = replay_positions(
            [
                _order("sell", 120, "2024-01-03"),
                _order("buy", 100, "2024-01-01"),
                _order("buy", 50, "2024-01-02"),
            ]
        )
        assert positions[0]["tokens_owned"] == 30

    def test_liquidated_positions_are_absent(self):
        positions = replay_positions(
            [_order("buy", 10, "2024-01-01"), _order("sell", 10, "2024-01-02")]
        )
        assert positions == []

    def test_sorted_by_user_then_property(self):
        positions = replay_positions(
            [
                _order("buy", 1, "2024-01-01", user_id="B"),
                _order("buy", 1, "2024-01-02", user_id="A", property_id="Q"),
                _order("buy", 1, "2024-01-03", user_id="A", property_id="P"),
            ]
        )
        keys = [(p["user_id"], p["property_id"]) for p in positions]
        assert keys == [("A", "P"), ("A", "Q"), ("B", "P")]


class TestDetectDiscrepancies:
    """Tests for comparing replayed and stored positions."""

    def test_matching_positions(self):
        computed = [{"user_id": "U", "property_id": "P",
                     "tokens_owned": 10, "investment_amount": 50.0}]
        stored = [{"id": "inv-1", "user_id": "U", "property_id": "P",
                   "tokens_owned": 10, "investment_amount": 50.0}]
        assert detect_discrepancies(computed, stored) == []

    def test_token_drift(self):
        computed = [{"user_id": "U", "property_id": "P",
                     "tokens_owned": 10, "investment_amount": 50.0}]
        stored = [{"user_id": "U", "property_id": "P",
                   "tokens_owned": 7, "investment_amount": 50.0}]
        (found,) = detect_discrepancies(computed, stored)
        assert found["field"] == "tokens_owned"
        assert found["computed_value"] == 10
        assert found["stored_value"] == 7

    def test_missing_row(self):
        computed = [{"user_id": "U", "property_id": "P",
                     "tokens_owned": 10, "investment_amount": 50.0}]
        (found,) = detect_discrepancies(computed, [])
        assert found["field"] == "existence"
        assert found["stored_value"] == "missing"

    def test_duplicate_rows(self):
        computed = [{"user_id": "U", "property_id": "P",
                     "tokens_owned": 10, "investment_amount": 50.0}]
        row = {"user_id": "U", "property_id": "P",
               "tokens_owned": 10, "investment_amount": 50.0}
        found = detect_discrepancies(computed, [row, dict(row)])
        assert [d["field"] for d in found] == ["duplicate"]
        assert found[0]["stored_value"] == 2


class TestReconcileSnapshot:
    """Tests for reconciling a whole snapshot."""

    def test_settled_snapshot_is_consistent(self):
        snapshot = Snapshot()
        for order in (_order("buy", 100, "a"), _order("buy", 5, "b")):
            snapshot = settle_order(snapshot, order).snapshot
        report = reconcile_snapshot(snapshot)
        assert report["consistent"] is True
        assert report["positions"][0]["tokens_owned"] == 105

    def test_lost_update_is_reported(self):
        snapshot = settle_order(Snapshot(), _order("buy", 100, "a")).snapshot
        snapshot.orders.append(_order("buy", 20, "b"))
        report = reconcile_snapshot(snapshot)
        assert report["consistent"] is False
        assert {d["field"] for d in report["discrepancies"]} == {
            "tokens_owned",
            "investment_amount",
        }
