"""Position reconciliation: rebuild investments from order history.

Replays recorded orders chronologically through the same settlement
rules used at insert time, then compares the result with the stored
investments. Useful after a lost update between two writers, or to
check the one-position-per-(user, property) rule on existing data.

"""

from __future__ import annotations

from collections import Counter
from typing import Any

from propertydex.ledger.settlement import settle_order
from propertydex.models import Snapshot

# Floating-point tolerances for comparisons
_TOKEN_TOLERANCE = 1e-6
_AMOUNT_TOLERANCE = 0.01


def replay_positions(
    orders: list[dict[str, Any]],
    *,
    recompute_average_price: bool = False,
) -> list[dict[str, Any]]:
    """Compute positions from an order history.

    Args:
        orders: Order dicts as stored in the orders collection. Sorted
            by ``created_at`` before replay; ties keep their stored order.
        recompute_average_price: Passed through to settlement.

    Returns:
        List of position dicts sorted by (user_id, property_id), with keys
        user_id, property_id, tokens_owned, investment_amount,
        avg_purchase_price.

    """
    sorted_orders = sorted(orders, key=lambda o: str(o.get("created_at", "")))

    snapshot = Snapshot()
    for order in sorted_orders:
        snapshot = settle_order(
            snapshot,
            order,
            now=order.get("created_at") or None,
            recompute_average_price=recompute_average_price,
            record_transactions=False,
        ).snapshot

    positions = [
        {
            "user_id": row["user_id"],
            "property_id": row["property_id"],
            "tokens_owned": row["tokens_owned"],
            "investment_amount": row["investment_amount"],
            "avg_purchase_price": row["avg_purchase_price"],
        }
        for row in snapshot.investments
    ]
    return sorted(positions, key=lambda p: (str(p["user_id"]), str(p["property_id"])))


def detect_discrepancies(
    computed: list[dict[str, Any]],
    stored: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Compare replayed positions against stored investments.

    Args:
        computed: Positions derived from replay_positions().
        stored: Rows currently in the investments collection.

    Returns:
        List of discrepancy dicts with keys: user_id, property_id,
        field, computed_value, stored_value. ``field`` is "existence",
        "duplicate", "tokens_owned" or "investment_amount".

    """
    computed_map = {(p["user_id"], p["property_id"]): p for p in computed}
    stored_counts = Counter(
        (row.get("user_id"), row.get("property_id")) for row in stored
    )
    stored_map: dict[tuple[Any, Any], dict[str, Any]] = {}
    for row in stored:
        stored_map.setdefault((row.get("user_id"), row.get("property_id")), row)

    discrepancies: list[dict[str, Any]] = []
    all_keys = set(computed_map) | set(stored_map)

    for key in sorted(all_keys, key=lambda k: (str(k[0]), str(k[1]))):
        user_id, property_id = key
        c = computed_map.get(key)
        s = stored_map.get(key)

        if stored_counts[key] > 1:
            discrepancies.append(
                {
                    "user_id": user_id,
                    "property_id": property_id,
                    "field": "duplicate",
                    "computed_value": 1 if c is not None else 0,
                    "stored_value": stored_counts[key],
                }
            )

        if c is None or s is None:
            discrepancies.append(
                {
                    "user_id": user_id,
                    "property_id": property_id,
                    "field": "existence",
                    "computed_value": "missing" if c is None else "present",
                    "stored_value": "missing" if s is None else "present",
                }
            )
            continue

        _compare_field(discrepancies, key, c, s, "tokens_owned", _TOKEN_TOLERANCE)
        _compare_field(
            discrepancies, key, c, s, "investment_amount", _AMOUNT_TOLERANCE
        )

    return discrepancies


def reconcile_snapshot(snapshot: Snapshot) -> dict[str, Any]:
    """Replay a snapshot's orders and report drift from its investments."""
    computed = replay_positions(snapshot.orders)
    discrepancies = detect_discrepancies(computed, snapshot.investments)
    return {
        "positions": computed,
        "discrepancies": discrepancies,
        "consistent": not discrepancies,
    }


def _compare_field(
    discrepancies: list[dict[str, Any]],
    key: tuple[Any, Any],
    computed: dict[str, Any],
    stored: dict[str, Any],
    field_name: str,
    tolerance: float,
) -> None:
    """Compare a single numeric field between computed and stored rows."""
    try:
        c_val = float(computed.get(field_name, 0))
        s_val = float(stored.get(field_name, 0))
    except (TypeError, ValueError):
        c_val, s_val = computed.get(field_name), stored.get(field_name)
        if c_val != s_val:
            discrepancies.append(_discrepancy(key, field_name, c_val, s_val))
        return
    if abs(c_val - s_val) > tolerance:
        discrepancies.append(_discrepancy(key, field_name, c_val, s_val))


def _discrepancy(
    key: tuple[Any, Any], field_name: str, c_val: Any, s_val: Any
) -> dict[str, Any]:
    return {
        "user_id": key[0],
        "property_id": key[1],
        "field": field_name,
        "computed_value": c_val,
        "stored_value": s_val,
    }
