"""Order settlement: apply buy/sell orders to investment positions.

Every order inserted into the orders table is recorded and then
settled immediately against the user's position in that property:

- buy, no position: open one at the order's size, cost and unit price.
- buy, existing position: add tokens and cost. The average purchase
  price is left alone unless ``recompute_average_price`` is set, in
  which case it becomes cumulative cost / tokens.
- sell, existing position: subtract tokens; at or below zero the
  position row is removed (over-selling never leaves a negative
  balance). Cost and average price are untouched.
- sell, no position: nothing to settle.

``settle_order`` is pure: it takes a snapshot and returns a new one.
``SettlementEngine`` wraps it in a read-settle-write cycle against the
snapshot store and retries when another writer got there first.

Settlement never rejects an order. Input it cannot interpret is still
recorded; only the position update is skipped (and logged).

"""

from __future__ import annotations

import json
import logging
import math
import numbers
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from propertydex.config import Settings
from propertydex.errors import StaleSnapshotError
from propertydex.models import (
    ORDER_TX_TYPES,
    Investment,
    Snapshot,
    Transaction,
    random_token,
)

if TYPE_CHECKING:
    from propertydex.db.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

# Position outcomes
CREATED = "created"
UPDATED = "updated"
REMOVED = "removed"
UNCHANGED = "unchanged"


@dataclass
class SettlementResult:
    """Outcome of settling one order against a snapshot.

    Attributes:
        snapshot: The new snapshot (the input is never mutated).
        order: The recorded order with its assigned id and created_at.
        transaction: Ledger entry appended for the order, if any.
        position: One of "created", "updated", "removed", "unchanged".

    """

    snapshot: Snapshot
    order: dict[str, Any]
    transaction: dict[str, Any] | None
    position: str

    @property
    def allow_empty(self) -> tuple[str, ...]:
        """Collections the store must write even if they are now empty."""
        return ("investments",) if self.position == REMOVED else ()


def _utcnow() -> str:
    return datetime.now(tz=UTC).isoformat()


def _number(value: Any) -> float | None:
    """Return ``value`` if it is a finite real number, else None."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if not math.isfinite(value):
        return None
    return value


def _json_fallback(value: Any) -> Any:
    """Encode values ``json`` cannot: numbers as floats, the rest as text."""
    if isinstance(value, Decimal | numbers.Real):
        return float(value)
    return str(value)


def normalize_order_input(data: Any) -> dict[str, Any]:
    """Coerce insert payloads to a single JSON-ready order dict.

    A list or tuple contributes its first element. Anything that is not
    a mapping becomes an empty order. Decimal and other numeric types
    become floats, other unencodable values their string form, and keys
    that are not strings or numbers are dropped.
    """
    if isinstance(data, list | tuple):
        data = data[0] if data else {}
    if not isinstance(data, Mapping):
        return {}
    order: dict[str, Any] = json.loads(
        json.dumps(dict(data), default=_json_fallback, skipkeys=True)
    )
    return order


def find_position(
    investments: list[dict[str, Any]],
    user_id: Any,
    property_id: Any,
) -> int | None:
    """Return the index of the (user, property) position, or None."""
    for index, row in enumerate(investments):
        if row.get("user_id") == user_id and row.get("property_id") == property_id:
            return index
    return None


def settle_order(  # noqa: PLR0913
    snapshot: Snapshot,
    data: Any,
    *,
    now: str | None = None,
    recompute_average_price: bool = False,
    record_transactions: bool = True,
    default_currency: str = "EUR",
) -> SettlementResult:
    """Record an order and apply it to the matching position.

    Args:
        snapshot: Current state. Not modified.
        data: Order payload (dict, or a list whose first item is used).
        now: ISO-8601 timestamp to stamp on new rows. Defaults to now (UTC).
        recompute_average_price: Re-derive ``avg_purchase_price`` on
            merge buys instead of keeping the first buy's price.
        record_transactions: Append a Transaction for each order that
            changed a position.
        default_currency: Transaction currency when the order has none.

    Returns:
        SettlementResult carrying the new snapshot and the settled order.

    """
    timestamp = now or _utcnow()
    result = snapshot.copy()

    order = {
        **normalize_order_input(data),
        "id": random_token("ord-"),
        "created_at": timestamp,
    }
    result.orders.append(order)

    position = _apply_order(
        result.investments,
        order,
        timestamp,
        recompute_average_price=recompute_average_price,
    )

    transaction: dict[str, Any] | None = None
    if position != UNCHANGED and record_transactions:
        transaction = _ledger_entry(order, timestamp, default_currency)
        result.transactions.append(transaction)

    logger.info(
        "Settled order %s (%s %s x %s): position %s",
        order["id"],
        order.get("tx_type"),
        order.get("property_id"),
        order.get("tokens"),
        position,
    )
    return SettlementResult(
        snapshot=result,
        order=order,
        transaction=transaction,
        position=position,
    )


def _apply_order(
    investments: list[dict[str, Any]],
    order: dict[str, Any],
    timestamp: str,
    *,
    recompute_average_price: bool,
) -> str:
    """Mutate ``investments`` for ``order``. Returns the position outcome."""
    tx_type = order.get("tx_type")
    if tx_type not in ORDER_TX_TYPES:
        if tx_type is not None:
            logger.warning(
                "Order %s has unsupported tx_type %r; recorded only",
                order["id"],
                tx_type,
            )
        return UNCHANGED

    user_id = order.get("user_id")
    property_id = order.get("property_id")
    tokens = _number(order.get("tokens"))
    if not user_id or not property_id or tokens is None or tokens < 0:
        logger.warning(
            "Order %s lacks user_id, property_id or a valid token count; "
            "recorded only",
            order["id"],
        )
        return UNCHANGED

    index = find_position(investments, user_id, property_id)
    if tx_type == "buy":
        return _apply_buy(
            investments,
            index,
            order,
            tokens,
            timestamp,
            recompute_average_price=recompute_average_price,
        )
    return _apply_sell(investments, index, order, tokens)


def _apply_buy(  # noqa: PLR0913
    investments: list[dict[str, Any]],
    index: int | None,
    order: dict[str, Any],
    tokens: float,
    timestamp: str,
    *,
    recompute_average_price: bool,
) -> str:
    """Open or grow a position."""
    gross_cents = _number(order.get("gross_amount_cents"))
    if gross_cents is None:
        logger.warning("Buy order %s has no gross_amount_cents", order["id"])
        return UNCHANGED

    if index is None:
        unit_cents = _number(order.get("unit_price_cents"))
        if unit_cents is None:
            logger.warning("Buy order %s has no unit_price_cents", order["id"])
            return UNCHANGED
        investments.append(
            Investment(
                id=random_token("inv-"),
                user_id=order["user_id"],
                property_id=order["property_id"],
                tokens_owned=tokens,
                investment_amount=gross_cents / 100,
                avg_purchase_price=unit_cents / 100,
                purchase_date=timestamp,
            ).to_dict()
        )
        return CREATED

    existing = investments[index]
    held = _number(existing.get("tokens_owned"))
    invested = _number(existing.get("investment_amount"))
    if held is None or invested is None:
        logger.warning(
            "Investment %s is malformed; buy order %s recorded only",
            existing.get("id"),
            order["id"],
        )
        return UNCHANGED

    updated = {
        **existing,
        "tokens_owned": held + tokens,
        "investment_amount": invested + gross_cents / 100,
    }
    if recompute_average_price and updated["tokens_owned"] > 0:
        updated["avg_purchase_price"] = (
            updated["investment_amount"] / updated["tokens_owned"]
        )
    investments[index] = updated
    return UPDATED


def _apply_sell(
    investments: list[dict[str, Any]],
    index: int | None,
    order: dict[str, Any],
    tokens: float,
) -> str:
    """Shrink or close a position."""
    if index is None:
        logger.info(
            "Sell order %s has no position for %s/%s; nothing to settle",
            order["id"],
            order["user_id"],
            order["property_id"],
        )
        return UNCHANGED

    existing = investments[index]
    held = _number(existing.get("tokens_owned"))
    if held is None:
        logger.warning(
            "Investment %s is malformed; sell order %s recorded only",
            existing.get("id"),
            order["id"],
        )
        return UNCHANGED

    new_total = held - tokens
    if new_total <= 0:
        del investments[index]
        return REMOVED

    investments[index] = {**existing, "tokens_owned": new_total}
    return UPDATED


def _ledger_entry(
    order: dict[str, Any],
    timestamp: str,
    default_currency: str,
) -> dict[str, Any]:
    """Build the Transaction mirroring a settled order."""
    currency = order.get("currency")
    if not isinstance(currency, str) or not currency:
        currency = default_currency
    return Transaction(
        id=random_token("tx-"),
        user_id=order["user_id"],
        property_id=order["property_id"],
        order_id=order["id"],
        tx_type=order["tx_type"],
        tokens=order["tokens"],
        amount_cents=_number(order.get("gross_amount_cents")) or 0,
        currency=currency,
        occurred_at=timestamp,
    ).to_dict()


class SettlementEngine:
    """Settle orders against the snapshot store.

    Each call reads a snapshot, settles the order, and writes the result
    back with a compare-and-swap on the snapshot version. If another
    writer committed in between, the whole cycle is retried from a fresh
    read, up to ``settings.settlement_max_attempts`` times.
    """

    def __init__(self, store: SnapshotStore, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or Settings()

    def settle(self, data: Any) -> SettlementResult:
        """Record and settle one order.

        Args:
            data: Order payload as passed to ``insert``.

        Returns:
            The committed SettlementResult.

        Raises:
            StaleSnapshotError: If every attempt lost the race to another
                writer.

        """
        attempt = 1
        while True:
            snapshot = self.store.read()
            result = settle_order(
                snapshot,
                data,
                recompute_average_price=self.settings.recompute_average_price,
                record_transactions=self.settings.record_transactions,
                default_currency=self.settings.default_currency,
            )
            try:
                self.store.write(
                    result.snapshot,
                    expected_version=snapshot.version,
                    allow_empty=result.allow_empty,
                )
            except StaleSnapshotError as exc:
                if attempt >= self.settings.settlement_max_attempts:
                    logger.error(
                        "Giving up on order after %d attempts: %s", attempt, exc
                    )
                    raise
                logger.warning(
                    "Snapshot changed during settlement (attempt %d/%d): %s",
                    attempt,
                    self.settings.settlement_max_attempts,
                    exc,
                )
                attempt += 1
                continue
            return result
