"""CSV export for positions, orders and ledger entries.

Each export starts with ``#`` metadata lines (title, generation time,
optional filter) followed by a header row and one row per record.

"""

from __future__ import annotations

import csv
import io
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

INVESTMENT_FIELDS = [
    "id", "user_id", "property_id", "tokens_owned",
    "investment_amount", "avg_purchase_price", "purchase_date",
]
ORDER_FIELDS = [
    "id", "user_id", "property_id", "tx_type", "tokens",
    "unit_price_cents", "gross_amount_cents", "status", "created_at",
]
TRANSACTION_FIELDS = [
    "id", "user_id", "property_id", "order_id", "tx_type",
    "tokens", "amount_cents", "currency", "occurred_at",
]


def export_investments_csv(
    investments: list[dict[str, Any]],
    user_id: str | None = None,
    output_path: str | None = None,
) -> str:
    """Export investment positions to CSV.

    Args:
        investments: Rows from the investments collection.
        user_id: Only export this user's positions.
        output_path: File path to write. If None, returns CSV string.

    Returns:
        The CSV content as a string, or file path if output_path given.

    """
    return _export_rows(
        "Investments Export", INVESTMENT_FIELDS, investments, user_id, output_path
    )


def export_orders_csv(
    orders: list[dict[str, Any]],
    user_id: str | None = None,
    output_path: str | None = None,
) -> str:
    """Export orders to CSV. Same arguments as ``export_investments_csv``."""
    return _export_rows("Orders Export", ORDER_FIELDS, orders, user_id, output_path)


def export_transactions_csv(
    transactions: list[dict[str, Any]],
    user_id: str | None = None,
    output_path: str | None = None,
) -> str:
    """Export ledger entries to CSV. Same arguments as ``export_investments_csv``."""
    return _export_rows(
        "Transactions Export", TRANSACTION_FIELDS, transactions, user_id, output_path
    )


def _export_rows(
    title: str,
    fieldnames: list[str],
    rows: list[dict[str, Any]],
    user_id: str | None,
    output_path: str | None,
) -> str:
    output = io.StringIO()
    _write_metadata_header(output, title, extra=f"User: {user_id}" if user_id else "")

    writer = csv.DictWriter(output, fieldnames=fieldnames, extrasaction="ignore")
    writer.writeheader()
    for record in rows:
        if user_id and record.get("user_id") != user_id:
            continue
        writer.writerow({k: record.get(k, "") for k in fieldnames})

    content = output.getvalue()
    if output_path:
        Path(output_path).write_text(content, encoding="utf-8")
        return output_path
    return content


def _write_metadata_header(
    output: io.StringIO,
    title: str,
    extra: str = "",
) -> None:
    """Write metadata comment lines at the top of a CSV export."""
    now = datetime.now(tz=UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
    output.write(f"# {title}\n")
    output.write(f"# Generated: {now}\n")
    if extra:
        output.write(f"# {extra}\n")
