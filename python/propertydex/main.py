"""PropertyDex local backend sidecar entry point.

Lets a non-Python front end drive the local backend over stdin/stdout
using newline-delimited JSON messages.

Protocol:
    Request:  {"id": "uuid", "method": "string", "params": {}}
    Response: {"id": "uuid", "result": {}}
    Error:    {"id": "uuid", "error": {"message": "string"}}

Methods keep the remote client's names, e.g.::

    {"id": "1", "method": "auth.signUp",
     "params": {"email": "ana@example.com", "options": {"data": {}}}}
    {"id": "2", "method": "from.insert",
     "params": {"table": "orders", "data": {"tx_type": "buy", ...}}}

"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from collections.abc import Callable
from typing import Any

from propertydex import log_config
from propertydex.client import PropertyDexClient, create_client
from propertydex.export.csv_export import (
    export_investments_csv,
    export_orders_csv,
    export_transactions_csv,
)
from propertydex.export.json_export import export_snapshot_json
from propertydex.ledger.reconciliation import reconcile_snapshot

logger = logging.getLogger(__name__)

_client: PropertyDexClient | None = None


def get_client() -> PropertyDexClient:
    """Return the process-wide client, creating it on first use."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = create_client()
    return _client


def _handle_select(
    client: PropertyDexClient, table: str, query: str | None = None
) -> dict[str, Any]:
    return client.from_(table).select(query)


def _handle_insert(client: PropertyDexClient, table: str, data: Any) -> dict[str, Any]:
    return client.from_(table).insert(data)


def _handle_export_csv(
    collection: str,
    exporter: Callable[..., str],
) -> Callable[..., str]:
    def handler(
        client: PropertyDexClient,
        user_id: str | None = None,
        output_path: str | None = None,
    ) -> str:
        rows = client.store.read().collection(collection)
        return exporter(rows, user_id=user_id, output_path=output_path)

    return handler


_HANDLERS: dict[str, Callable[..., Any]] = {
    # Auth
    "auth.getSession": lambda client: client.auth.get_session(),
    "auth.signInWithPassword": lambda client, **p: client.auth.sign_in_with_password(
        **p
    ),
    "auth.signUp": lambda client, **p: client.auth.sign_up(**p),
    "auth.signOut": lambda client: client.auth.sign_out(),
    # Tables
    "from.select": _handle_select,
    "from.insert": _handle_insert,
    # Ledger
    "ledger.reconcile": lambda client: reconcile_snapshot(client.store.read()),
    # Export
    "export.investments_csv": _handle_export_csv("investments", export_investments_csv),
    "export.orders_csv": _handle_export_csv("orders", export_orders_csv),
    "export.transactions_csv": _handle_export_csv(
        "transactions", export_transactions_csv
    ),
    "export.snapshot_json": lambda client, output_path=None: export_snapshot_json(
        client.store.read(), output_path=output_path
    ),
}


def dispatch(
    method: str,
    params: dict[str, Any],
    client: PropertyDexClient | None = None,
) -> Any:
    """Route a method call to the appropriate handler.

    Args:
        method: The method name (e.g., "from.insert").
        params: The parameters for the method.
        client: Client to run against. Defaults to the process-wide one.

    Returns:
        The result of the method call.

    Raises:
        ValueError: If the method is not recognized.

    """
    if method not in _HANDLERS:
        msg = f"Unknown method: {method}"
        raise ValueError(msg)
    return _HANDLERS[method](client or get_client(), **params)


def main() -> None:
    """Run the sidecar message loop.

    Reads newline-delimited JSON from stdin, dispatches to handlers,
    and writes JSON responses to stdout. Runs until stdin is closed.
    """
    log_config.setup()
    for raw_line in sys.stdin:
        stripped = raw_line.strip()
        if not stripped:
            continue

        request: dict[str, Any] = {}
        try:
            request = json.loads(stripped)
            request_id = request.get("id", "unknown")
            method = request["method"]
            params = request.get("params", {})
            logger.debug("Dispatching %s (id=%s)", method, request_id)
            result = dispatch(method, params)
            response: dict[str, Any] = {"id": request_id, "result": result}
        except Exception as exc:  # noqa: BLE001
            request_id = (
                request.get("id", "unknown") if isinstance(request, dict) else "unknown"
            )
            response = {
                "id": request_id,
                "error": {
                    "message": str(exc),
                    "traceback": traceback.format_exc(),
                },
            }
        sys.stdout.write(json.dumps(response, default=str) + "\n")
        sys.stdout.flush()


if __name__ == "__main__":
    main()
