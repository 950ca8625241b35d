"""Runtime settings for the local backend.

Defaults mirror the browser build: storage lives under
``~/.propertydex/data`` and every key carries the ``propertydex``
namespace prefix. Each field can be overridden from the environment::

    PROPERTYDEX_DATA_DIR                   storage directory
    PROPERTYDEX_NAMESPACE                  storage key prefix
    PROPERTYDEX_SESSION_TTL                session lifetime (seconds)
    PROPERTYDEX_DEFAULT_CURRENCY           currency for ledger entries
    PROPERTYDEX_SETTLEMENT_MAX_ATTEMPTS    retries on a stale snapshot
    PROPERTYDEX_RECOMPUTE_AVG_PRICE        "1" to re-derive avg price on buys
    PROPERTYDEX_RECORD_TRANSACTIONS        "0" to stop writing ledger entries

"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

_DEFAULT_DATA_DIR = Path.home() / ".propertydex" / "data"
_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    """Configuration shared by the store, settlement engine and auth client.

    Attributes:
        data_dir: Directory holding ``storage.duckdb``.
        namespace: Prefix for every storage key.
        session_ttl_seconds: Lifetime stamped on sign-in sessions.
        default_currency: Currency for ledger entries when the order has none.
        settlement_max_attempts: Read-settle-write cycles tried before a
            concurrent writer is reported as an error.
        recompute_average_price: Re-derive ``avg_purchase_price`` from the
            cumulative cost on every merge buy.
        record_transactions: Append a ledger entry for each settled order.

    """

    data_dir: Path = field(default=_DEFAULT_DATA_DIR)
    namespace: str = "propertydex"
    session_ttl_seconds: int = 3600
    default_currency: str = "EUR"
    settlement_max_attempts: int = 3
    recompute_average_price: bool = False
    record_transactions: bool = True

    def __post_init__(self) -> None:
        """Validate numeric bounds."""
        if self.settlement_max_attempts < 1:
            msg = (
                "settlement_max_attempts must be >= 1, "
                f"got {self.settlement_max_attempts}"
            )
            raise ValueError(msg)
        if self.session_ttl_seconds <= 0:
            msg = (
                f"session_ttl_seconds must be positive, got {self.session_ttl_seconds}"
            )
            raise ValueError(msg)

    @property
    def storage_path(self) -> Path:
        """Location of the DuckDB file backing local storage."""
        return Path(self.data_dir) / "storage.duckdb"

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from ``PROPERTYDEX_*`` environment variables."""
        defaults = cls()
        data_dir = os.environ.get("PROPERTYDEX_DATA_DIR", "").strip()
        return cls(
            data_dir=Path(data_dir).expanduser() if data_dir else defaults.data_dir,
            namespace=os.environ.get("PROPERTYDEX_NAMESPACE", "").strip()
            or defaults.namespace,
            session_ttl_seconds=_env_int(
                "PROPERTYDEX_SESSION_TTL", defaults.session_ttl_seconds
            ),
            default_currency=os.environ.get("PROPERTYDEX_DEFAULT_CURRENCY", "").strip()
            or defaults.default_currency,
            settlement_max_attempts=_env_int(
                "PROPERTYDEX_SETTLEMENT_MAX_ATTEMPTS",
                defaults.settlement_max_attempts,
            ),
            recompute_average_price=_env_flag(
                "PROPERTYDEX_RECOMPUTE_AVG_PRICE", defaults.recompute_average_price
            ),
            record_transactions=_env_flag(
                "PROPERTYDEX_RECORD_TRANSACTIONS", defaults.record_transactions
            ),
        )
