"""Record shapes persisted by the local backend.

Rows are stored as plain JSON objects, so the collections inside a
``Snapshot`` are lists of dicts. The dataclasses below describe the rows
this package creates itself and render them with ``to_dict()``; rows
read back from storage may carry extra fields and are kept verbatim.
"""

from __future__ import annotations

import copy
import secrets
import string
from dataclasses import asdict, dataclass, field
from typing import Any

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits

ORDER_TX_TYPES = frozenset({"buy", "sell"})
LEDGER_TX_TYPES = frozenset({"buy", "sell", "dividend", "fee", "refund"})
USER_ROLES = frozenset({"admin", "issuer", "investor", "user"})
COLLECTIONS = ("profiles", "roles", "investments", "orders", "transactions")


def random_token(prefix: str = "", length: int = 9) -> str:
    """Return ``prefix`` followed by ``length`` random base-36 characters."""
    return prefix + "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


@dataclass
class UserProfile:
    """Identity record created at sign-up."""

    id: str
    email: str
    full_name: str = ""
    country: str = ""
    kyc_verified: bool = False
    avatar_url: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict."""
        return asdict(self)


@dataclass
class UserRole:
    """Role and verification status, one per user."""

    user_id: str
    role: str = "user"
    kyc_status: str = "pending"
    accreditation_status: str = "none"
    updated_at: str = ""

    def __post_init__(self) -> None:
        """Reject roles outside USER_ROLES."""
        if self.role not in USER_ROLES:
            msg = f"Unknown role '{self.role}', expected one of {sorted(USER_ROLES)}"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict."""
        return asdict(self)


@dataclass
class Investment:
    """A user's position in one property.

    Attributes:
        id: Random ``inv-`` token.
        user_id: Owner.
        property_id: Property the tokens belong to.
        tokens_owned: Current token balance (never negative).
        investment_amount: Cumulative cost in currency units, not cents.
        avg_purchase_price: Price per token in currency units.
        purchase_date: ISO-8601 timestamp of the first buy.

    """

    id: str
    user_id: str
    property_id: str
    tokens_owned: float
    investment_amount: float
    avg_purchase_price: float
    purchase_date: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict."""
        return asdict(self)


@dataclass
class Transaction:
    """Ledger entry written for a settled order."""

    id: str
    user_id: str
    property_id: str
    order_id: str
    tx_type: str
    tokens: float
    amount_cents: float
    currency: str
    occurred_at: str

    def __post_init__(self) -> None:
        """Reject transaction types outside LEDGER_TX_TYPES."""
        if self.tx_type not in LEDGER_TX_TYPES:
            msg = (
                f"Unknown transaction type '{self.tx_type}', "
                f"expected one of {sorted(LEDGER_TX_TYPES)}"
            )
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict."""
        return asdict(self)


@dataclass
class Snapshot:
    """In-memory copy of every persisted collection.

    Attributes:
        profiles: UserProfile rows.
        roles: UserRole rows.
        investments: Investment rows, at most one per (user, property).
        orders: Append-only Order rows.
        transactions: Transaction rows.
        version: Write counter read alongside the collections; used to
            detect that another writer got in between read and write.

    """

    profiles: list[dict[str, Any]] = field(default_factory=list)
    roles: list[dict[str, Any]] = field(default_factory=list)
    investments: list[dict[str, Any]] = field(default_factory=list)
    orders: list[dict[str, Any]] = field(default_factory=list)
    transactions: list[dict[str, Any]] = field(default_factory=list)
    version: int = 0

    def copy(self) -> Snapshot:
        """Return a deep copy that can be mutated freely."""
        return copy.deepcopy(self)

    def collection(self, name: str) -> list[dict[str, Any]]:
        """Return the collection called ``name``.

        Raises:
            ValueError: If ``name`` is not one of ``COLLECTIONS``.

        """
        if name not in COLLECTIONS:
            msg = f"Unknown collection '{name}', expected one of {COLLECTIONS}"
            raise ValueError(msg)
        rows: list[dict[str, Any]] = getattr(self, name)
        return rows
