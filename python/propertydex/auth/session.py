"""Session provider: sign-in/up/out against local storage.

Emulates the auth half of the remote client. There is no credential
check: passwords are accepted and ignored, and the settlement engine
trusts whatever ``user_id`` an order carries. The current session is a
single JSON blob under ``<namespace>-session``; profile and role rows
created at sign-up go through the snapshot store.

Every session write publishes on the storage's change channel, and
``on_auth_state_change`` listens on that same channel, so a sign-in in
one client is seen by every other client over the same storage.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from propertydex.config import Settings
from propertydex.events import StorageEvent
from propertydex.models import UserProfile, UserRole, random_token

if TYPE_CHECKING:
    from propertydex.db.local_storage import LocalStorage
    from propertydex.db.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"

AuthCallback = Callable[[str, "dict[str, Any] | None"], None]


class Subscription:
    """Handle returned by ``on_auth_state_change``."""

    def __init__(self, unsubscribe: Callable[[], None]) -> None:
        self._unsubscribe = unsubscribe
        self.active = True

    def unsubscribe(self) -> None:
        """Stop delivering auth events. Safe to call more than once."""
        if self.active:
            self._unsubscribe()
            self.active = False


class AuthClient:
    """Local stand-in for the remote auth API."""

    def __init__(
        self,
        storage: LocalStorage,
        store: SnapshotStore,
        settings: Settings | None = None,
    ) -> None:
        self.storage = storage
        self.store = store
        self.settings = settings or Settings()
        self.session_key = f"{self.settings.namespace}-session"

    # ── session blob ──────────────────────────────────────────────

    def _read_session(self) -> dict[str, Any] | None:
        raw = self.storage.get_item(self.session_key)
        if raw is None:
            return None
        try:
            session = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unparsable session blob")
            return None
        return session if isinstance(session, dict) else None

    def _store_session(self, session: dict[str, Any]) -> None:
        self.storage.set_item(self.session_key, json.dumps(session))
        self._notify()

    def _notify(self) -> None:
        self.storage.events.publish(
            StorageEvent(keys=(self.session_key,), source="session")
        )

    def _expires_at(self) -> int:
        return int(time.time()) + self.settings.session_ttl_seconds

    # ── public API ────────────────────────────────────────────────

    def get_session(self) -> dict[str, Any]:
        """Return the current session, or None inside the envelope."""
        return {"data": {"session": self._read_session()}, "error": None}

    def sign_in_with_password(
        self, email: str, password: str | None = None
    ) -> dict[str, Any]:
        """Start a session for ``email``.

        Known emails resume their profile; unknown emails get a demo
        session that is not backed by a profile row.
        """
        del password  # accepted for call-shape compatibility only
        profile = next(
            (p for p in self.store.read().profiles if p.get("email") == email),
            None,
        )

        user: dict[str, Any]
        if profile is None:
            user = {
                "email": email,
                "id": random_token("demo-user-"),
                "aud": "authenticated",
            }
            logger.info("Signed in demo user %s", user["id"])
        else:
            user = {
                "email": profile.get("email"),
                "id": profile.get("id"),
                "user_metadata": {"full_name": profile.get("full_name")},
                "aud": "authenticated",
            }
            logger.info("Signed in user %s", user["id"])

        session = {
            "user": user,
            "access_token": random_token("mock-token-", length=11),
            "expires_at": self._expires_at(),
        }
        self._store_session(session)
        return {"data": {"session": session}, "error": None}

    def sign_up(
        self,
        email: str,
        password: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a profile and role for ``email`` and sign it in.

        Profile fields come from ``options["data"]``; metadata that is not a
        mapping is ignored, and values JSON cannot encode are kept as text.

        Returns:
            Envelope with the new session, or ``error.message`` set to
            "User already exists" when the email is taken. Nothing is
            written in that case.

        """
        del password
        snapshot = self.store.read()
        if any(p.get("email") == email for p in snapshot.profiles):
            return {
                "data": {"session": None},
                "error": {"message": "User already exists"},
            }

        supplied = options.get("data") if isinstance(options, Mapping) else None
        metadata: dict[str, Any] = (
            json.loads(json.dumps(dict(supplied), default=str, skipkeys=True))
            if isinstance(supplied, Mapping)
            else {}
        )
        user_id = random_token("user-")
        now = datetime.now(tz=UTC).isoformat()

        snapshot.profiles.append(
            UserProfile(
                id=user_id,
                email=email,
                full_name=metadata.get("full_name") or "",
                country=metadata.get("country") or "",
                kyc_verified=False,
                avatar_url=metadata.get("avatar_url") or "",
                created_at=now,
                updated_at=now,
            ).to_dict()
        )
        snapshot.roles.append(UserRole(user_id=user_id, updated_at=now).to_dict())
        self.store.write(snapshot)
        logger.info("Registered user %s", user_id)

        session = {
            "user": {
                "email": email,
                "id": user_id,
                "user_metadata": metadata,
                "aud": "authenticated",
            },
            "access_token": random_token("mock-token-", length=11),
            "expires_at": self._expires_at(),
        }
        self._store_session(session)
        return {"data": {"session": session}, "error": None}

    def sign_out(self) -> dict[str, Any]:
        """Clear the current session."""
        self.storage.remove_item(self.session_key)
        self._notify()
        return {"error": None}

    def on_auth_state_change(self, callback: AuthCallback) -> Subscription:
        """Watch session transitions.

        ``callback(event, session)`` runs once immediately with the
        current state, then after every storage change event.

        Returns:
            Subscription whose ``unsubscribe()`` stops delivery.

        """

        def emit() -> None:
            session = self._read_session()
            if session is None:
                callback(SIGNED_OUT, None)
            else:
                callback(SIGNED_IN, session)

        emit()
        return Subscription(self.storage.events.subscribe(lambda _event: emit()))

    # Remote-client spellings
    getSession = get_session  # noqa: N815
    signInWithPassword = sign_in_with_password  # noqa: N815
    signUp = sign_up  # noqa: N815
    signOut = sign_out  # noqa: N815
    onAuthStateChange = on_auth_state_change  # noqa: N815
