"""Change notification channel shared by every client over one storage.

Plays the part of the browser ``storage`` event: after any mutating
write, the writer publishes a ``StorageEvent`` and every subscriber
(other "tabs" included) is told that state may have changed. Events
name the keys that were written but never carry the new values;
subscribers re-read what they care about.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageEvent:
    """A notification that one or more storage keys were written.

    Attributes:
        keys: Storage keys touched by the write.
        source: Short label of the writer ("store", "session").

    """

    keys: tuple[str, ...]
    source: str = ""


Listener = Callable[[StorageEvent], None]


class ChangeChannel:
    """Synchronous publish/subscribe channel for ``StorageEvent``."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: StorageEvent) -> None:
        """Deliver ``event`` to every listener in subscription order.

        A listener that raises is logged and skipped; the rest still
        receive the event.
        """
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Storage listener failed for keys %s", event.keys)

    @property
    def listener_count(self) -> int:
        """Number of currently registered listeners."""
        return len(self._listeners)
