"""Tests for the storage change channel."""

from __future__ import annotations

from propertydex.events import ChangeChannel, StorageEvent


class TestChangeChannel:
    """Tests for publish/subscribe delivery."""

    def test_delivers_in_subscription_order(self):
        channel = ChangeChannel()
        seen: list[str] = []
        channel.subscribe(lambda e: seen.append("a"))
        channel.subscribe(lambda e: seen.append("b"))

        channel.publish(StorageEvent(keys=("k",)))
        assert seen == ["a", "b"]

    def test_unsubscribe_stops_delivery(self):
        channel = ChangeChannel()
        events: list[StorageEvent] = []
        unsubscribe = channel.subscribe(events.append)

        unsubscribe()
        unsubscribe()  # second call is harmless
        channel.publish(StorageEvent(keys=("k",)))

        assert events == []
        assert channel.listener_count == 0

    def test_failing_listener_does_not_block_others(self):
        channel = ChangeChannel()
        events: list[StorageEvent] = []

        def boom(event: StorageEvent) -> None:
            raise RuntimeError("listener failure")

        channel.subscribe(boom)
        channel.subscribe(events.append)
        channel.publish(StorageEvent(keys=("k",), source="store"))

        assert len(events) == 1
        assert events[0].source == "store"
