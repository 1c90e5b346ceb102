from __future__ import annotations

import logging
import threading

import pytest

from studyqueue.queue import QueuedNotifier, SubscriberRegistry, WorkItem


def test_registry_delivers_in_subscription_order() -> None:
    registry = SubscriberRegistry()
    calls: list[tuple[str, int, bool, str]] = []

    registry.subscribe(lambda items, busy, label: calls.append(("first", len(items), busy, label)))
    registry.subscribe(lambda items, busy, label: calls.append(("second", len(items), busy, label)))
    registry.publish([WorkItem(id="a", topic="A")], True, "PROCESSING")

    assert calls == [("first", 1, True, "PROCESSING"), ("second", 1, True, "PROCESSING")]
    assert len(registry) == 2


def test_registry_isolates_failing_subscribers(caplog: pytest.LogCaptureFixture) -> None:
    registry = SubscriberRegistry()
    received: list[str] = []

    def broken(items, busy, label) -> None:
        raise RuntimeError("subscriber bug")

    registry.subscribe(broken)
    registry.subscribe(lambda items, busy, label: received.append(label))

    with caplog.at_level(logging.ERROR, logger="studyqueue.queue.notify"):
        registry.publish([], False, "IDLE")

    assert received == ["IDLE"]
    assert "subscriber" in caplog.text


def test_unsubscribe_stops_delivery() -> None:
    registry = SubscriberRegistry()
    received: list[str] = []
    unsubscribe = registry.subscribe(lambda items, busy, label: received.append(label))

    registry.publish([], False, "IDLE")
    unsubscribe()
    unsubscribe()
    registry.publish([], True, "PROCESSING")

    assert received == ["IDLE"]
    assert len(registry) == 0


def test_subscribers_get_their_own_list() -> None:
    registry = SubscriberRegistry()
    snapshots: list[list[WorkItem]] = []

    def mutate(items, busy, label) -> None:
        items.append(WorkItem(id="x", topic="X"))
        snapshots.append(items)

    registry.subscribe(mutate)
    registry.subscribe(lambda items, busy, label: snapshots.append(items))
    registry.publish([WorkItem(id="a", topic="A")], False, "IDLE")

    assert len(snapshots[0]) == 2
    assert len(snapshots[1]) == 1


def test_queued_notifier_delivers_off_thread() -> None:
    notifier = QueuedNotifier()
    threads: list[str] = []
    labels: list[str] = []

    def record(items, busy, label) -> None:
        threads.append(threading.current_thread().name)
        labels.append(label)

    notifier.subscribe(record)
    notifier.publish([], True, "PROCESSING")
    notifier.publish([], False, "IDLE")
    notifier.flush()
    notifier.close()
    notifier.close()

    assert labels == ["PROCESSING", "IDLE"]
    assert set(threads) == {"studyqueue-notifier"}
