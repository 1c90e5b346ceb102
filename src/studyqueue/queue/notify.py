"""Subscriber registry and a queued dispatcher for slow subscribers."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Sequence

from .state import WorkItem

__all__ = ["Subscriber", "SubscriberRegistry", "QueuedNotifier"]

logger = logging.getLogger(__name__)

Subscriber = Callable[[list[WorkItem], bool, str], None]


class SubscriberRegistry:
    """Deliver every queue change to subscribers, synchronously and in order.

    A subscriber that raises is logged and skipped; it never interrupts the
    scheduler or the remaining subscribers.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers = [cb for cb in self._subscribers if cb is not callback]

        return unsubscribe

    def __len__(self) -> int:
        return len(self._subscribers)

    def publish(self, items: Sequence[WorkItem], is_processing: bool, status_label: str) -> None:
        self._deliver(list(items), is_processing, status_label)

    def close(self) -> None:
        """Release resources; a no-op for synchronous delivery."""

    def _deliver(self, items: list[WorkItem], is_processing: bool, status_label: str) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(list(items), is_processing, status_label)
            except Exception:
                logger.exception("Queue subscriber %r failed", callback)


class QueuedNotifier(SubscriberRegistry):
    """Hand snapshots to a worker thread so slow subscribers cannot stall the scheduler."""

    _SENTINEL = object()

    def __init__(self, *, maxsize: int = 0) -> None:
        super().__init__()
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._worker = threading.Thread(target=self._drain, name="studyqueue-notifier", daemon=True)
        self._worker.start()

    def publish(self, items: Sequence[WorkItem], is_processing: bool, status_label: str) -> None:
        self._queue.put((list(items), is_processing, status_label))

    def flush(self) -> None:
        """Block until every queued snapshot has been delivered."""

        self._queue.join()

    def close(self) -> None:
        if not self._worker.is_alive():
            return
        self._queue.put(self._SENTINEL)
        self._worker.join()

    def _drain(self) -> None:
        while True:
            entry = self._queue.get()
            try:
                if entry is self._SENTINEL:
                    return
                items, is_processing, status_label = entry  # type: ignore[misc]
                self._deliver(items, is_processing, status_label)
            finally:
                self._queue.task_done()
