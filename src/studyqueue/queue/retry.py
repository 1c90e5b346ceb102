"""Bounded retries with exponential backoff and a shared circuit breaker."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, ContextManager, Optional, Protocol, TypeVar

from ..config import RetryPolicy
from .errors import PersistenceError
from .state import ItemStatus, RunState, WorkItem

__all__ = [
    "ItemUpdater",
    "RetryExecutor",
    "MAX_RETRIES_MESSAGE",
    "CIRCUIT_TRIPPED_MESSAGE",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES_MESSAGE = "Max retries exceeded"
CIRCUIT_TRIPPED_MESSAGE = "Circuit breaker tripped. API unstable."


class ItemUpdater(Protocol):
    def __call__(self, item_id: str, status: Optional[ItemStatus] = None, **fields: Any) -> WorkItem | None:
        ...


class RetryExecutor:
    """Run one fallible generator call for an item, at most ``max_retries`` times.

    Every failure bumps the item's ``retry_count`` and the run-wide breaker.
    When the breaker reaches its threshold the run is halted immediately,
    even if the current item still has attempts left.

    Any exception raised by the operation counts as a failed attempt except
    :class:`PersistenceError`, which is propagated untouched. Breaker and stop
    flag changes happen under ``lock``, shared with the owning scheduler.
    """

    def __init__(
        self,
        state: RunState,
        update_item: ItemUpdater,
        *,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        lock: ContextManager[Any] | None = None,
    ) -> None:
        self._state = state
        self._update_item = update_item
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._lock = lock if lock is not None else threading.RLock()

    def execute_with_retry(self, item_id: str, operation: Callable[[], T]) -> T | None:
        max_retries = self.policy.max_retries
        attempts = 0
        while attempts < max_retries and not self._state.should_stop:
            try:
                result = operation()
            except PersistenceError:
                raise
            except Exception as exc:
                attempts += 1
                logger.warning("Attempt %d/%d failed for item %s: %s", attempts, max_retries, item_id, exc)
                self._update_item(
                    item_id,
                    retry_count=attempts,
                    error_msg=f"Retry {attempts}/{max_retries}: {exc}",
                )

                if self._record_failure():
                    logger.error(
                        "Circuit breaker tripped after %d consecutive failures (item %s)",
                        self._state.consecutive_failures,
                        item_id,
                    )
                    self._update_item(item_id, ItemStatus.ERROR, error_msg=CIRCUIT_TRIPPED_MESSAGE)
                    return None

                if attempts < max_retries:
                    delay = self.policy.backoff_delay(attempts)
                    logger.info("Backing off %.1fs before retrying item %s", delay, item_id)
                    self._sleep(delay)
                continue

            with self._lock:
                self._state.breaker.record_success()
            return result

        if attempts == 0:
            # Stop was requested before the first attempt; leave the item alone.
            return None
        if attempts >= max_retries:
            message = MAX_RETRIES_MESSAGE
        else:
            message = f"Stopped after {attempts}/{max_retries} attempts"
        self._update_item(item_id, ItemStatus.ERROR, error_msg=message)
        return None

    def _record_failure(self) -> bool:
        with self._lock:
            tripped = self._state.breaker.record_failure()
            if tripped:
                self._state.should_stop = True
            return tripped
