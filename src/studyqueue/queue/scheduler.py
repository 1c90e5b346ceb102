"""Single-worker scheduler that walks the topic queue through both phases.

The scheduler owns the run state. All mutations (from the processing loop or
from the review gate) go through one re-entrant lock, are persisted, and are
then published to subscribers. The loop advances exactly one item at a time;
generator calls, backoff sleeps and the cooldown run outside the lock so the
review gate stays responsive while a run is in progress.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Iterable, Optional

from ..config import PipelineConfig, RetryPolicy
from .artifacts import ArtifactStore
from .errors import PersistenceError
from .generators import ContentGenerator, StructureGenerator
from .graph import ItemPipeline
from .notify import Subscriber, SubscriberRegistry
from .phases import ContentPhase, StructurePhase
from .retry import RetryExecutor
from .state import CircuitBreaker, ItemStatus, RunState, WorkItem
from .store import QueuePersistence

__all__ = ["QueueScheduler", "is_selectable"]

logger = logging.getLogger(__name__)


def is_selectable(item: WorkItem, config: PipelineConfig) -> bool:
    """Whether the scheduler may pick ``item`` on its next scan.

    Items paused for review are never selected, but they do not block the
    items queued after them.
    """

    if item.status in (ItemStatus.PENDING, ItemStatus.ERROR):
        return True
    return item.status is ItemStatus.STRUCT_READY and (config.auto_approve or item.has_structure)


class QueueScheduler:
    """Public surface of the batch pipeline."""

    def __init__(
        self,
        structure_generator: StructureGenerator,
        content_generator: ContentGenerator,
        artifact_store: ArtifactStore,
        *,
        persistence: QueuePersistence | None = None,
        policy: RetryPolicy | None = None,
        notifier: SubscriberRegistry | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._state = RunState(breaker=CircuitBreaker(threshold=self.policy.circuit_threshold))
        self._lock = threading.RLock()
        self._notifier = notifier or SubscriberRegistry()
        self._persistence = persistence
        self._sleep = sleep

        executor = RetryExecutor(
            self._state,
            self._update_item,
            policy=self.policy,
            sleep=sleep,
            lock=self._lock,
        )
        self._pipeline = ItemPipeline(
            self._state,
            StructurePhase(structure_generator, executor, self._update_item),
            ContentPhase(content_generator, executor, self._update_item, artifact_store),
            self._update_item,
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def state(self) -> RunState:
        return self._state

    @property
    def items(self) -> list[WorkItem]:
        with self._lock:
            return self._state.snapshot()

    @property
    def is_processing(self) -> bool:
        return self._state.is_processing

    @property
    def circuit_open(self) -> bool:
        return self._state.circuit_open

    @property
    def status_label(self) -> str:
        return self._state.status_label

    def get_item(self, item_id: str) -> WorkItem | None:
        with self._lock:
            return self._state.find(item_id)

    # ------------------------------------------------------------------
    # Queue management and review gate
    # ------------------------------------------------------------------
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self._notifier.subscribe(callback)

    def set_queue(self, items: Iterable[WorkItem]) -> None:
        with self._lock:
            self._state.replace_items(items)
            self._commit()

    def restore(self) -> list[WorkItem]:
        """Reload the item list from persistence, e.g. after a restart."""

        if self._persistence is None:
            return self.items
        items = self._persistence.load()
        with self._lock:
            self._state.replace_items(items)
            self._notify()
        logger.info("Restored %d queued topics", len(items))
        return list(items)

    def update_item_structure(self, item_id: str, structure: str) -> bool:
        """Approve an item with an edited outline."""

        updated = self._update_item(item_id, ItemStatus.STRUCT_READY, structure=structure)
        return updated is not None

    def approve_item(self, item_id: str) -> bool:
        """Approve an item's outline as drafted."""

        updated = self._update_item(item_id, ItemStatus.STRUCT_READY)
        return updated is not None

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------
    def start_processing(self, config: PipelineConfig) -> bool:
        """Process the queue until nothing is actionable, a stop, or a breaker trip.

        Returns ``False`` without doing anything when a run is already in
        progress or the circuit breaker is open.
        """

        with self._lock:
            if self._state.is_processing or self._state.circuit_open:
                logger.info("start_processing ignored (%s)", self._state.status_label)
                return False
            self._state.config = config
            self._state.is_processing = True
            self._state.should_stop = False
            self._notify()

        try:
            while not self._state.should_stop and not self._state.circuit_open:
                with self._lock:
                    item_id = self._select_next(config)
                if item_id is None:
                    logger.info("No actionable topics left")
                    break
                self._pipeline.run(item_id)
                self._sleep(self.policy.cooldown)
        finally:
            with self._lock:
                self._state.is_processing = False
                self._notify()
        return True

    def start_in_background(self, config: PipelineConfig) -> threading.Thread:
        thread = threading.Thread(
            target=self.start_processing,
            args=(config,),
            name="studyqueue-scheduler",
            daemon=True,
        )
        thread.start()
        return thread

    def stop(self) -> None:
        """Ask the loop to halt once the in-flight call or sleep returns."""

        with self._lock:
            self._state.should_stop = True
            self._notify()

    def reset_circuit(self) -> None:
        with self._lock:
            self._state.breaker.reset()
            self._notify()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _select_next(self, config: PipelineConfig) -> str | None:
        for item in self._state.items:
            if is_selectable(item, config):
                return item.id
        return None

    def _update_item(self, item_id: str, status: Optional[ItemStatus] = None, **fields: Any) -> WorkItem | None:
        with self._lock:
            idx = self._state.index_of(item_id)
            if idx == -1:
                logger.warning("Ignoring update for unknown item %s", item_id)
                return None
            changes = dict(fields)
            if status is not None:
                changes["status"] = status
            updated = self._state.items[idx].evolve(**changes)
            items = self._state.snapshot()
            items[idx] = updated
            self._state.replace_items(items)
            self._commit()
            return updated

    def _commit(self) -> None:
        self._persist()
        self._notify()

    def _persist(self) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.save(self._state.snapshot())
        except PersistenceError:
            logger.error("Could not persist the queue; halting")
            raise

    def _notify(self) -> None:
        self._notifier.publish(self._state.snapshot(), self._state.is_processing, self._state.status_label)
