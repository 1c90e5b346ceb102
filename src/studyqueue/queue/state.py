"""Work item and run state definitions for the batch pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterable, Optional

from ..config import PipelineConfig

__all__ = [
    "ItemStatus",
    "WorkItem",
    "CircuitBreaker",
    "RunState",
    "STATUS_CIRCUIT_OPEN",
    "STATUS_PROCESSING",
    "STATUS_IDLE",
]

STATUS_CIRCUIT_OPEN = "CIRCUIT BREAKER ACTIVE (PAUSED)"
STATUS_PROCESSING = "PROCESSING"
STATUS_IDLE = "IDLE"


class ItemStatus(str, Enum):
    PENDING = "pending"
    DRAFTING = "drafting_struct"
    STRUCT_READY = "struct_ready"
    PAUSED_FOR_REVIEW = "paused_for_review"
    GENERATING = "generating_note"
    DONE = "done"
    ERROR = "error"

    @property
    def needs_structure(self) -> bool:
        return self in (ItemStatus.PENDING, ItemStatus.ERROR)

    @property
    def in_flight(self) -> bool:
        return self in (ItemStatus.DRAFTING, ItemStatus.GENERATING)


@dataclass(frozen=True, slots=True)
class WorkItem:
    """One topic moving through the outline and content phases.

    Items are immutable; every transition produces a new instance via
    :meth:`evolve` so snapshots handed to subscribers never change under them.
    """

    id: str
    topic: str
    status: ItemStatus = ItemStatus.PENDING
    structure: Optional[str] = None
    error_msg: Optional[str] = None
    retry_count: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.status, ItemStatus):
            object.__setattr__(self, "status", ItemStatus(self.status))

    @property
    def has_structure(self) -> bool:
        return bool(self.structure and self.structure.strip())

    def evolve(self, **changes: Any) -> "WorkItem":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "topic": self.topic,
            "status": self.status.value,
            "structure": self.structure,
            "error_msg": self.error_msg,
            "retry_count": self.retry_count,
        }


@dataclass(slots=True)
class CircuitBreaker:
    """Global failure counter shared by every item in a run."""

    threshold: int = 3
    consecutive_failures: int = 0
    is_open: bool = False

    def record_failure(self) -> bool:
        """Count a failure and return ``True`` when this one trips the breaker."""

        self.consecutive_failures += 1
        if self.consecutive_failures >= self.threshold:
            self.is_open = True
        return self.is_open

    def record_success(self) -> None:
        self.consecutive_failures = 0

    def reset(self) -> None:
        self.consecutive_failures = 0
        self.is_open = False


@dataclass(slots=True)
class RunState:
    """Session-lifetime state owned by a single scheduler."""

    items: list[WorkItem] = field(default_factory=list)
    is_processing: bool = False
    should_stop: bool = False
    breaker: CircuitBreaker = field(default_factory=CircuitBreaker)
    config: PipelineConfig | None = None

    @property
    def circuit_open(self) -> bool:
        return self.breaker.is_open

    @property
    def consecutive_failures(self) -> int:
        return self.breaker.consecutive_failures

    @property
    def status_label(self) -> str:
        if self.circuit_open:
            return STATUS_CIRCUIT_OPEN
        if self.is_processing:
            return STATUS_PROCESSING
        return STATUS_IDLE

    def index_of(self, item_id: str) -> int:
        for idx, item in enumerate(self.items):
            if item.id == item_id:
                return idx
        return -1

    def find(self, item_id: str) -> WorkItem | None:
        idx = self.index_of(item_id)
        return self.items[idx] if idx != -1 else None

    def snapshot(self) -> list[WorkItem]:
        return list(self.items)

    def replace_items(self, items: Iterable[WorkItem]) -> None:
        self.items = list(items)
