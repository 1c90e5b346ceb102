"""Crash-safe JSON persistence for the queue and the saved-queue library."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, Sequence

from pydantic import ValidationError

from .errors import PersistenceError
from .schema import QueueSnapshot, SavedQueueRecord, WorkItemRecord
from .state import ItemStatus, WorkItem

__all__ = [
    "QueuePersistence",
    "MemoryQueuePersistence",
    "JsonQueuePersistence",
    "QueueLibrary",
    "recover_in_flight",
    "write_json_atomic",
    "utc_timestamp",
]

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def write_json_atomic(path: Path, payload: Any, *, encoding: str = "utf-8") -> None:
    """Write ``payload`` so readers only ever see the old or the new file."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
            handle.write("\n")
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def recover_in_flight(items: Sequence[WorkItem]) -> list[WorkItem]:
    """Return items with interrupted phases rolled back to a schedulable state.

    A crash mid-phase leaves ``drafting_struct`` or ``generating_note`` on
    disk, neither of which the scheduler ever selects.
    """

    recovered: list[WorkItem] = []
    for item in items:
        if item.status is ItemStatus.DRAFTING:
            item = item.evolve(status=ItemStatus.PENDING)
        elif item.status is ItemStatus.GENERATING:
            status = ItemStatus.STRUCT_READY if item.has_structure else ItemStatus.PENDING
            item = item.evolve(status=status)
        recovered.append(item)
    return recovered


class QueuePersistence(Protocol):
    def save(self, items: Sequence[WorkItem]) -> None:  # pragma: no cover - interface
        ...

    def load(self) -> list[WorkItem]:  # pragma: no cover - interface
        ...


class MemoryQueuePersistence:
    """Keeps every saved snapshot in memory; handy for embedding and tests."""

    def __init__(self, items: Sequence[WorkItem] | None = None) -> None:
        self.snapshots: list[list[WorkItem]] = [list(items)] if items else []

    def save(self, items: Sequence[WorkItem]) -> None:
        self.snapshots.append(list(items))

    def load(self) -> list[WorkItem]:
        return list(self.snapshots[-1]) if self.snapshots else []


class JsonQueuePersistence:
    """Persist the ordered item list to a single JSON file."""

    def __init__(self, path: Path | str, *, encoding: str = "utf-8") -> None:
        self.path = Path(path).expanduser()
        self.encoding = encoding

    def save(self, items: Sequence[WorkItem]) -> None:
        snapshot = QueueSnapshot(
            saved_at=utc_timestamp(),
            items=[WorkItemRecord.from_item(item) for item in items],
        )
        try:
            write_json_atomic(self.path, snapshot.model_dump(mode="json"), encoding=self.encoding)
        except OSError as exc:
            raise PersistenceError(f"Failed to persist queue to {self.path}: {exc}") from exc

    def load(self) -> list[WorkItem]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding=self.encoding))
            snapshot = QueueSnapshot.model_validate(payload)
        except (OSError, ValueError, ValidationError) as exc:
            raise PersistenceError(f"Queue file {self.path} is unreadable: {exc}") from exc
        return recover_in_flight([record.to_item() for record in snapshot.items])


class QueueLibrary:
    """Named queue snapshots, newest first, upserted by id."""

    def __init__(self, path: Path | str, *, encoding: str = "utf-8") -> None:
        self.path = Path(path).expanduser()
        self.encoding = encoding

    def list_queues(self) -> list[SavedQueueRecord]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding=self.encoding))
            return [SavedQueueRecord.model_validate(entry) for entry in payload]
        except (OSError, ValueError, ValidationError) as exc:
            raise PersistenceError(f"Saved-queue library {self.path} is unreadable: {exc}") from exc

    def get_queue(self, queue_id: str) -> SavedQueueRecord | None:
        for record in self.list_queues():
            if record.id == queue_id:
                return record
        return None

    def save_queue(
        self,
        name: str,
        items: Sequence[WorkItem],
        *,
        queue_id: str | None = None,
    ) -> SavedQueueRecord:
        record = SavedQueueRecord(
            id=queue_id or f"queue-{int(time.time() * 1000)}",
            name=name,
            saved_at=utc_timestamp(),
            items=[WorkItemRecord.from_item(item) for item in items],
        )
        queues = [existing for existing in self.list_queues() if existing.id != record.id]
        queues.insert(0, record)
        self._write(queues)
        logger.info("Saved queue '%s' (%d items) as %s", name, len(record.items), record.id)
        return record

    def delete_queue(self, queue_id: str) -> bool:
        queues = self.list_queues()
        remaining = [record for record in queues if record.id != queue_id]
        if len(remaining) == len(queues):
            return False
        self._write(remaining)
        return True

    def _write(self, queues: Sequence[SavedQueueRecord]) -> None:
        try:
            write_json_atomic(
                self.path,
                [record.model_dump(mode="json") for record in queues],
                encoding=self.encoding,
            )
        except OSError as exc:
            raise PersistenceError(f"Failed to write saved-queue library {self.path}: {exc}") from exc
