"""Path helpers for the studyqueue data directory."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

__all__ = [
    "DEFAULT_DATA_ROOT",
    "QUEUE_FILENAME",
    "LIBRARY_FILENAME",
    "ARTIFACT_DIRNAME",
    "QueuePathConfig",
    "resolve_data_root",
]

DEFAULT_DATA_ROOT = Path(".studyqueue")
QUEUE_FILENAME = "queue.json"
LIBRARY_FILENAME = "saved_queues.json"
ARTIFACT_DIRNAME = "notes"


def _normalise(path: Path | str) -> Path:
    return Path(path).expanduser()


def resolve_data_root(path: Path | str | None = None, *, create: bool = False) -> Path:
    candidate = _normalise(path or os.getenv("STUDYQUEUE_DATA_ROOT") or DEFAULT_DATA_ROOT)
    if create:
        candidate.mkdir(parents=True, exist_ok=True)
    return candidate


@dataclass(slots=True)
class QueuePathConfig:
    """Locations of the persisted queue, saved-queue library and note artifacts."""

    data_root: Path = field(default_factory=resolve_data_root)
    queue_file: Path | None = None
    library_file: Path | None = None
    artifact_dir: Path | None = None

    def expanded(self) -> "QueuePathConfig":
        root = _normalise(self.data_root)
        return replace(
            self,
            data_root=root,
            queue_file=_normalise(self.queue_file) if self.queue_file else root / QUEUE_FILENAME,
            library_file=_normalise(self.library_file) if self.library_file else root / LIBRARY_FILENAME,
            artifact_dir=_normalise(self.artifact_dir) if self.artifact_dir else root / ARTIFACT_DIRNAME,
        )

    def ensure(self) -> "QueuePathConfig":
        resolved = self.expanded()
        resolved.data_root.mkdir(parents=True, exist_ok=True)
        assert resolved.artifact_dir is not None
        resolved.artifact_dir.mkdir(parents=True, exist_ok=True)
        return resolved
