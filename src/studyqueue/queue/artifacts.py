"""Generated-note artifacts, the local artifact store and remote sync."""

from __future__ import annotations

import json
import logging
import os
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Protocol

import httpx
from pydantic import ValidationError

from ..config import PipelineConfig
from .errors import PersistenceError, RemoteSyncError
from .schema import ArtifactRecord
from .store import utc_timestamp, write_json_atomic

__all__ = [
    "Artifact",
    "ArtifactStore",
    "RemoteSink",
    "LocalArtifactStore",
    "HttpArtifactSync",
    "sanitize_filename",
    "DEFAULT_TAGS",
]

logger = logging.getLogger(__name__)

DEFAULT_TAGS: tuple[str, ...] = ("Auto-Curriculum",)
INDEX_FILENAME = "index.json"
VALID_FILENAME_PATTERN = re.compile(r"[^\w\-\s]", re.UNICODE)
WHITESPACE_PATTERN = re.compile(r"[\s\-]+")


def sanitize_filename(title: str) -> str:
    """Lower-case ``title`` and collapse it into a hyphenated filename stem."""

    cleaned = VALID_FILENAME_PATTERN.sub("", title).strip()
    cleaned = WHITESPACE_PATTERN.sub("-", cleaned.lower())
    cleaned = cleaned.strip("-_")
    return cleaned or "note"


@dataclass(slots=True)
class Artifact:
    """A finished study note together with its provenance."""

    id: str
    topic: str
    content: str
    mode: str
    provider: str
    model: str
    created_at: str = field(default_factory=utc_timestamp)
    tags: list[str] = field(default_factory=lambda: list(DEFAULT_TAGS))
    source_item_id: str | None = None

    @classmethod
    def from_generation(
        cls,
        *,
        topic: str,
        content: str,
        config: PipelineConfig,
        source_item_id: str | None = None,
    ) -> "Artifact":
        return cls(
            id=f"note-{time.time_ns()}",
            topic=topic,
            content=content,
            mode=config.mode.value,
            provider=config.provider.provider.value,
            model=config.provider.model,
            source_item_id=source_item_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "topic": self.topic,
            "content": self.content,
            "mode": self.mode,
            "provider": self.provider,
            "model": self.model,
            "created_at": self.created_at,
            "tags": list(self.tags),
            "source_item_id": self.source_item_id,
        }


class ArtifactStore(Protocol):
    def save(self, artifact: Artifact) -> None:  # pragma: no cover - interface
        ...

    def sync_remote(self, artifact: Artifact) -> None:  # pragma: no cover - interface
        ...


class RemoteSink(Protocol):
    def push(self, artifact: Artifact) -> None:  # pragma: no cover - interface
        ...


class LocalArtifactStore:
    """Write each note as Markdown and keep a JSON index beside them."""

    def __init__(
        self,
        directory: Path | str,
        *,
        remote: RemoteSink | None = None,
        encoding: str = "utf-8",
    ) -> None:
        self.directory = Path(directory).expanduser()
        self.remote = remote
        self.encoding = encoding

    @property
    def index_path(self) -> Path:
        return self.directory / INDEX_FILENAME

    def save(self, artifact: Artifact) -> None:
        note_path = self.directory / f"{sanitize_filename(artifact.topic)}-{artifact.id}.md"
        record = ArtifactRecord(
            id=artifact.id,
            topic=artifact.topic,
            path=note_path.name,
            mode=artifact.mode,
            provider=artifact.provider,
            model=artifact.model,
            created_at=artifact.created_at,
            tags=list(artifact.tags),
            source_item_id=artifact.source_item_id,
        )
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            note_path.write_text(artifact.content.strip() + "\n", encoding=self.encoding)
            entries = [entry for entry in self.list_artifacts() if entry.id != artifact.id]
            entries.insert(0, record)
            write_json_atomic(
                self.index_path,
                [entry.model_dump(mode="json") for entry in entries],
                encoding=self.encoding,
            )
        except OSError as exc:
            raise PersistenceError(f"Failed to save note for '{artifact.topic}': {exc}") from exc
        logger.info("Saved note for '%s' to %s", artifact.topic, note_path)

    def list_artifacts(self) -> list[ArtifactRecord]:
        if not self.index_path.exists():
            return []
        try:
            payload = json.loads(self.index_path.read_text(encoding=self.encoding))
            return [ArtifactRecord.model_validate(entry) for entry in payload]
        except (OSError, ValueError, ValidationError) as exc:
            raise PersistenceError(f"Artifact index {self.index_path} is unreadable: {exc}") from exc

    def read_content(self, record: ArtifactRecord) -> str:
        return (self.directory / record.path).read_text(encoding=self.encoding)

    def sync_remote(self, artifact: Artifact) -> None:
        if self.remote is None:
            return
        self.remote.push(artifact)


class HttpArtifactSync:
    """Push notes to a PostgREST-style endpoint such as a Supabase table.

    Credentials come from ``STUDYQUEUE_REMOTE_KEY`` unless given explicitly.
    Every transport or HTTP status failure surfaces as :class:`RemoteSyncError`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        table: str = "notes",
        api_key: str | None = None,
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.table = table
        key = api_key or os.getenv("STUDYQUEUE_REMOTE_KEY")
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Prefer": "resolution=merge-duplicates",
        }
        if key:
            headers["apikey"] = key
            headers["Authorization"] = f"Bearer {key}"
        self._client = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def endpoint(self) -> str:
        return f"/rest/v1/{self.table}"

    def push(self, artifact: Artifact) -> None:
        payload: Mapping[str, Any] = artifact.to_dict()
        try:
            response = self._client.post(self.endpoint, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteSyncError(
                f"Remote sync rejected note {artifact.id}: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteSyncError(f"Remote sync failed for note {artifact.id}: {exc}") from exc
        logger.debug("Synced note %s to %s%s", artifact.id, self.base_url, self.endpoint)

    def close(self) -> None:
        self._client.close()
