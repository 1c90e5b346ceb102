"""Pydantic schemas for everything the queue writes to disk."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .state import ItemStatus, WorkItem

__all__ = [
    "WorkItemRecord",
    "QueueSnapshot",
    "ArtifactRecord",
    "SavedQueueRecord",
    "QUEUE_SCHEMA_VERSION",
]

QUEUE_SCHEMA_VERSION = 1


class FrozenBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class WorkItemRecord(FrozenBaseModel):
    """Serialised form of a :class:`WorkItem`."""

    id: str = Field(..., description="Stable identifier of the queue entry.")
    topic: str = Field(..., description="Topic the note is generated for.")
    status: ItemStatus = Field(default=ItemStatus.PENDING, description="Pipeline state of the item.")
    structure: Optional[str] = Field(default=None, description="Outline produced by the structure phase.")
    error_msg: Optional[str] = Field(default=None, description="Last diagnostic message, if any.")
    retry_count: int = Field(default=0, ge=0, description="Failed attempts in the current phase.")

    @classmethod
    def from_item(cls, item: WorkItem) -> "WorkItemRecord":
        return cls(**item.to_dict())

    def to_item(self) -> WorkItem:
        return WorkItem(
            id=self.id,
            topic=self.topic,
            status=self.status,
            structure=self.structure,
            error_msg=self.error_msg,
            retry_count=self.retry_count,
        )


class QueueSnapshot(FrozenBaseModel):
    """Top-level payload of the persisted queue file."""

    version: int = Field(default=QUEUE_SCHEMA_VERSION)
    saved_at: str = Field(..., description="UTC timestamp of the write.")
    items: List[WorkItemRecord] = Field(default_factory=list)


class ArtifactRecord(FrozenBaseModel):
    """Index entry for one generated note."""

    id: str
    topic: str
    path: str
    mode: str
    provider: str
    model: str
    created_at: str
    tags: List[str] = Field(default_factory=list)
    source_item_id: Optional[str] = None


class SavedQueueRecord(FrozenBaseModel):
    """A named queue kept in the saved-queue library."""

    id: str
    name: str
    saved_at: str
    items: List[WorkItemRecord] = Field(default_factory=list)
