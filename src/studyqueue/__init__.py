"""Batch pipeline that turns syllabus topics into AI-generated study notes."""

from .config import ArtifactTarget, NoteMode, PipelineConfig, ProviderConfig, ProviderKind, RetryPolicy, StudyQueueConfig
from .io import LoadedSyllabus, load_syllabus
from .paths import QueuePathConfig, resolve_data_root
from .queue import (
    Artifact,
    GeneratorError,
    ItemStatus,
    JsonQueuePersistence,
    LocalArtifactStore,
    NoteGenerator,
    PersistenceError,
    QueueLibrary,
    QueueScheduler,
    WorkItem,
    build_work_items,
    parse_topics,
)

__all__ = [
    "ArtifactTarget",
    "NoteMode",
    "PipelineConfig",
    "ProviderConfig",
    "ProviderKind",
    "RetryPolicy",
    "StudyQueueConfig",
    "QueuePathConfig",
    "resolve_data_root",
    "LoadedSyllabus",
    "load_syllabus",
    "Artifact",
    "GeneratorError",
    "ItemStatus",
    "JsonQueuePersistence",
    "LocalArtifactStore",
    "NoteGenerator",
    "PersistenceError",
    "QueueLibrary",
    "QueueScheduler",
    "WorkItem",
    "build_work_items",
    "parse_topics",
]
