"""Autonomous two-phase batch pipeline for study notes."""

from .artifacts import Artifact, ArtifactStore, HttpArtifactSync, LocalArtifactStore
from .errors import GeneratorError, PersistenceError, RemoteSyncError, TopicParseError
from .generators import (
    ContentGenerator,
    LangChainNoteGenerator,
    MockNoteGenerator,
    NoteGenerator,
    StructureGenerator,
)
from .notify import QueuedNotifier, SubscriberRegistry
from .retry import RetryExecutor
from .scheduler import QueueScheduler, is_selectable
from .state import (
    STATUS_CIRCUIT_OPEN,
    STATUS_IDLE,
    STATUS_PROCESSING,
    CircuitBreaker,
    ItemStatus,
    RunState,
    WorkItem,
)
from .store import JsonQueuePersistence, MemoryQueuePersistence, QueueLibrary, QueuePersistence
from .topics import build_work_items, parse_topics

__all__ = [
    "Artifact",
    "ArtifactStore",
    "HttpArtifactSync",
    "LocalArtifactStore",
    "GeneratorError",
    "PersistenceError",
    "RemoteSyncError",
    "TopicParseError",
    "ContentGenerator",
    "StructureGenerator",
    "LangChainNoteGenerator",
    "MockNoteGenerator",
    "NoteGenerator",
    "QueuedNotifier",
    "SubscriberRegistry",
    "RetryExecutor",
    "QueueScheduler",
    "is_selectable",
    "STATUS_CIRCUIT_OPEN",
    "STATUS_IDLE",
    "STATUS_PROCESSING",
    "CircuitBreaker",
    "ItemStatus",
    "RunState",
    "WorkItem",
    "JsonQueuePersistence",
    "MemoryQueuePersistence",
    "QueueLibrary",
    "QueuePersistence",
    "build_work_items",
    "parse_topics",
]
