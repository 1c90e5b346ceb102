"""Exceptions raised across the study-note queue."""

from __future__ import annotations

__all__ = [
    "GeneratorError",
    "PersistenceError",
    "RemoteSyncError",
    "TopicParseError",
]


class GeneratorError(RuntimeError):
    """Raised when a structure or content generator fails; always retryable."""


class PersistenceError(RuntimeError):
    """Raised when the queue or an artifact cannot be written locally."""


class RemoteSyncError(PersistenceError):
    """Raised by remote artifact sinks. The pipeline never lets it escape."""


class TopicParseError(ValueError):
    """Raised when syllabus input yields no usable topics."""
