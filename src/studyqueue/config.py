"""Dataclass-driven configuration for the study-note queue."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Iterable

from .paths import QueuePathConfig

__all__ = [
    "ArtifactTarget",
    "NoteMode",
    "ProviderKind",
    "ProviderConfig",
    "PipelineConfig",
    "RetryPolicy",
    "StudyQueueConfig",
    "PROVIDER_BASE_URLS",
    "PROVIDER_API_KEY_ENVS",
]


def _env_float(name: str, default: float | None = None) -> float | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:  # pragma: no cover - malformed value
        return default


def _env_int(name: str, default: int | None = None) -> int | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:  # pragma: no cover - malformed value
        return default


class NoteMode(str, Enum):
    """Writing style applied to a generated study note."""

    GENERAL = "general"
    CHEAT_CODES = "cheat_codes"
    FIRST_PRINCIPLES = "principles"
    FEYNMAN = "feynman"
    SOCRATIC = "socratic"


class ArtifactTarget(str, Enum):
    """Where finished notes are stored."""

    LOCAL = "local"
    REMOTE = "remote"


class ProviderKind(str, Enum):
    OPENAI = "openai"
    GROQ = "groq"
    GEMINI = "gemini"
    MOCK = "mock"


# Groq and Gemini both expose OpenAI-compatible chat endpoints.
PROVIDER_BASE_URLS: dict[ProviderKind, str] = {
    ProviderKind.GROQ: "https://api.groq.com/openai/v1",
    ProviderKind.GEMINI: "https://generativelanguage.googleapis.com/v1beta/openai/",
}

PROVIDER_API_KEY_ENVS: dict[ProviderKind, tuple[str, ...]] = {
    ProviderKind.OPENAI: ("OPENAI_API_KEY",),
    ProviderKind.GROQ: ("GROQ_API_KEY",),
    ProviderKind.GEMINI: ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    ProviderKind.MOCK: (),
}


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """Provider and model selection for one generation phase."""

    provider: ProviderKind = field(
        default_factory=lambda: ProviderKind(os.getenv("STUDYQUEUE_PROVIDER", "openai").lower())
    )
    model: str = field(default_factory=lambda: os.getenv("STUDYQUEUE_MODEL", "gpt-4o-mini"))
    base_url: str | None = field(default_factory=lambda: os.getenv("STUDYQUEUE_BASE_URL"))
    api_key_env: str = "STUDYQUEUE_API_KEY"
    temperature: float = field(default_factory=lambda: _env_float("STUDYQUEUE_TEMPERATURE", 0.4) or 0.0)
    max_tokens: int | None = field(default_factory=lambda: _env_int("STUDYQUEUE_MAX_TOKENS"))
    timeout: float | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.provider, ProviderKind):
            object.__setattr__(self, "provider", ProviderKind(str(self.provider).lower()))

    @property
    def is_mock(self) -> bool:
        return self.provider is ProviderKind.MOCK

    def resolve_base_url(self) -> str | None:
        return self.base_url or PROVIDER_BASE_URLS.get(self.provider)

    def resolve_api_key(self, override: str | None = None) -> str | None:
        if override:
            return override
        env_candidates: Iterable[str | None] = (self.api_key_env, *PROVIDER_API_KEY_ENVS[self.provider])
        for name in env_candidates:
            if not name:
                continue
            value = os.getenv(name)
            if value:
                return value
        return None

    def provider_kwargs(
        self,
        *,
        model: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict[str, object | None]:
        return {
            "model": model or self.model,
            "base_url": base_url or self.resolve_base_url(),
            "api_key": api_key if api_key is not None else self.resolve_api_key(),
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": self.max_tokens if max_tokens is None else max_tokens,
            "timeout": self.timeout,
        }

    def with_model(self, model: str, **overrides: object) -> "ProviderConfig":
        return replace(self, model=model, **overrides)


@dataclass(slots=True)
class RetryPolicy:
    """Retry, breaker and pacing constants. Delays are in seconds."""

    max_retries: int = field(default_factory=lambda: _env_int("STUDYQUEUE_MAX_RETRIES", 3) or 3)
    circuit_threshold: int = field(default_factory=lambda: _env_int("STUDYQUEUE_CIRCUIT_THRESHOLD", 3) or 3)
    base_delay: float = field(default_factory=lambda: _env_float("STUDYQUEUE_BASE_DELAY", 2.0) or 0.0)
    cooldown: float = field(default_factory=lambda: _env_float("STUDYQUEUE_COOLDOWN", 1.0) or 0.0)

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.circuit_threshold < 1:
            raise ValueError("circuit_threshold must be at least 1")
        if self.base_delay < 0 or self.cooldown < 0:
            raise ValueError("delays must not be negative")

    def backoff_delay(self, attempt: int) -> float:
        """Delay after the ``attempt``-th failure (1-indexed), doubling each time."""

        return self.base_delay * (2 ** attempt)


@dataclass(slots=True)
class PipelineConfig:
    """Per-run settings supplied to :meth:`QueueScheduler.start_processing`."""

    provider: ProviderConfig = field(default_factory=ProviderConfig)
    structure_provider: ProviderConfig | None = None
    auto_approve: bool = False
    mode: NoteMode = NoteMode.GENERAL
    custom_prompt: str | None = None
    custom_structure_prompt: str | None = None
    # REMOTE keeps the local copy and also mirrors each note to the remote sync.
    artifact_store: ArtifactTarget = ArtifactTarget.LOCAL
    # Error items normally restart at the structure phase, discarding any
    # cached outline. When set, they resume at the content phase instead.
    resume_from_structure: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.mode, NoteMode):
            self.mode = NoteMode(self.mode)
        if not isinstance(self.artifact_store, ArtifactTarget):
            self.artifact_store = ArtifactTarget(self.artifact_store)

    @property
    def remote_sync(self) -> bool:
        return self.artifact_store is ArtifactTarget.REMOTE

    def structure_provider_config(self) -> ProviderConfig:
        return self.structure_provider or self.provider


@dataclass(slots=True)
class StudyQueueConfig:
    """Primary configuration entry point for the queue tooling."""

    paths: QueuePathConfig = field(default_factory=QueuePathConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def with_data_root(self, data_root: Path | str) -> "StudyQueueConfig":
        return replace(self, paths=QueuePathConfig(data_root=Path(data_root)).expanded())

    @property
    def queue_file(self) -> Path:
        resolved = self.paths.expanded()
        assert resolved.queue_file is not None
        return resolved.queue_file

    @property
    def library_file(self) -> Path:
        resolved = self.paths.expanded()
        assert resolved.library_file is not None
        return resolved.library_file

    @property
    def artifact_dir(self) -> Path:
        resolved = self.paths.expanded()
        assert resolved.artifact_dir is not None
        return resolved.artifact_dir

    def ensure_directories(self) -> "StudyQueueConfig":
        self.paths = self.paths.ensure()
        return self
