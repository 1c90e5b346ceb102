"""Shared fixtures for the test suite."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable

import pytest

from studyqueue.config import PipelineConfig, ProviderConfig, ProviderKind, RetryPolicy
from studyqueue.queue import (
    GeneratorError,
    LocalArtifactStore,
    MemoryQueuePersistence,
    QueueScheduler,
    WorkItem,
)

ENV_VARS = {
    "STUDYQUEUE_PROVIDER",
    "STUDYQUEUE_MODEL",
    "STUDYQUEUE_API_KEY",
    "STUDYQUEUE_BASE_URL",
    "STUDYQUEUE_TEMPERATURE",
    "STUDYQUEUE_MAX_TOKENS",
    "STUDYQUEUE_MAX_RETRIES",
    "STUDYQUEUE_CIRCUIT_THRESHOLD",
    "STUDYQUEUE_BASE_DELAY",
    "STUDYQUEUE_COOLDOWN",
    "STUDYQUEUE_DATA_ROOT",
    "STUDYQUEUE_REMOTE_KEY",
    "OPENAI_MODEL",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "GROQ_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
}


@pytest.fixture(autouse=True)
def _clear_llm_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure provider and queue environment variables do not leak between tests."""

    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def dummy_chat_model(monkeypatch: pytest.MonkeyPatch):
    """Patch the LangChain chat client used by the provider abstraction."""

    from studyqueue.llm import providers

    class DummyChatModel:
        def __init__(self, **kwargs: Any) -> None:
            self.kwargs = kwargs
            self.invocations: list[tuple[str, tuple[Iterable[Any], dict[str, Any]]]] = []

        def invoke(self, messages: Iterable[Any], **kwargs: Any) -> dict[str, Any]:
            record = ("invoke", (tuple(messages), dict(kwargs)))
            self.invocations.append(record)
            return {"messages": list(messages), **kwargs}

    monkeypatch.setattr(providers, "ChatOpenAI", DummyChatModel)
    return DummyChatModel


class SleepRecorder:
    """Stand-in for ``time.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class ScriptedGenerator:
    """Generator whose behaviour per topic is scripted by the test.

    ``structure_script`` / ``content_script`` map a topic to a list of
    outcomes consumed one call at a time; an ``Exception`` instance is raised,
    anything else is returned. Topics without a script succeed.
    """

    def __init__(
        self,
        structure_script: dict[str, list[Any]] | None = None,
        content_script: dict[str, list[Any]] | None = None,
    ) -> None:
        self.structure_script = {k: list(v) for k, v in (structure_script or {}).items()}
        self.content_script = {k: list(v) for k, v in (content_script or {}).items()}
        self.structure_calls: list[tuple[str, ProviderConfig]] = []
        self.content_calls: list[tuple[str, str, ProviderConfig]] = []
        self.hooks: list[Callable[[str, str], None]] = []

    def _next(self, script: dict[str, list[Any]], topic: str, default: str) -> str:
        outcomes = script.get(topic)
        if outcomes:
            outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
            if isinstance(outcome, Exception):
                raise outcome
            return str(outcome)
        return default

    def generate_structure(self, topic: str, provider: ProviderConfig, pipeline: PipelineConfig) -> str:
        self.structure_calls.append((topic, provider))
        for hook in self.hooks:
            hook("structure", topic)
        return self._next(self.structure_script, topic, f"1. Basics of {topic}\n2. Details")

    def generate_content(
        self,
        topic: str,
        structure: str,
        provider: ProviderConfig,
        pipeline: PipelineConfig,
    ) -> str:
        self.content_calls.append((topic, structure, provider))
        for hook in self.hooks:
            hook("content", topic)
        return self._next(self.content_script, topic, f"# {topic}\n\n{structure}")


def always_fail(message: str = "upstream unavailable") -> list[Exception]:
    return [GeneratorError(message)]


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(max_retries=3, circuit_threshold=3, base_delay=2.0, cooldown=1.0)


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    return PipelineConfig(
        provider=ProviderConfig(provider=ProviderKind.MOCK, model="main-model"),
        auto_approve=True,
    )


@pytest.fixture
def make_scheduler(tmp_path: Path, sleep_recorder: SleepRecorder, policy: RetryPolicy):
    """Build a scheduler around a scripted generator and in-memory persistence."""

    def factory(
        items: list[WorkItem] | None = None,
        generator: ScriptedGenerator | None = None,
        **kwargs: Any,
    ) -> tuple[QueueScheduler, ScriptedGenerator, LocalArtifactStore, MemoryQueuePersistence]:
        gen = generator or ScriptedGenerator()
        store = kwargs.pop("artifact_store", None) or LocalArtifactStore(tmp_path / "notes")
        persistence = kwargs.pop("persistence", None) or MemoryQueuePersistence()
        scheduler = QueueScheduler(
            gen,
            gen,
            store,
            persistence=persistence,
            policy=kwargs.pop("policy", policy),
            sleep=sleep_recorder,
            **kwargs,
        )
        if items is not None:
            scheduler.set_queue(items)
        return scheduler, gen, store, persistence

    return factory
