"""Structure and content generators backing the two pipeline phases."""

from __future__ import annotations

import logging
import random
import re
import textwrap
from typing import Any, Callable, Protocol

from langchain_core.messages import HumanMessage, SystemMessage

from ..config import PipelineConfig, ProviderConfig
from ..llm.providers import LangChainChatProvider, ProviderError, build_provider_from_config
from .errors import GeneratorError
from .prompts import (
    MODE_STRUCTURES,
    STRUCTURE_SYSTEM_PROMPT,
    build_content_prompt,
    build_structure_prompt,
    content_system_prompt,
)

__all__ = [
    "StructureGenerator",
    "ContentGenerator",
    "MockNoteGenerator",
    "LangChainNoteGenerator",
    "NoteGenerator",
]

logger = logging.getLogger(__name__)

_OUTLINE_LINE = re.compile(r"^\s*(\d+)[.)]\s+(.*\S)\s*$")

ProviderFactory = Callable[[ProviderConfig], LangChainChatProvider]


class StructureGenerator(Protocol):
    def generate_structure(self, topic: str, provider: ProviderConfig, pipeline: PipelineConfig) -> str:  # pragma: no cover - interface
        ...


class ContentGenerator(Protocol):
    def generate_content(
        self,
        topic: str,
        structure: str,
        provider: ProviderConfig,
        pipeline: PipelineConfig,
    ) -> str:  # pragma: no cover - interface
        ...


class MockNoteGenerator:
    """Deterministic generator used for offline runs and tests."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed or 0)

    def generate_structure(self, topic: str, provider: ProviderConfig, pipeline: PipelineConfig) -> str:
        if pipeline.custom_structure_prompt:
            return pipeline.custom_structure_prompt.strip()
        return MODE_STRUCTURES[pipeline.mode]

    def generate_content(
        self,
        topic: str,
        structure: str,
        provider: ProviderConfig,
        pipeline: PipelineConfig,
    ) -> str:
        sections: list[str] = [f"# {topic}"]
        for line in structure.splitlines():
            match = _OUTLINE_LINE.match(line)
            if not match:
                continue
            heading = match.group(2)
            lead = self._rng.choice(
                ["Key point", "In short", "Remember", "Core idea"]
            )
            sections.append(
                textwrap.dedent(
                    f"""
                    ## {heading}

                    {lead}: {heading.lower()} as it applies to {topic}.
                    """
                ).strip()
            )
        if len(sections) == 1:
            sections.append(f"{topic} summarised in a single section.")
        return "\n\n".join(sections)


class LangChainNoteGenerator:
    """Generator that prompts a LangChain chat model for each phase.

    Providers are built lazily and cached per :class:`ProviderConfig`, so the
    structure override and the main provider keep separate clients.
    """

    def __init__(self, provider_factory: ProviderFactory = build_provider_from_config) -> None:
        self._provider_factory = provider_factory
        self._providers: dict[ProviderConfig, LangChainChatProvider] = {}

    def generate_structure(self, topic: str, provider: ProviderConfig, pipeline: PipelineConfig) -> str:
        system = pipeline.custom_structure_prompt or STRUCTURE_SYSTEM_PROMPT
        messages = [
            SystemMessage(content=system),
            HumanMessage(content=build_structure_prompt(topic, pipeline)),
        ]
        return self._complete("structure", provider, messages)

    def generate_content(
        self,
        topic: str,
        structure: str,
        provider: ProviderConfig,
        pipeline: PipelineConfig,
    ) -> str:
        messages = [
            SystemMessage(content=content_system_prompt(pipeline)),
            HumanMessage(content=build_content_prompt(topic, structure)),
        ]
        return self._complete("content", provider, messages)

    def _complete(self, stage: str, provider: ProviderConfig, messages: list[Any]) -> str:
        try:
            client = self._client_for(provider)
            response = client.invoke(messages)
        except ProviderError as exc:
            raise GeneratorError(f"{stage} generation failed: {exc}") from exc
        content = self._extract_content(response).strip()
        if not content:
            raise GeneratorError(f"{stage} generation returned empty content")
        logger.debug("%s generation produced %d characters with %s", stage, len(content), provider.model)
        return content

    def _client_for(self, provider: ProviderConfig) -> LangChainChatProvider:
        client = self._providers.get(provider)
        if client is None:
            client = self._provider_factory(provider)
            self._providers[provider] = client
        return client

    @staticmethod
    def _extract_content(response: Any) -> str:
        content = getattr(response, "content", "")
        if isinstance(content, list):
            pieces = [segment.get("text", "") for segment in content if isinstance(segment, dict)]
            return "".join(pieces)
        return str(content or "")


class NoteGenerator:
    """Route each call to the mock or LangChain backend based on the provider."""

    def __init__(
        self,
        *,
        llm: LangChainNoteGenerator | None = None,
        mock: MockNoteGenerator | None = None,
    ) -> None:
        self._llm = llm or LangChainNoteGenerator()
        self._mock = mock or MockNoteGenerator()

    def _backend(self, provider: ProviderConfig) -> MockNoteGenerator | LangChainNoteGenerator:
        return self._mock if provider.is_mock else self._llm

    def generate_structure(self, topic: str, provider: ProviderConfig, pipeline: PipelineConfig) -> str:
        return self._backend(provider).generate_structure(topic, provider, pipeline)

    def generate_content(
        self,
        topic: str,
        structure: str,
        provider: ProviderConfig,
        pipeline: PipelineConfig,
    ) -> str:
        return self._backend(provider).generate_content(topic, structure, provider, pipeline)
