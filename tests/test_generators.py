from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest
from langchain_core.messages import HumanMessage, SystemMessage

from studyqueue.config import NoteMode, PipelineConfig, ProviderConfig, ProviderKind
from studyqueue.llm.providers import ProviderError
from studyqueue.queue import GeneratorError, LangChainNoteGenerator, MockNoteGenerator, NoteGenerator
from studyqueue.queue.prompts import MODE_STRUCTURES, STRUCTURE_SYSTEM_PROMPT


class FakeProvider:
    def __init__(self, config: ProviderConfig, replies: list[Any]) -> None:
        self.config = config
        self.replies = replies
        self.calls: list[list[Any]] = []

    def invoke(self, messages: list[Any], **kwargs: Any) -> Any:
        self.calls.append(list(messages))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def openai_config() -> ProviderConfig:
    return ProviderConfig(provider=ProviderKind.OPENAI, model="gpt-test")


def _factory(replies: list[Any], built: list[FakeProvider]):
    def build(config: ProviderConfig) -> FakeProvider:
        provider = FakeProvider(config, replies)
        built.append(provider)
        return provider

    return build


def test_mock_generator_uses_mode_outline() -> None:
    pipeline = PipelineConfig(provider=ProviderConfig(provider=ProviderKind.MOCK), mode=NoteMode.FEYNMAN)
    generator = MockNoteGenerator(seed=7)

    structure = generator.generate_structure("Asthma", pipeline.provider, pipeline)
    assert structure == MODE_STRUCTURES[NoteMode.FEYNMAN]

    content = generator.generate_content("Asthma", structure, pipeline.provider, pipeline)
    assert content.startswith("# Asthma")
    assert content.count("\n## ") == len(structure.splitlines())
    assert "## Everyday Analogy" in content


def test_mock_generator_honours_custom_structure_prompt() -> None:
    pipeline = PipelineConfig(
        provider=ProviderConfig(provider=ProviderKind.MOCK),
        custom_structure_prompt="1. Only section\n",
    )
    generator = MockNoteGenerator()

    structure = generator.generate_structure("Gout", pipeline.provider, pipeline)
    assert structure == "1. Only section"
    content = generator.generate_content("Gout", "free text outline", pipeline.provider, pipeline)
    assert "single section" in content


def test_mock_generator_is_deterministic_per_seed() -> None:
    pipeline = PipelineConfig(provider=ProviderConfig(provider=ProviderKind.MOCK))
    outline = MODE_STRUCTURES[NoteMode.GENERAL]

    first = MockNoteGenerator(seed=3).generate_content("Sepsis", outline, pipeline.provider, pipeline)
    second = MockNoteGenerator(seed=3).generate_content("Sepsis", outline, pipeline.provider, pipeline)
    assert first == second


def test_langchain_generator_builds_messages(openai_config: ProviderConfig) -> None:
    built: list[FakeProvider] = []
    replies: list[Any] = [
        SimpleNamespace(content="1. Pathophysiology\n2. Treatment"),
        SimpleNamespace(content=[{"type": "text", "text": "# Asthma\n"}, {"type": "text", "text": "Body"}]),
    ]
    generator = LangChainNoteGenerator(provider_factory=_factory(replies, built))
    pipeline = PipelineConfig(provider=openai_config, mode=NoteMode.CHEAT_CODES)

    structure = generator.generate_structure("Asthma", openai_config, pipeline)
    content = generator.generate_content("Asthma", structure, openai_config, pipeline)

    assert structure == "1. Pathophysiology\n2. Treatment"
    assert content == "# Asthma\nBody"
    # One client per provider config.
    assert len(built) == 1
    structure_call, content_call = built[0].calls
    assert isinstance(structure_call[0], SystemMessage)
    assert structure_call[0].content == STRUCTURE_SYSTEM_PROMPT
    assert isinstance(structure_call[1], HumanMessage)
    assert "Asthma" in structure_call[1].content
    assert structure in content_call[1].content


def test_langchain_generator_caches_clients_per_config(openai_config: ProviderConfig) -> None:
    built: list[FakeProvider] = []
    replies: list[Any] = [SimpleNamespace(content="1. a"), SimpleNamespace(content="1. b")]
    generator = LangChainNoteGenerator(provider_factory=_factory(replies, built))
    pipeline = PipelineConfig(provider=openai_config)

    generator.generate_structure("A", openai_config, pipeline)
    generator.generate_structure("B", openai_config.with_model("other"), pipeline)

    assert [provider.config.model for provider in built] == ["gpt-test", "other"]


def test_langchain_generator_uses_custom_structure_prompt(openai_config: ProviderConfig) -> None:
    built: list[FakeProvider] = []
    generator = LangChainNoteGenerator(provider_factory=_factory([SimpleNamespace(content="1. x")], built))
    pipeline = PipelineConfig(provider=openai_config, custom_structure_prompt="Outline like a surgeon.")

    generator.generate_structure("Appendicitis", openai_config, pipeline)

    assert built[0].calls[0][0].content == "Outline like a surgeon."


def test_langchain_generator_wraps_provider_errors(openai_config: ProviderConfig) -> None:
    built: list[FakeProvider] = []
    generator = LangChainNoteGenerator(
        provider_factory=_factory([ProviderError("rate limited")], built)
    )
    pipeline = PipelineConfig(provider=openai_config)

    with pytest.raises(GeneratorError, match="rate limited"):
        generator.generate_structure("Asthma", openai_config, pipeline)


def test_langchain_generator_rejects_empty_output(openai_config: ProviderConfig) -> None:
    built: list[FakeProvider] = []
    generator = LangChainNoteGenerator(provider_factory=_factory([SimpleNamespace(content="   ")], built))
    pipeline = PipelineConfig(provider=openai_config)

    with pytest.raises(GeneratorError, match="empty"):
        generator.generate_content("Asthma", "1. a", openai_config, pipeline)


def test_note_generator_routes_by_provider(openai_config: ProviderConfig) -> None:
    built: list[FakeProvider] = []
    llm = LangChainNoteGenerator(provider_factory=_factory([SimpleNamespace(content="1. remote")], built))
    generator = NoteGenerator(llm=llm, mock=MockNoteGenerator())
    mock_config = ProviderConfig(provider=ProviderKind.MOCK)
    pipeline = PipelineConfig(provider=openai_config, structure_provider=mock_config)

    assert generator.generate_structure("A", mock_config, pipeline) == MODE_STRUCTURES[NoteMode.GENERAL]
    assert built == []
    assert generator.generate_structure("A", openai_config, pipeline) == "1. remote"
    assert len(built) == 1
