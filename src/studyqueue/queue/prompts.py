"""Prompt builders for the outline and note phases."""

from __future__ import annotations

import textwrap

from ..config import NoteMode, PipelineConfig

__all__ = [
    "DEFAULT_STRUCTURE",
    "MODE_STRUCTURES",
    "STRUCTURE_SYSTEM_PROMPT",
    "build_structure_prompt",
    "build_content_prompt",
    "content_system_prompt",
]

DEFAULT_STRUCTURE = textwrap.dedent(
    """
    1. Definition & Classification
    2. Causes & Risk Factors
    3. Mechanism
    4. Presentation
    5. Management
    6. Complications & Outlook
    """
).strip()

MODE_STRUCTURES: dict[NoteMode, str] = {
    NoteMode.GENERAL: DEFAULT_STRUCTURE,
    NoteMode.CHEAT_CODES: textwrap.dedent(
        """
        1. One-Line Summary
        2. Mnemonics
        3. High-Yield Comparison Table
        4. Classic Exam Traps
        5. Rapid Recall Checklist
        """
    ).strip(),
    NoteMode.FIRST_PRINCIPLES: textwrap.dedent(
        """
        1. Underlying Principles
        2. Step-by-Step Mechanism
        3. How the Mechanism Explains the Findings
        4. Why the Treatment Works
        5. Predicting Edge Cases
        """
    ).strip(),
    NoteMode.FEYNMAN: textwrap.dedent(
        """
        1. Plain-Language Explanation
        2. Everyday Analogy
        3. Where the Analogy Breaks Down
        4. Core Terms Defined Simply
        5. Self-Test Questions
        """
    ).strip(),
    NoteMode.SOCRATIC: textwrap.dedent(
        """
        1. Opening Question
        2. Guided Sub-Questions
        3. Answers Building on Each Other
        4. Synthesis
        5. Open Questions for Further Study
        """
    ).strip(),
}

STRUCTURE_SYSTEM_PROMPT = textwrap.dedent(
    """
    You design outlines for study notes. Given a topic, respond with a numbered
    Markdown outline of 5-10 top-level sections, each optionally followed by
    indented sub-points. Return only the outline.
    """
).strip()

_MODE_STYLE: dict[NoteMode, str] = {
    NoteMode.GENERAL: "Write a structured, comprehensive reference note.",
    NoteMode.CHEAT_CODES: "Favour mnemonics, tables and high-yield bullet points.",
    NoteMode.FIRST_PRINCIPLES: "Explain every point from underlying mechanisms upward.",
    NoteMode.FEYNMAN: "Use simple language and analogies without sounding conversational.",
    NoteMode.SOCRATIC: "Organise the note as a sequence of questions and reasoned answers.",
}


def build_structure_prompt(topic: str, config: PipelineConfig) -> str:
    reference = MODE_STRUCTURES.get(config.mode, DEFAULT_STRUCTURE)
    return (
        textwrap.dedent(
            """
            Draft the outline for the topic below. Use the reference outline as a
            starting shape and adapt section names to the topic.

            Reference outline:
            """
        ).strip()
        + f"\n{reference}\n\nINPUT TOPIC: {topic}"
    )


def content_system_prompt(config: PipelineConfig) -> str:
    if config.custom_prompt:
        return config.custom_prompt
    return (
        "You write study notes in Markdown. Follow the supplied outline exactly, "
        "using one heading per outline section. "
        + _MODE_STYLE.get(config.mode, _MODE_STYLE[NoteMode.GENERAL])
    )


def build_content_prompt(topic: str, structure: str) -> str:
    return (
        textwrap.dedent(
            """
            Expand the outline below into a complete study note. Keep the section
            order and headings.
            """
        ).strip()
        + f"\n\nTOPIC: {topic}\n\nOUTLINE:\n{structure.strip()}"
    )
