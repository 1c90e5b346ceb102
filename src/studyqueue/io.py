"""Syllabus loading utilities for the study-note queue."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import fitz  # PyMuPDF

__all__ = ["LoadedSyllabus", "load_syllabus", "extract_pdf_text"]

TEXT_SUFFIXES = {".md", ".markdown", ".txt", ".json"}
PDF_SUFFIXES = {".pdf"}


@dataclass(slots=True)
class LoadedSyllabus:
    """Container for raw syllabus text and metadata."""

    content: str
    source: Path
    metadata: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "content": self.content,
            "source": str(self.source),
            "metadata": self.metadata,
        }


def extract_pdf_text(pdf_path: Path) -> list[str]:
    """Return the plain text of each page of ``pdf_path``."""

    with fitz.open(pdf_path) as doc:
        return [page.get_text("text") for page in doc]


def load_syllabus(source: Path | str, *, encoding: str = "utf-8") -> LoadedSyllabus:
    """Load a Markdown, text, JSON or PDF syllabus and return its text."""

    source_path = Path(source).expanduser()
    if not source_path.exists():
        raise FileNotFoundError(f"Syllabus not found: {source_path}")

    suffix = source_path.suffix.lower()
    if suffix in TEXT_SUFFIXES:
        text = source_path.read_text(encoding=encoding)
        metadata = {
            "kind": "json" if suffix == ".json" else "text",
            "length": len(text),
            "path": str(source_path),
        }
        return LoadedSyllabus(content=text, source=source_path, metadata=metadata)

    if suffix in PDF_SUFFIXES:
        pages = extract_pdf_text(source_path)
        metadata = {
            "kind": "pdf",
            "pages": len(pages),
            "path": str(source_path),
        }
        return LoadedSyllabus(content="\n".join(pages), source=source_path, metadata=metadata)

    raise ValueError(f"Unsupported syllabus format for {source_path}")
