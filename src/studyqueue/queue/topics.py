"""Turn syllabus text into an ordered list of pending work items."""

from __future__ import annotations

import json
import re
import time
from typing import Iterable

from .errors import TopicParseError
from .state import ItemStatus, WorkItem

__all__ = ["parse_topics", "build_work_items"]

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)
_LIST_MARKER = re.compile(r"^\s*(?:[-*+•]\s+|\d+[.)]\s+|[a-zA-Z][.)]\s+|#+\s+)")


def _parse_json_topics(text: str) -> list[str] | None:
    cleaned = _FENCE_PATTERN.sub("", text).strip()
    if not cleaned.startswith("["):
        return None
    try:
        payload = json.loads(cleaned)
    except ValueError:
        return None
    if not isinstance(payload, list):
        return None
    return [str(entry) for entry in payload if isinstance(entry, (str, int, float))]


def parse_topics(text: str) -> list[str]:
    """Extract topics from a JSON string array or one-topic-per-line text.

    List markers (bullets, ``1.``, ``a)``, Markdown headings) are stripped;
    blank lines and case-insensitive duplicates are dropped while keeping the
    original order.
    """

    candidates = _parse_json_topics(text)
    if candidates is None:
        candidates = [_LIST_MARKER.sub("", line, count=1) for line in text.splitlines()]

    topics: list[str] = []
    seen: set[str] = set()
    for candidate in candidates:
        topic = " ".join(candidate.split())
        key = topic.casefold()
        if not topic or key in seen:
            continue
        seen.add(key)
        topics.append(topic)

    if not topics:
        raise TopicParseError("No topics found in syllabus input")
    return topics


def build_work_items(topics: Iterable[str], *, id_prefix: str = "topic") -> list[WorkItem]:
    stamp = int(time.time() * 1000)
    items = [
        WorkItem(id=f"{id_prefix}-{stamp}-{index}", topic=topic, status=ItemStatus.PENDING)
        for index, topic in enumerate(topics)
    ]
    if not items:
        raise TopicParseError("Cannot build a queue without topics")
    return items
