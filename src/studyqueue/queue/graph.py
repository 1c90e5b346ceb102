"""LangGraph wiring for a single scheduling pass over one work item.

Each pass runs ``structure`` and then, only when the item came out of it
approved with an outline, ``content``. Items paused for review end the pass
after the structure node so the scheduler can move on.
"""

from __future__ import annotations

import logging
from typing import TypedDict

from langgraph.graph import END, START, StateGraph

from .phases import ContentPhase, StructurePhase
from .retry import ItemUpdater
from .state import ItemStatus, RunState

__all__ = ["ItemPassState", "ItemPipeline"]

logger = logging.getLogger(__name__)


class ItemPassState(TypedDict, total=False):
    """State propagated through the per-item graph."""

    item_id: str
    stages: list[str]
    outcome: str


class ItemPipeline:
    """Drive one item through the phases it is eligible for."""

    def __init__(
        self,
        state: RunState,
        structure_phase: StructurePhase,
        content_phase: ContentPhase,
        update_item: ItemUpdater,
    ) -> None:
        self._state = state
        self._structure_phase = structure_phase
        self._content_phase = content_phase
        self._update_item = update_item
        self._workflow = self._build_workflow()

    def run(self, item_id: str) -> ItemPassState:
        return self._workflow.invoke({"item_id": item_id, "stages": []})

    # ------------------------------------------------------------------
    # LangGraph node implementations
    # ------------------------------------------------------------------
    def structure(self, state: ItemPassState) -> ItemPassState:
        stages = list(state.get("stages", []))
        item = self._state.find(state["item_id"])
        config = self._state.config
        if item is None or config is None or self._state.should_stop:
            return {"stages": stages, "outcome": "skipped"}

        if config.resume_from_structure and item.status is ItemStatus.ERROR and item.has_structure:
            logger.info("Resuming '%s' from its cached outline", item.topic)
            updated = self._update_item(item.id, ItemStatus.STRUCT_READY, retry_count=0, error_msg=None)
            stages.append("resume")
            return {"stages": stages, "outcome": updated.status.value if updated else "missing"}

        if not StructurePhase.is_eligible(item):
            return {"stages": stages, "outcome": item.status.value}

        self._structure_phase.run(item, config)
        stages.append("structure")
        current = self._state.find(item.id)
        return {"stages": stages, "outcome": current.status.value if current is not None else "missing"}

    def content(self, state: ItemPassState) -> ItemPassState:
        stages = list(state.get("stages", []))
        item = self._state.find(state["item_id"])
        config = self._state.config
        if item is None or config is None:
            return {"stages": stages, "outcome": "skipped"}

        self._content_phase.run(item, config)
        stages.append("content")
        current = self._state.find(item.id)
        return {"stages": stages, "outcome": current.status.value if current is not None else "missing"}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _route_after_structure(self, state: ItemPassState) -> str:
        if self._state.should_stop or self._state.circuit_open:
            return END
        item = self._state.find(state["item_id"])
        if item is not None and item.status is ItemStatus.STRUCT_READY:
            return "content"
        return END

    def _build_workflow(self):
        graph = StateGraph(ItemPassState)
        graph.add_node("structure", self.structure)
        graph.add_node("content", self.content)

        graph.add_edge(START, "structure")
        graph.add_conditional_edges(
            "structure",
            self._route_after_structure,
            {"content": "content", END: END},
        )
        graph.add_edge("content", END)
        return graph.compile()
