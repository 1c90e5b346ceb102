"""Structure (outline) and content (note) phase handlers."""

from __future__ import annotations

import logging

from ..config import PipelineConfig
from .artifacts import Artifact, ArtifactStore
from .errors import PersistenceError
from .generators import ContentGenerator, StructureGenerator
from .retry import ItemUpdater, RetryExecutor
from .state import ItemStatus, WorkItem

__all__ = ["StructurePhase", "ContentPhase", "MISSING_STRUCTURE_MESSAGE"]

logger = logging.getLogger(__name__)

MISSING_STRUCTURE_MESSAGE = "Structure missing; item will be redrafted"


class StructurePhase:
    """Draft an outline for a pending or failed item."""

    def __init__(
        self,
        generator: StructureGenerator,
        executor: RetryExecutor,
        update_item: ItemUpdater,
    ) -> None:
        self._generator = generator
        self._executor = executor
        self._update_item = update_item

    @staticmethod
    def is_eligible(item: WorkItem) -> bool:
        return item.status.needs_structure

    def run(self, item: WorkItem, config: PipelineConfig) -> WorkItem | None:
        """Return the updated item, or ``None`` when drafting failed."""

        provider = config.structure_provider_config()

        def operation() -> str:
            self._update_item(item.id, ItemStatus.DRAFTING)
            return self._generator.generate_structure(item.topic, provider, config)

        structure = self._executor.execute_with_retry(item.id, operation)
        if structure is None:
            return None

        if config.auto_approve:
            next_status = ItemStatus.STRUCT_READY
        else:
            next_status = ItemStatus.PAUSED_FOR_REVIEW
        logger.info("Outline ready for '%s' (%s)", item.topic, next_status.value)
        return self._update_item(
            item.id,
            next_status,
            structure=structure,
            retry_count=0,
            error_msg=None,
        )


class ContentPhase:
    """Expand an approved outline into a note and store it."""

    def __init__(
        self,
        generator: ContentGenerator,
        executor: RetryExecutor,
        update_item: ItemUpdater,
        artifact_store: ArtifactStore,
    ) -> None:
        self._generator = generator
        self._executor = executor
        self._update_item = update_item
        self._artifact_store = artifact_store

    @staticmethod
    def is_eligible(item: WorkItem) -> bool:
        return item.status is ItemStatus.STRUCT_READY and item.has_structure

    def run(self, item: WorkItem, config: PipelineConfig) -> WorkItem | None:
        if item.status is ItemStatus.STRUCT_READY and not item.has_structure:
            logger.warning("Item %s was approved without an outline", item.id)
            return self._update_item(item.id, ItemStatus.ERROR, error_msg=MISSING_STRUCTURE_MESSAGE)
        if not self.is_eligible(item):
            return None

        structure = item.structure or ""

        def operation() -> str:
            self._update_item(item.id, ItemStatus.GENERATING)
            return self._generator.generate_content(item.topic, structure, config.provider, config)

        content = self._executor.execute_with_retry(item.id, operation)
        if content is None:
            return None

        artifact = Artifact.from_generation(
            topic=item.topic,
            content=content,
            config=config,
            source_item_id=item.id,
        )
        try:
            self._artifact_store.save(artifact)
        except PersistenceError as exc:
            logger.error("Could not store the note for '%s'", item.topic)
            self._update_item(item.id, ItemStatus.ERROR, error_msg=str(exc))
            raise
        if config.remote_sync:
            try:
                self._artifact_store.sync_remote(artifact)
            except Exception:
                logger.warning("Remote sync failed for note %s; kept locally", artifact.id, exc_info=True)

        logger.info("Note generated for '%s'", item.topic)
        return self._update_item(item.id, ItemStatus.DONE, retry_count=0, error_msg=None)
