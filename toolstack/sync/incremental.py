"""
Incremental Sync
================

Applies one tool mutation to the text and vector indexes.

The two writes are independent and best-effort: a failure on one index is
logged and does not stop the other. The handler never raises, so the
change relay never retries a record with a data problem. The scheduled
bulk resync repairs whatever an incremental write missed.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..data.models import ChangeEvent, DeletionSignal, IndexedDocument, ToolRecord
from ..rag.embedder import EmbeddingClient
from ..rag.text_index import TextIndex
from ..rag.vector_index import VectorIndex
from .normalizer import DocumentNormalizer

logger = logging.getLogger(__name__)


@dataclass
class IncrementalSyncOutcome:
    """What happened to each index for one change event."""
    tool_id: str
    action: str  # upsert, delete, noop, failed
    text_ok: Optional[bool] = None
    vector_ok: Optional[bool] = None
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "toolId": self.tool_id,
            "action": self.action,
            "text": self.text_ok,
            "vector": self.vector_ok,
            "errors": dict(self.errors),
        }


class IncrementalSyncHandler:
    """Handles a single create/update/delete of a tool record."""

    def __init__(
        self,
        normalizer: DocumentNormalizer,
        text_index: TextIndex,
        vector_index: VectorIndex,
        embedder: EmbeddingClient,
    ):
        self.normalizer = normalizer
        self.text_index = text_index
        self.vector_index = vector_index
        self.embedder = embedder

    async def handle(self, event: ChangeEvent) -> IncrementalSyncOutcome:
        tool_id = event.tool_id

        if event.before is not None and event.before == event.after:
            logger.debug(f"Tool {tool_id} unchanged, skipping", extra={"tool_id": tool_id})
            return IncrementalSyncOutcome(tool_id=tool_id, action="noop")

        try:
            record = ToolRecord.from_dict(tool_id, event.after) if event.after is not None else None
            result = await self.normalizer.normalize(tool_id, record)
        except Exception as e:
            logger.error(f"Tool {tool_id}: could not normalize change: {e}", extra={"tool_id": tool_id})
            return IncrementalSyncOutcome(tool_id=tool_id, action="failed", errors={"normalize": str(e)})

        if isinstance(result, DeletionSignal):
            return await self._apply_delete(tool_id)
        return await self._apply_upsert(result)

    async def _apply_delete(self, tool_id: str) -> IncrementalSyncOutcome:
        outcome = IncrementalSyncOutcome(tool_id=tool_id, action="delete")

        async def delete_text():
            try:
                if not await self.text_index.delete(tool_id):
                    logger.info(f"Tool {tool_id} was not in the text index", extra={"tool_id": tool_id})
                outcome.text_ok = True
            except Exception as e:
                logger.error(f"Error deleting tool {tool_id} from text index: {e}", extra={"tool_id": tool_id})
                outcome.text_ok = False
                outcome.errors["text"] = str(e)

        async def delete_vector():
            try:
                if not await self.vector_index.delete_one(tool_id):
                    logger.info(f"Tool {tool_id} was not in the vector index", extra={"tool_id": tool_id})
                outcome.vector_ok = True
            except Exception as e:
                logger.error(f"Error deleting tool {tool_id} from vector index: {e}", extra={"tool_id": tool_id})
                outcome.vector_ok = False
                outcome.errors["vector"] = str(e)

        await asyncio.gather(delete_text(), delete_vector())
        logger.info(f"Deleted tool {tool_id} from indexes", extra={"tool_id": tool_id})
        return outcome

    async def _apply_upsert(self, document: IndexedDocument) -> IncrementalSyncOutcome:
        tool_id = document.id
        outcome = IncrementalSyncOutcome(tool_id=tool_id, action="upsert")

        async def write_text():
            try:
                await self.text_index.upsert(document.to_dict())
                outcome.text_ok = True
            except Exception as e:
                logger.error(f"Error syncing tool {tool_id} to text index: {e}", extra={"tool_id": tool_id})
                outcome.text_ok = False
                outcome.errors["text"] = str(e)

        async def write_vector():
            try:
                vector = await self.embedder.embed_query(document.to_embedding_text())
                await self.vector_index.upsert(tool_id, vector, document.vector_metadata())
                outcome.vector_ok = True
            except Exception as e:
                logger.error(f"Error syncing tool {tool_id} to vector index: {e}", extra={"tool_id": tool_id})
                outcome.vector_ok = False
                outcome.errors["vector"] = str(e)

        await asyncio.gather(write_text(), write_vector())
        logger.info(f"Synced tool {tool_id} ({document.name})", extra={"tool_id": tool_id})
        return outcome
