"""
Bulk Resync
===========

Walks the whole tool collection in fixed-size batches and writes every
record to the text and/or vector index.

Per batch:
1. Fetch the next page by cursor (keyset on id, stable under writes)
2. Normalize and write every record of the page concurrently
3. Checkpoint the cursor, pause, continue

The text index is diffed before writing so an unchanged collection costs
no write quota. One record failing is counted and logged; it never aborts
the batch or the run. When the invocation time budget runs low the walk
stops at a batch boundary and the next run resumes from the checkpoint.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..data.config import SyncConfig
from ..data.models import ToolRecord
from ..data.tool_store import ToolStore
from ..errors import InvalidArgumentError, UpstreamServiceError
from ..rag.embedder import EmbeddingClient
from ..rag.text_index import TextIndex
from ..rag.vector_index import VectorIndex
from .normalizer import DocumentNormalizer
from .state import SyncState

logger = logging.getLogger(__name__)


class SyncTarget(str, Enum):
    """Which index a bulk run writes to."""
    VECTOR = "vector"
    TEXT = "text"
    ALL = "all"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SyncTarget":
        if value is None:
            return cls.ALL
        try:
            return cls(value.lower())
        except ValueError:
            raise InvalidArgumentError(f"Unknown sync target: {value!r}")

    @property
    def includes_text(self) -> bool:
        return self in (SyncTarget.TEXT, SyncTarget.ALL)

    @property
    def includes_vector(self) -> bool:
        return self in (SyncTarget.VECTOR, SyncTarget.ALL)


class TextOutcome(str, Enum):
    ADDED = "added"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class SyncSummary:
    """End-of-run report of a bulk resync. Counters cover this invocation only."""
    run_id: str
    target: SyncTarget
    total_tools: int = 0
    success_count: int = 0
    error_count: int = 0
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    batches: int = 0
    completed: bool = False
    resume_cursor: Optional[str] = None
    resumed_from: Optional[str] = None
    source_count: Optional[int] = None
    indexed_counts: Dict[str, int] = field(default_factory=dict)
    consistency_warning: Optional[str] = None
    error: Optional[str] = None
    failed_ids: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def success_rate(self) -> str:
        """Percentage with one decimal, "0.0" for an empty run."""
        if self.total_tools == 0:
            return "0.0"
        return f"{self.success_count / self.total_tools * 100:.1f}"

    @property
    def success(self) -> bool:
        return self.error is None

    def to_details(self) -> Dict[str, Any]:
        return {
            "totalTools": self.total_tools,
            "successCount": self.success_count,
            "errorCount": self.error_count,
            "successRate": self.success_rate,
            "target": self.target.value,
            "runId": self.run_id,
            "added": self.added,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "batches": self.batches,
            "completed": self.completed,
            "resumeCursor": self.resume_cursor,
            "sourceCount": self.source_count,
            "indexedCounts": dict(self.indexed_counts),
            "consistencyWarning": self.consistency_warning,
            "error": self.error,
            "durationSeconds": round(self.duration_seconds, 1),
        }

    def to_message(self) -> str:
        lines = [
            f"Full sync ({self.target.value}) {'completed' if self.completed else 'stopped early'}",
            f"- Total tools processed: {self.total_tools}",
            f"- Succeeded: {self.success_count}",
            f"- Failed: {self.error_count}",
            f"- Success rate: {self.success_rate}%",
        ]
        if self.target.includes_text:
            lines.append(f"- Text index: {self.added} added, {self.updated} updated, {self.unchanged} unchanged")
        if self.resumed_from:
            lines.append(f"- Resumed after: {self.resumed_from}")
        if not self.completed and self.resume_cursor:
            lines.append(f"- Will resume after: {self.resume_cursor}")
        if self.source_count is not None:
            lines.append(f"- Tools in source store: {self.source_count}")
        for name, count in self.indexed_counts.items():
            lines.append(f"- Tools in {name} index: {count}")
        if self.consistency_warning:
            lines.append(f"WARNING: {self.consistency_warning}")
        elif self.completed and self.indexed_counts:
            lines.append("Sync successful: source and index counts match.")
        if self.error:
            lines.append(f"Error: {self.error}")
        return "\n".join(lines)


class BulkResyncOrchestrator:
    """
    Full resynchronization of the tool collection into the indexes.

    Usage:
        orchestrator = BulkResyncOrchestrator(store, normalizer, text_index,
                                              vector_index, embedder, notifier)
        summary = await orchestrator.run(SyncTarget.ALL)
    """

    def __init__(
        self,
        store: ToolStore,
        normalizer: DocumentNormalizer,
        text_index: TextIndex,
        vector_index: VectorIndex,
        embedder: EmbeddingClient,
        notifier=None,
        config: Optional[SyncConfig] = None,
        state_dir: Optional[Path] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.normalizer = normalizer
        self.text_index = text_index
        self.vector_index = vector_index
        self.embedder = embedder
        self.notifier = notifier
        self.config = config or SyncConfig()
        self.state_dir = state_dir or self.config.state_dir
        self.clock = clock
        self._log_lines: List[str] = []

    # =========================================================================
    # Notifications
    # =========================================================================

    async def _notify(self, text: str):
        if self.notifier is None:
            return
        try:
            await self.notifier.send_async(text)
        except Exception as e:
            logger.error(f"Notification failed: {e}")

    async def _log_progress(self, line: str):
        """Buffer a progress line, flushing to the sink at the threshold."""
        self._log_lines.append(line)
        if len(self._log_lines) >= self.config.progress_lines:
            await self._flush_progress()

    async def _flush_progress(self):
        if not self._log_lines:
            return
        chunk = "\n".join(self._log_lines)
        self._log_lines = []
        await self._notify(chunk)

    # =========================================================================
    # Per-record work
    # =========================================================================

    async def _sync_text(self, document: Dict[str, Any]) -> TextOutcome:
        existing = await self.text_index.retrieve(document["id"])
        if existing is None:
            await self.text_index.create(document)
            return TextOutcome.ADDED
        if existing != document:
            await self.text_index.update(document["id"], document)
            return TextOutcome.UPDATED
        return TextOutcome.UNCHANGED

    async def _sync_record(
        self,
        record: ToolRecord,
        target: SyncTarget,
        normalizer: DocumentNormalizer,
        summary: SyncSummary,
    ) -> bool:
        tool_id = record.id
        try:
            document = await normalizer.normalize(tool_id, record)

            if target.includes_text:
                outcome = await self._sync_text(document.to_dict())
                if outcome is TextOutcome.ADDED:
                    summary.added += 1
                elif outcome is TextOutcome.UPDATED:
                    summary.updated += 1
                else:
                    summary.unchanged += 1

            if target.includes_vector:
                vector = await self.embedder.embed_query(document.to_embedding_text())
                await self.vector_index.upsert(tool_id, vector, document.vector_metadata())

        except Exception as e:
            logger.error(f"Error syncing tool {tool_id}: {e}", extra={"tool_id": tool_id, "run_id": summary.run_id})
            summary.error_count += 1
            summary.failed_ids.append(tool_id)
            await self._log_progress(f"Error syncing tool {tool_id}: {e}")
            return False

        summary.success_count += 1
        await self._log_progress(f"Synced tool {tool_id} ({record.name})")
        return True

    # =========================================================================
    # Run
    # =========================================================================

    def _budget_exhausted(self, started: float) -> bool:
        usable = self.config.time_budget_seconds - self.config.time_margin_seconds
        return self.clock() - started >= usable

    async def _check_consistency(self, summary: SyncSummary):
        """Compare source and index counts. Mismatch is a warning only."""
        try:
            summary.source_count = await self.store.count_tools()
            if summary.target.includes_text:
                summary.indexed_counts["text"] = await self.text_index.count()
            if summary.target.includes_vector:
                summary.indexed_counts["vector"] = await self.vector_index.count()
        except Exception as e:
            summary.consistency_warning = f"Consistency check failed: {e}"
            logger.warning(summary.consistency_warning, extra={"run_id": summary.run_id})
            return

        mismatched = {
            name: count for name, count in summary.indexed_counts.items()
            if count != summary.source_count
        }
        if mismatched:
            counts = ", ".join(f"{name}={count}" for name, count in mismatched.items())
            summary.consistency_warning = (
                f"Tool counts don't match: source={summary.source_count}, {counts}. Please investigate."
            )
            logger.warning(summary.consistency_warning, extra={"run_id": summary.run_id})

    async def run(self, target: SyncTarget = SyncTarget.ALL, resume: bool = True) -> SyncSummary:
        """
        Run one bulk resync invocation.

        Args:
            target: Index(es) to write
            resume: Continue an unfinished walk from its checkpoint

        Returns:
            SyncSummary (also sent to the notification sink)

        Raises:
            UpstreamServiceError: the first page could not be fetched
        """
        run_id = f"sync-{target.value}-{uuid.uuid4().hex[:8]}"
        summary = SyncSummary(run_id=run_id, target=target)
        state = SyncState(target.value, self.state_dir)
        normalizer = self.normalizer.with_cache()
        self._log_lines = []

        cursor = state.resume_cursor if resume else None
        summary.resumed_from = cursor
        state.record_run_start(run_id, cursor)

        started = self.clock()
        log_extra = {"run_id": run_id, "target": target.value}
        if cursor:
            logger.info(f"Resuming bulk resync {run_id} after {cursor}", extra=log_extra)
        else:
            logger.info(f"Starting bulk resync {run_id}", extra=log_extra)

        while True:
            if summary.batches > 0:
                if self._budget_exhausted(started):
                    logger.warning(
                        f"Time budget reached after {summary.batches} batches, stopping at {cursor}",
                        extra=log_extra,
                    )
                    break
                await asyncio.sleep(self.config.batch_delay_seconds)

            try:
                records, next_cursor = await self.store.fetch_batch(cursor, self.config.batch_size)
            except Exception as e:
                if summary.batches == 0:
                    logger.error(f"Bulk resync {run_id} could not start: {e}", extra=log_extra)
                    state.record_run_failure(run_id, str(e))
                    await self._notify(f"Error during full sync ({target.value}): {e}")
                    if isinstance(e, UpstreamServiceError):
                        raise
                    raise UpstreamServiceError("source-store", str(e)) from e
                summary.error = f"Batch fetch failed after {cursor}: {e}"
                logger.error(summary.error, extra=log_extra)
                break

            if not records:
                summary.completed = True
                break

            summary.batches += 1
            summary.total_tools += len(records)
            await asyncio.gather(*(
                self._sync_record(record, target, normalizer, summary) for record in records
            ))

            cursor = records[-1].id
            state.record_checkpoint(cursor)
            logger.info(
                f"Batch {summary.batches}: {len(records)} tools, "
                f"{summary.success_count} ok / {summary.error_count} failed so far",
                extra={**log_extra, "batch": summary.batches},
            )

            if next_cursor is None:
                summary.completed = True
                break

        summary.duration_seconds = self.clock() - started
        if summary.completed:
            await self._check_consistency(summary)
        else:
            summary.resume_cursor = cursor

        if summary.error:
            state.record_run_failure(run_id, summary.error)
        else:
            state.record_run_complete(
                run_id, summary.completed, summary.duration_seconds,
                {"total": summary.total_tools, "errors": summary.error_count},
            )

        logger.info(
            f"Bulk resync {run_id} done: {summary.success_count}/{summary.total_tools} "
            f"({summary.success_rate}%), completed={summary.completed}",
            extra=log_extra,
        )

        await self._flush_progress()
        await self._notify(summary.to_message())
        return summary
