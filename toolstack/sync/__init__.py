"""
ToolStack Sync Module
=====================

Keeps the text and vector indexes in step with the tool store:
per-change incremental sync and batched bulk resync.
"""

from .bulk import BulkResyncOrchestrator, SyncSummary, SyncTarget
from .incremental import IncrementalSyncHandler, IncrementalSyncOutcome
from .normalizer import DocumentNormalizer, ReferenceCache, UNCATEGORIZED, UNKNOWN_ECOSYSTEM
from .state import SyncState

__all__ = [
    "BulkResyncOrchestrator",
    "SyncSummary",
    "SyncTarget",
    "IncrementalSyncHandler",
    "IncrementalSyncOutcome",
    "DocumentNormalizer",
    "ReferenceCache",
    "UNCATEGORIZED",
    "UNKNOWN_ECOSYSTEM",
    "SyncState",
]
