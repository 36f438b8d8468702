"""
Document Normalizer
===================

Turns a ToolRecord into the flat IndexedDocument written to both indexes,
with category and ecosystem ids replaced by their display names.

A reference that does not resolve never blocks indexing: the document is
produced with a sentinel name and the failure is logged.
"""

import asyncio
import logging
from typing import Dict, Optional, Protocol, Tuple, Union

from ..data.models import DeletionSignal, IndexedDocument, ReferenceEntity, ToolRecord
from ..errors import ReferenceResolutionError

logger = logging.getLogger(__name__)


UNCATEGORIZED = "Uncategorized"
UNKNOWN_ECOSYSTEM = "Unknown"


class ReferenceResolver(Protocol):
    async def get_category(self, category_id: str) -> Optional[ReferenceEntity]: ...

    async def get_ecosystem(self, ecosystem_id: str) -> Optional[ReferenceEntity]: ...


class ReferenceCache:
    """
    Per-run memo in front of a resolver.

    Concurrent lookups of the same id share one in-flight call. Build a new
    cache for every bulk run so renamed categories are picked up.
    """

    def __init__(self, resolver: ReferenceResolver):
        self.resolver = resolver
        self._tasks: Dict[Tuple[str, str], "asyncio.Task"] = {}

    async def _lookup(self, kind: str, reference_id: str, factory) -> Optional[ReferenceEntity]:
        key = (kind, reference_id)
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(factory(reference_id))
            self._tasks[key] = task
        try:
            return await task
        except Exception:
            # Failed lookups are retried by the next caller
            if self._tasks.get(key) is task:
                del self._tasks[key]
            raise

    async def get_category(self, category_id: str) -> Optional[ReferenceEntity]:
        return await self._lookup("category", category_id, self.resolver.get_category)

    async def get_ecosystem(self, ecosystem_id: str) -> Optional[ReferenceEntity]:
        return await self._lookup("ecosystem", ecosystem_id, self.resolver.get_ecosystem)

    def __len__(self) -> int:
        return len(self._tasks)


class DocumentNormalizer:
    """Builds IndexedDocuments (or deletion signals) from source records."""

    def __init__(self, resolver: ReferenceResolver):
        self.resolver = resolver

    def with_cache(self) -> "DocumentNormalizer":
        """A normalizer sharing one ReferenceCache, for a single bulk run."""
        return DocumentNormalizer(ReferenceCache(self.resolver))

    async def _resolve(self, kind: str, tool_id: str, reference_id: Optional[str], fallback: str) -> str:
        try:
            if not reference_id:
                raise ReferenceResolutionError(kind, reference_id)
            lookup = self.resolver.get_category if kind == "category" else self.resolver.get_ecosystem
            entity = await lookup(reference_id)
            if entity is None:
                raise ReferenceResolutionError(kind, reference_id)
            return entity.name
        except ReferenceResolutionError as e:
            logger.warning(f"Tool {tool_id}: {e.message}, using {fallback!r}", extra={"tool_id": tool_id})
        except Exception as e:
            logger.warning(
                f"Tool {tool_id}: {kind} lookup failed ({e}), using {fallback!r}",
                extra={"tool_id": tool_id},
            )
        return fallback

    async def normalize(
        self,
        tool_id: str,
        record: Optional[ToolRecord],
    ) -> Union[DeletionSignal, IndexedDocument]:
        """
        Normalize one record.

        Args:
            tool_id: Id of the changed record
            record: Current state, None when the record was deleted
        """
        if record is None:
            return DeletionSignal(id=tool_id)

        category, ecosystem = await asyncio.gather(
            self._resolve("category", tool_id, record.category_id, UNCATEGORIZED),
            self._resolve("ecosystem", tool_id, record.ecosystem_id, UNKNOWN_ECOSYSTEM),
        )

        return IndexedDocument(
            id=tool_id,
            name=record.name,
            description=record.description,
            category=category,
            ecosystem=ecosystem,
            badges=list(record.badges),
            github_link=record.github_link,
            github_stars=record.github_stars,
            logo_url=record.logo_url,
            website_url=record.website_url,
            like_count=record.like_count,
        )
