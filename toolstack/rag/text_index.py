"""
Text Index
==========

Full-text/faceted search over flat tool documents, backed by
Elasticsearch. The index name is derived from the deployment environment
(``dev_tools_prod`` / ``dev_tools_dev``).

Not-found is a normal answer here: ``retrieve`` returns None and
``delete`` returns False. Any other failure raises UpstreamServiceError.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from elasticsearch import AsyncElasticsearch, NotFoundError

from ..data.config import DeploymentEnvironment, TextIndexConfig
from ..errors import UpstreamServiceError

logger = logging.getLogger(__name__)


# Collection schema: name, description, category, ecosystem, badges,
# optional github_link/github_stars, logo_url, website_url, like_count
TOOL_MAPPINGS: Dict[str, Any] = {
    "dynamic": "strict",
    "properties": {
        "id": {"type": "keyword"},
        "name": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword"}},
        },
        "description": {"type": "text"},
        "category": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword"}},
        },
        "ecosystem": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword"}},
        },
        "badges": {"type": "keyword"},
        "github_link": {"type": "keyword", "index": False},
        "github_stars": {"type": "integer"},
        "logo_url": {"type": "keyword", "index": False},
        "website_url": {"type": "keyword", "index": False},
        "like_count": {"type": "integer"},
    },
}

DEFAULT_QUERY_BY = ["name", "description", "category", "ecosystem", "badges"]


@dataclass
class TextSearchResult:
    """Search response: total hit count plus the returned documents."""
    found: int
    hits: List[Dict[str, Any]] = field(default_factory=list)


class TextIndex:
    """Create/update/delete/search tool documents in one Elasticsearch index."""

    def __init__(
        self,
        environment: DeploymentEnvironment,
        config: Optional[TextIndexConfig] = None,
        client: Optional[AsyncElasticsearch] = None,
    ):
        self.environment = environment
        self.index_name = environment.text_index_name
        self.config = config or TextIndexConfig()
        self._client = client

    @property
    def client(self) -> AsyncElasticsearch:
        if self._client is None:
            client_options: Dict[str, Any] = {
                "hosts": [self.config.url],
                "max_retries": self.config.max_retries,
                "retry_on_timeout": True,
                "request_timeout": self.config.request_timeout,
            }
            if self.config.password:
                client_options["basic_auth"] = (self.config.user, self.config.password)
            else:
                logger.warning("Elasticsearch password not set, connecting without basic_auth")
            self._client = AsyncElasticsearch(**client_options)
            logger.info(f"Elasticsearch client created: {self.config.url} index={self.index_name}")
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None

    # =========================================================================
    # Provisioning
    # =========================================================================

    async def ensure_collection(self, recreate: bool = False) -> bool:
        """
        Create the index with the tool schema if it does not exist.

        Returns:
            True if the index was created by this call
        """
        try:
            exists = bool(await self.client.indices.exists(index=self.index_name))
            if exists and recreate:
                await self.client.indices.delete(index=self.index_name)
                logger.info(f"Deleted existing index {self.index_name}")
                exists = False
            if exists:
                return False
            await self.client.indices.create(index=self.index_name, mappings=TOOL_MAPPINGS)
        except Exception as e:
            raise UpstreamServiceError("text-index", str(e)) from e

        logger.info(f"Created index {self.index_name}")
        return True

    # =========================================================================
    # Documents
    # =========================================================================

    async def create(self, document: Dict[str, Any]):
        """Add a document that must not exist yet."""
        try:
            await self.client.create(index=self.index_name, id=document["id"], document=document)
        except Exception as e:
            raise UpstreamServiceError("text-index", str(e)) from e

    async def update(self, doc_id: str, document: Dict[str, Any]):
        """Overwrite fields of an existing document."""
        try:
            await self.client.update(index=self.index_name, id=doc_id, doc=document)
        except Exception as e:
            raise UpstreamServiceError("text-index", str(e)) from e

    async def upsert(self, document: Dict[str, Any]):
        """Create the document or replace it entirely."""
        try:
            await self.client.index(index=self.index_name, id=document["id"], document=document)
        except Exception as e:
            raise UpstreamServiceError("text-index", str(e)) from e

    async def retrieve(self, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = await self.client.get(index=self.index_name, id=doc_id)
        except NotFoundError:
            return None
        except Exception as e:
            raise UpstreamServiceError("text-index", str(e)) from e
        return response["_source"]

    async def delete(self, doc_id: str) -> bool:
        """Delete by id. Returns False when the document was not indexed."""
        try:
            await self.client.delete(index=self.index_name, id=doc_id)
        except NotFoundError:
            logger.debug(f"Document {doc_id} not present in {self.index_name}")
            return False
        except Exception as e:
            raise UpstreamServiceError("text-index", str(e)) from e
        return True

    # =========================================================================
    # Search
    # =========================================================================

    async def search(
        self,
        query: str,
        query_by: Optional[List[str]] = None,
        per_page: int = 10,
    ) -> TextSearchResult:
        """
        Search tools. ``"*"`` matches every document.

        Args:
            query: Free text
            query_by: Fields to match against
            per_page: Hits to return (0 only counts)
        """
        if query.strip() in ("", "*"):
            body = {"match_all": {}}
        else:
            body = {
                "multi_match": {
                    "query": query,
                    "fields": query_by or DEFAULT_QUERY_BY,
                }
            }

        try:
            response = await self.client.search(
                index=self.index_name,
                query=body,
                size=per_page,
                track_total_hits=True,
            )
        except Exception as e:
            raise UpstreamServiceError("text-index", str(e)) from e

        hits = response["hits"]
        return TextSearchResult(
            found=int(hits["total"]["value"]),
            hits=[hit["_source"] for hit in hits["hits"]],
        )

    async def count(self) -> int:
        """Number of indexed documents, after a refresh."""
        try:
            await self.client.indices.refresh(index=self.index_name)
            response = await self.client.count(index=self.index_name)
        except Exception as e:
            raise UpstreamServiceError("text-index", str(e)) from e
        return int(response["count"])

    async def check_health(self) -> Dict[str, Any]:
        try:
            ok = await self.client.ping()
            return {"status": "connected" if ok else "disconnected", "index": self.index_name}
        except Exception as e:
            logger.warning(f"Text index health check failed: {e}")
            return {"status": "disconnected", "index": self.index_name, "error": str(e)}
