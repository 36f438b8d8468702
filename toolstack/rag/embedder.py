"""
Embedding Client
================

Generates embeddings using OpenAI text-embedding-3-small.
1536 dimensions, optimized for cost/latency.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from openai import AsyncOpenAI, OpenAIError

from ..data.config import OpenAIConfig
from ..errors import UpstreamServiceError

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingResult:
    """Result of embedding generation."""
    embedding: List[float]
    token_count: int
    model: str


class EmbeddingClient:
    """
    Turns a text blob into a fixed-length vector.

    Cost: ~$0.00002 per 1K tokens (very cheap)
    Max tokens: 8191
    """

    MAX_TOKENS = 8191

    def __init__(
        self,
        config: Optional[OpenAIConfig] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.config = config or OpenAIConfig()
        if client is None and not self.config.api_key:
            raise ValueError("OpenAI API key required for embeddings")

        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                timeout=self.config.request_timeout,
            )
        return self._client

    @property
    def model(self) -> str:
        return self.config.embedding_model

    @property
    def dimensions(self) -> int:
        return self.config.embedding_dimensions

    async def embed(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for a single text.

        Raises:
            ValueError: text is blank
            UpstreamServiceError: the OpenAI call failed
        """
        if not text.strip():
            raise ValueError("Cannot embed empty text")

        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=text,
                dimensions=self.dimensions,
            )
        except OpenAIError as e:
            raise UpstreamServiceError("embedding", str(e)) from e

        embedding = response.data[0].embedding
        token_count = response.usage.total_tokens
        logger.debug(f"Embedded {token_count} tokens")

        return EmbeddingResult(
            embedding=embedding,
            token_count=token_count,
            model=self.model,
        )

    async def embed_query(self, query: str) -> List[float]:
        """Same as embed() but returns just the vector for convenience."""
        result = await self.embed(query)
        return result.embedding

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None
