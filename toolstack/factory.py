"""
ToolStack Service Factory
=========================

Builds the external clients and the services that use them, once per
process. Every client is constructed lazily on first use and then reused;
the deployment environment is read once from Settings and passed to both
index adapters.

Any client can be supplied up front, which is how tests swap in fakes:

    factory = ServiceFactory(settings, text_index=FakeTextIndex())
"""

import logging
from typing import Optional

from .data.config import Settings, get_settings
from .data.tool_store import ToolStore
from .notifications.telegram_notifier import TelegramNotifier
from .rag.chatbot import ToolChatbot
from .rag.completion import CompletionClient
from .rag.embedder import EmbeddingClient
from .rag.text_index import TextIndex
from .rag.vector_index import VectorIndex
from .sync.bulk import BulkResyncOrchestrator
from .sync.incremental import IncrementalSyncHandler
from .sync.normalizer import DocumentNormalizer

logger = logging.getLogger(__name__)


class ServiceFactory:
    """Memoized construction of clients and services."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[ToolStore] = None,
        embedder: Optional[EmbeddingClient] = None,
        completion: Optional[CompletionClient] = None,
        vector_index: Optional[VectorIndex] = None,
        text_index: Optional[TextIndex] = None,
        notifier: Optional[TelegramNotifier] = None,
    ):
        self.settings = settings or get_settings()
        self.environment = self.settings.environment
        self._store = store
        self._embedder = embedder
        self._completion = completion
        self._vector_index = vector_index
        self._text_index = text_index
        self._notifier = notifier

    # =========================================================================
    # Clients
    # =========================================================================

    @property
    def store(self) -> ToolStore:
        if self._store is None:
            self._store = ToolStore(self.settings.database)
        return self._store

    @property
    def embedder(self) -> EmbeddingClient:
        if self._embedder is None:
            self._embedder = EmbeddingClient(self.settings.openai)
        return self._embedder

    @property
    def completion(self) -> CompletionClient:
        if self._completion is None:
            self._completion = CompletionClient(self.settings.openai)
        return self._completion

    @property
    def vector_index(self) -> VectorIndex:
        if self._vector_index is None:
            self._vector_index = VectorIndex(
                self.environment,
                config=self.settings.vector_index,
                database=self.settings.database,
                dimensions=self.settings.openai.embedding_dimensions,
            )
        return self._vector_index

    @property
    def text_index(self) -> TextIndex:
        if self._text_index is None:
            self._text_index = TextIndex(self.environment, config=self.settings.text_index)
        return self._text_index

    @property
    def notifier(self) -> TelegramNotifier:
        if self._notifier is None:
            self._notifier = TelegramNotifier(self.settings.notifications)
        return self._notifier

    # =========================================================================
    # Services
    # =========================================================================

    def normalizer(self) -> DocumentNormalizer:
        return DocumentNormalizer(self.store)

    def incremental_handler(self) -> IncrementalSyncHandler:
        return IncrementalSyncHandler(
            normalizer=self.normalizer(),
            text_index=self.text_index,
            vector_index=self.vector_index,
            embedder=self.embedder,
        )

    def bulk_orchestrator(self) -> BulkResyncOrchestrator:
        return BulkResyncOrchestrator(
            store=self.store,
            normalizer=self.normalizer(),
            text_index=self.text_index,
            vector_index=self.vector_index,
            embedder=self.embedder,
            notifier=self.notifier,
            config=self.settings.sync,
        )

    def chatbot(self) -> ToolChatbot:
        chat = self.settings.chat
        return ToolChatbot(
            embedder=self.embedder,
            vector_index=self.vector_index,
            completion=self.completion,
            root_url=self.settings.root_url,
            top_k=chat.top_k,
            temperature=chat.temperature,
            max_tokens=chat.max_tokens,
        )

    async def aclose(self):
        """Close every client that was constructed."""
        for client in (self._text_index, self._embedder, self._completion):
            if client is not None:
                await client.close()
        for client in (self._store, self._vector_index):
            if client is not None:
                client.close()
        logger.info("Service clients closed")
