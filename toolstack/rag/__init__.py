"""
ToolStack RAG Module
====================

Embedding and completion clients, the two index adapters and the
retrieval-augmented chatbot.
"""

from .chatbot import ToolChatbot, build_context
from .completion import CompletionClient, CompletionResult
from .embedder import EmbeddingClient, EmbeddingResult
from .text_index import TextIndex, TextSearchResult
from .vector_index import VectorIndex

__all__ = [
    "ToolChatbot",
    "build_context",
    "CompletionClient",
    "CompletionResult",
    "EmbeddingClient",
    "EmbeddingResult",
    "TextIndex",
    "TextSearchResult",
    "VectorIndex",
]
