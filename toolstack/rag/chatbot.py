"""
Tool Chatbot
============

Retrieval-augmented answers about developer tools.

Flow:
1. Embed the user's query
2. Retrieve the top-K closest tools from the vector index
3. Render each match as a context block with a deep link
4. Ask the completion model with [system prompt + context, *conversation]

The handler is stateless: callers send the full conversation each time.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from ..data.models import ConversationMessage, MessageRole, VectorMatch, tool_slug
from ..errors import InternalError, InvalidArgumentError
from .completion import CompletionClient
from .embedder import EmbeddingClient
from .vector_index import VectorIndex

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are a helpful assistant for ToolStack, a platform for discovering developer tools.
Use the following context about tools to answer questions:

{context}

When you recommend a tool from the context, cite its Link so the user can open its page.
If you don't find relevant information in the context, you can provide general guidance about developer tools.
Always be friendly and concise in your responses."""

GENERIC_FAILURE = "Failed to generate response"

MessageInput = Union[ConversationMessage, Dict[str, Any]]


def render_match(match: VectorMatch, root_url: str) -> str:
    """Context block for one retrieved tool, or "" when it has no metadata."""
    tool = match.metadata
    if not tool or not tool.get("name"):
        return ""

    lines = [
        f"Tool: {tool['name']}",
        f"Description: {tool.get('description', '')}",
        f"Link: {root_url}/tools/{tool_slug(match.id, tool['name'])}",
        f"Category: {tool.get('category', '')}",
        f"Ecosystem: {tool.get('ecosystem', '')}",
    ]
    badges = tool.get("badges")
    if badges and isinstance(badges, list):
        lines.append(f"Tags: {', '.join(str(b) for b in badges)}")
    return "\n".join(lines)


def build_context(matches: Sequence[VectorMatch], root_url: str) -> str:
    blocks = [render_match(m, root_url) for m in matches]
    return "\n\n".join(b for b in blocks if b)


def parse_conversation(messages: Any) -> List[ConversationMessage]:
    """
    Validate caller-supplied messages.

    Raises:
        InvalidArgumentError: not a non-empty list of {role, content}
    """
    if not messages or not isinstance(messages, (list, tuple)):
        raise InvalidArgumentError("Messages and toolQuery are required")

    parsed = []
    for raw in messages:
        if isinstance(raw, ConversationMessage):
            parsed.append(raw)
            continue
        if not isinstance(raw, dict):
            raise InvalidArgumentError("Each message must be an object with role and content")
        content = raw.get("content")
        if not isinstance(content, str):
            raise InvalidArgumentError("Message content must be a string")
        try:
            role = MessageRole(raw.get("role"))
        except ValueError:
            raise InvalidArgumentError(f"Unsupported message role: {raw.get('role')!r}")
        parsed.append(ConversationMessage(role=role, content=content))
    return parsed


class ToolChatbot:
    """RAG query handler over the tool vector index."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        vector_index: VectorIndex,
        completion: CompletionClient,
        root_url: str,
        top_k: int = 5,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ):
        self.embedder = embedder
        self.vector_index = vector_index
        self.completion = completion
        self.root_url = root_url.rstrip("/")
        self.top_k = top_k
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_system_message(self, context: str) -> Dict[str, str]:
        return {"role": "system", "content": SYSTEM_PROMPT.format(context=context)}

    async def answer(
        self,
        conversation: Optional[Sequence[MessageInput]],
        query: Optional[str],
    ) -> Dict[str, str]:
        """
        Answer ``query`` grounded on the closest tools.

        Args:
            conversation: Prior turns, oldest first, ending with the user's turn
            query: Text used for retrieval

        Returns:
            {"message": completion text}

        Raises:
            InvalidArgumentError: missing/empty input (no external call made)
            InternalError: anything failed after validation
        """
        if not isinstance(query, str) or not query.strip():
            raise InvalidArgumentError("Messages and toolQuery are required")
        messages = parse_conversation(conversation)

        try:
            vector = await self.embedder.embed_query(query)
            matches = await self.vector_index.query(vector, top_k=self.top_k, include_metadata=True)
            context = build_context(matches, self.root_url)

            logger.info(f"Chat query matched {len(matches)} tools: {query[:50]}")

            result = await self.completion.complete(
                [self.build_system_message(context), *(m.to_openai() for m in messages)],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except Exception as e:
            logger.error(f"Chat response failed: {e}", exc_info=True)
            raise InternalError(GENERIC_FAILURE) from e

        return {"message": result.content}
