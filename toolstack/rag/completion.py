"""
Completion Client
=================

Wraps OpenAI chat completions: a list of role/content messages in,
generated text out. Token usage and an estimated cost are reported with
each response.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from ..data.config import OpenAIConfig
from ..errors import UpstreamServiceError

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    """Response from a chat completion."""
    content: str
    model: str
    tokens_input: int
    tokens_output: int
    cost_usd: float

    @property
    def total_tokens(self) -> int:
        return self.tokens_input + self.tokens_output


class CompletionClient:
    """Client for OpenAI chat models."""

    # Pricing per 1M tokens (USD)
    PRICING = {
        "gpt-4": {"input": 30.0, "output": 60.0},
        "gpt-4o": {"input": 2.5, "output": 10.0},
        "gpt-4o-mini": {"input": 0.15, "output": 0.6},
    }

    def __init__(
        self,
        config: Optional[OpenAIConfig] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.config = config or OpenAIConfig()
        if client is None and not self.config.api_key:
            raise ValueError("OPENAI_API_KEY required")
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
        return self.config.chat_model

    def _calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        pricing = self.PRICING.get(self.model, {"input": 2.5, "output": 10.0})
        cost = (input_tokens * pricing["input"] + output_tokens * pricing["output"]) / 1_000_000
        return round(cost, 6)

    async def complete(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int = 500,
        temperature: float = 0.7,
    ) -> CompletionResult:
        """
        Generate the next assistant turn for ``messages``.

        Raises:
            UpstreamServiceError: the OpenAI call failed or returned no text
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except OpenAIError as e:
            raise UpstreamServiceError("completion", str(e)) from e

        if not response.choices or response.choices[0].message.content is None:
            raise UpstreamServiceError("completion", "empty completion")

        content = response.choices[0].message.content
        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0

        logger.debug(f"Completion used {input_tokens}+{output_tokens} tokens")

        return CompletionResult(
            content=content,
            model=self.model,
            tokens_input=input_tokens,
            tokens_output=output_tokens,
            cost_usd=self._calculate_cost(input_tokens, output_tokens),
        )

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None
