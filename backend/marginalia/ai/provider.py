"""Language model provider adapters."""

import logging
from typing import Protocol

from anthropic import APIError, AsyncAnthropic, AuthenticationError, RateLimitError

from marginalia.ai.errors import ProviderError

logger = logging.getLogger(__name__)


class LanguageModelProvider(Protocol):
    """Accepts a system instruction, a user message and a token budget; returns text."""

    async def complete(self, *, system: str, user: str, max_tokens: int) -> str: ...


class AnthropicProvider:
    """Single-attempt Anthropic Messages API call. Failures become ProviderError."""

    def __init__(self, api_key: str, model: str, client: AsyncAnthropic | None = None) -> None:
        """Initialize Anthropic client."""
        self.client = client or AsyncAnthropic(api_key=api_key)
        self.model = model

    async def complete(self, *, system: str, user: str, max_tokens: int) -> str:
        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
        except AuthenticationError as e:
            logger.error("Anthropic rejected the API key: %s", e)
            raise ProviderError(str(e), kind="auth") from e
        except RateLimitError as e:
            logger.warning("Anthropic rate limit hit: %s", e)
            raise ProviderError(str(e), kind="rate_limit") from e
        except APIError as e:
            logger.error("Anthropic API error: %s", e)
            raise ProviderError(str(e), kind="upstream") from e

        text = next(
            (block.text for block in message.content if getattr(block, "type", None) == "text"),
            None,
        )
        if text is None:
            raise ProviderError("No text content in AI response")
        return text
