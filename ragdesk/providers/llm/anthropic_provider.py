"""Anthropic chat-completion provider adapter.

Wraps the ``anthropic`` async client to implement :class:`ILLMProvider`.

Differences from an OpenAI-style chat API worth knowing:
    - The system prompt is a separate ``system`` parameter, not a message.
    - The response is a list of content blocks; ragdesk only accepts a
      reply whose first block is text.
"""

from __future__ import annotations

import anthropic
import structlog

from ragdesk.config.settings import Settings
from ragdesk.interfaces.llm_provider import ChatTurn, ILLMProvider
from ragdesk.utils.errors import ConfigurationError, LLMError

logger = structlog.get_logger(logger_name=__name__)


class AnthropicLLMProvider(ILLMProvider):
    """LLM provider backed by the Anthropic Messages API.

    The model comes from ``ANTHROPIC_CLAUDE_MODEL``; there is no built-in
    default, so a deployment must choose one explicitly.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.anthropic_api_key
        self._model = settings.anthropic_claude_model
        self._client: anthropic.AsyncAnthropic | None = None

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        messages: list[ChatTurn],
        temperature: float = 0.7,
        max_tokens: int = 4000,
    ) -> str:
        if not self._api_key:
            raise ConfigurationError(
                message="Anthropic API key not configured",
                provider_name=self.get_provider_name(),
            )
        if not self._model:
            raise ConfigurationError(
                message="Anthropic model not configured",
                provider_name=self.get_provider_name(),
            )

        try:
            if self._client is None:
                self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": m["role"], "content": m["content"]} for m in messages],
            )
        except anthropic.APIError as exc:
            raise LLMError(
                message=f"Anthropic API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        first = response.content[0] if response.content else None
        if first is None or first.type != "text":
            raise LLMError(
                message="Unexpected response format from Anthropic",
                provider_name=self.get_provider_name(),
            )

        logger.info(
            "anthropic_completion",
            model=self._model,
            history_turns=len(messages) - 1,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return first.text

    def get_provider_name(self) -> str:
        return "anthropic"

    def is_available(self) -> bool:
        """Return ``True`` if both an API key and a model are configured."""
        return bool(self._api_key and self._model)
