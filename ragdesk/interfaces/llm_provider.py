"""Abstract base class for chat-completion providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TypedDict


class ChatTurn(TypedDict):
    """One prior conversation turn, ``role`` is ``"user"`` or ``"assistant"``."""

    role: str
    content: str


# Concrete implementation: AnthropicLLMProvider (ragdesk/providers/llm/)
class ILLMProvider(ABC):
    """Contract for the language model that answers chat turns."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        messages: list[ChatTurn],
        temperature: float = 0.7,
        max_tokens: int = 4000,
    ) -> str:
        """Generate the next assistant message.

        Parameters
        ----------
        system_prompt:
            Instruction text, including any retrieved context.
        messages:
            Conversation history in chronological order, ending with the
            new user message.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        ragdesk.utils.errors.ConfigurationError
            If the API key or model is not configured.
        ragdesk.utils.errors.LLMError
            If the API call fails or the response is not plain text.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"anthropic"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if an API key and model are configured."""
