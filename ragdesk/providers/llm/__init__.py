"""LLM provider adapters.

AnthropicLLMProvider implements ILLMProvider (ragdesk/interfaces/llm_provider.py)
on the Anthropic Messages API.  The model name comes from
ANTHROPIC_CLAUDE_MODEL; a missing key or model surfaces as a
ConfigurationError on the first chat turn, not at startup.
"""

from ragdesk.providers.llm.anthropic_provider import AnthropicLLMProvider

__all__ = ["AnthropicLLMProvider"]
