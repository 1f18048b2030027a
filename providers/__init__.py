"""LiteLLM-backed provider, factory and cost tracking."""

from .litellm_provider import LiteLLMProvider, LLMResponse
from .factory import get_provider, list_providers

__all__ = [
    "LiteLLMProvider",
    "LLMResponse",
    "get_provider",
    "list_providers",
]
