"""Factory for creating LLM providers."""

import os
from typing import Dict, Optional

from .litellm_provider import LiteLLMProvider, to_litellm_model
from .cost_logger import get_cost_logger


# Env var that must be set for each provider's models to be callable
PROVIDER_KEYS: Dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GOOGLE_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
}


def get_provider(
    provider_name: Optional[str] = None,
    model: Optional[str] = None,
) -> LiteLLMProvider:
    """Get an LLM provider instance.

    Args:
        provider_name: Explicit provider name (openai, anthropic, gemini, deepseek)
        model: Model name; resolved to a LiteLLM model string

    Returns:
        LiteLLMProvider instance with the cost logger registered

    Examples:
        get_provider()                          # settings.default_model
        get_provider("anthropic")               # anthropic/claude-sonnet-4-...
        get_provider(model="gemini-2.5-pro")    # gemini/gemini-2.5-pro
    """
    resolved = to_litellm_model(provider_name, model)
    get_cost_logger()
    return LiteLLMProvider(default_model=resolved)


def list_providers() -> Dict[str, bool]:
    """List all providers and whether their API key is set.

    Returns:
        Dict mapping provider name to availability status
    """
    return {
        name: bool(os.environ.get(env_var, "").strip())
        for name, env_var in PROVIDER_KEYS.items()
    }
