"""LiteLLM-backed provider. Single implementation for all LLM calls."""

import logging
from dataclasses import dataclass
from typing import Optional

import litellm

from config import settings

logger = logging.getLogger(__name__)


# LiteLLM model strings: provider/model-name (OpenAI can omit prefix)
DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "anthropic/claude-sonnet-4-20250514",
    "gemini": "gemini/gemini-2.0-flash",
    "deepseek": "deepseek/deepseek-chat",
}

# Map provider + optional model alias -> LiteLLM model string
MODEL_ALIASES = {
    "openai": {
        "gpt-4o": "gpt-4o",
        "gpt-4o-mini": "gpt-4o-mini",
        "gpt-4.1": "gpt-4.1",
        "gpt-4.1-mini": "gpt-4.1-mini",
    },
    "anthropic": {
        "claude-sonnet": "anthropic/claude-sonnet-4-20250514",
        "claude-opus": "anthropic/claude-opus-4-20250514",
        "claude-haiku": "anthropic/claude-3-5-haiku-20241022",
    },
    "gemini": {
        "gemini-2.0-flash": "gemini/gemini-2.0-flash",
        "gemini-2.5-flash": "gemini/gemini-2.5-flash",
        "gemini-2.5-pro": "gemini/gemini-2.5-pro",
    },
    "deepseek": {
        "deepseek-chat": "deepseek/deepseek-chat",
        "deepseek-reasoner": "deepseek/deepseek-reasoner",
    },
}

PROVIDER_SYNONYMS = {"claude": "anthropic", "gpt": "openai", "google": "gemini"}


@dataclass
class LLMResponse:
    """One completion with its token usage and cost."""
    content: str
    input_tokens: int
    output_tokens: int
    model: str
    provider: str
    cost: float = 0.0


def _match_alias(aliases: dict, model: str) -> Optional[str]:
    model_lower = model.lower()
    # Longest alias first so gpt-4o-mini wins over gpt-4o
    for alias in sorted(aliases, key=len, reverse=True):
        if model_lower == alias or model_lower.startswith(alias + "-"):
            return aliases[alias]
    return None


def to_litellm_model(provider_name: Optional[str], model: Optional[str]) -> str:
    """Map provider + model to a LiteLLM model string."""
    if provider_name:
        key = PROVIDER_SYNONYMS.get(provider_name.lower(), provider_name.lower())
        if key not in DEFAULT_MODELS:
            raise ValueError(
                f"Unknown provider: {provider_name}. Available: {list(DEFAULT_MODELS)}"
            )
        if not model:
            return DEFAULT_MODELS[key]
        matched = _match_alias(MODEL_ALIASES[key], model)
        if matched:
            return matched
        if key == "openai" or "/" in model:
            return model
        return f"{key}/{model}"

    if model:
        for aliases in MODEL_ALIASES.values():
            matched = _match_alias(aliases, model)
            if matched:
                return matched
        return model
    return settings.default_model


class LiteLLMProvider:
    """Single provider that delegates to litellm.completion()."""

    def __init__(self, default_model: str, metadata: Optional[dict] = None):
        """Initialize with the LiteLLM model string to use by default.

        Args:
            default_model: LiteLLM model string (e.g. gpt-4o-mini, anthropic/claude-sonnet-4-20250514).
            metadata: Optional dict passed to litellm (e.g. agent, idea) for cost logging.
        """
        self._default_model = default_model
        self._metadata = metadata or {}

    @property
    def name(self) -> str:
        return "litellm"

    @property
    def default_model(self) -> str:
        return self._default_model

    def set_metadata(self, metadata: dict) -> None:
        """Merge metadata forwarded to the cost logger on every call."""
        self._metadata.update(metadata)

    def complete(
        self,
        system_prompt: str,
        user_message: str,
        model: Optional[str] = None,
        max_tokens: int = 4096,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        resolved_model = model or self._default_model
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ]
        kwargs = {
            "model": resolved_model,
            "messages": messages,
            "max_tokens": max_tokens,
            "timeout": settings.api_timeout_seconds,
            "metadata": {**self._metadata},
        }
        if temperature is not None:
            kwargs["temperature"] = temperature

        logger.debug("litellm.completion model=%s metadata=%s", resolved_model, self._metadata)
        response = litellm.completion(**kwargs)

        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        input_tokens = getattr(usage, "prompt_tokens", 0) or 0
        output_tokens = getattr(usage, "completion_tokens", 0) or 0
        hidden = getattr(response, "_hidden_params", None) or {}
        cost = float(hidden.get("response_cost", 0) or 0)
        if not cost:
            cost = settings.calculate_cost(input_tokens, output_tokens)
        model_id = getattr(response, "model", None) or resolved_model

        return LLMResponse(
            content=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=model_id,
            provider=self.name,
            cost=cost,
        )
