"""Configuration settings for the Idea Improvement Engine."""

# Load .env into os.environ so LiteLLM picks up provider keys (e.g. OPENAI_API_KEY)
from dotenv import load_dotenv
load_dotenv()

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    """Global settings for the improvement engine.

    Settings can be overridden via environment variables with IDEA_ENGINE_ prefix.
    Example: IDEA_ENGINE_MAX_AUTO_ITERATIONS=8
    """

    # Model config
    default_model: str = Field(
        default="gpt-4o-mini",
        description="LiteLLM model string used for direction and rewrite calls"
    )
    scoring_model: Optional[str] = Field(
        default=None,
        description="Model used for pillar scoring; falls back to default_model"
    )

    # Call limits
    max_tokens_per_agent_call: int = Field(
        default=4096,
        description="Maximum tokens per individual agent call"
    )
    agent_max_retries: int = Field(
        default=1,
        ge=0,
        description="Re-asks on a response that fails JSON/schema validation"
    )
    api_timeout_seconds: int = Field(
        default=60,
        description="API call timeout in seconds"
    )

    # Sampling
    direction_temperature: float = Field(default=0.4, ge=0.0, le=2.0)
    rewrite_temperature: float = Field(default=0.35, ge=0.0, le=2.0)
    scoring_temperature: float = Field(default=0.7, ge=0.0, le=2.0)

    # Improvement directions
    min_directions: int = Field(
        default=3,
        ge=1,
        description="Minimum number of improvement directions requested"
    )
    max_directions: int = Field(
        default=5,
        ge=1,
        description="Maximum number of improvement directions kept"
    )

    # Auto-improve loop
    default_target_score: int = Field(
        default=90,
        ge=0,
        le=100,
        description="Overall confidence that ends auto-improvement"
    )
    max_auto_iterations: int = Field(
        default=5,
        ge=1,
        description="Hard cap on committed iterations per auto-improve run"
    )
    max_stalled_iterations: Optional[int] = Field(
        default=None,
        ge=1,
        description="Stop after this many iterations without overall gain (disabled when unset)"
    )

    # Rewrite behaviour
    preserve_pitch: bool = Field(
        default=True,
        description="Never let a rewrite change the elevator pitch"
    )

    # Cost controls
    max_cost_per_run_usd: float = Field(
        default=5.00,
        description="Maximum total cost per auto-improve run in USD"
    )
    input_token_cost_per_million: float = Field(
        default=0.15,
        description="Cost per 1M input tokens when the provider reports none"
    )
    output_token_cost_per_million: float = Field(
        default=0.60,
        description="Cost per 1M output tokens when the provider reports none"
    )

    # Paths
    store_dir: str = Field(
        default="./workspace/ideas",
        description="Directory for the file-backed idea store"
    )

    model_config = {
        "env_prefix": "IDEA_ENGINE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",  # ignore extra env vars (e.g. OPENAI_API_KEY) not in schema
    }

    def calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        """Calculate cost in USD for given token usage."""
        input_cost = (input_tokens / 1_000_000) * self.input_token_cost_per_million
        output_cost = (output_tokens / 1_000_000) * self.output_token_cost_per_million
        return input_cost + output_cost


# Create singleton instance
settings = Settings()
