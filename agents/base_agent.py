"""Base agent class that all generation agents inherit from.

Every agent:
- Calls the LLM with its system prompt + JSON schema + task input
- Validates output against the expected Pydantic contract
- Re-asks with the validation error appended when the output does not fit
- Tracks token usage for the cost controller
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Type, TypeVar, Optional, Any

from pydantic import BaseModel, ValidationError as PydanticValidationError

from providers import get_provider, LiteLLMProvider
from contracts import ImprovementError, GenerationError
from config import settings

T = TypeVar("T", bound=BaseModel)

logger = logging.getLogger(__name__)


class TokenUsage(BaseModel):
    """Track token usage for cost calculation."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_cost(self) -> float:
        """Calculate cost based on current token pricing."""
        return settings.calculate_cost(self.input_tokens, self.output_tokens)


class AgentResult(BaseModel):
    """Result from an agent run, including output and metadata."""
    output: Any
    token_usage: TokenUsage
    model: str
    provider: str = "litellm"
    raw_response: Optional[str] = None
    retries: int = 0


class BaseAgent(ABC):
    """Base class for all improvement-engine agents.

    Subclasses set ``failure_error`` to the ImprovementError subclass raised
    when the provider fails or the output never validates.
    """

    failure_error: Type[ImprovementError] = GenerationError

    def __init__(
        self,
        role: str,
        system_prompt: str,
        output_schema: Type[T],
        model: Optional[str] = None,
        provider: Optional[str] = None,
        temperature: Optional[float] = None,
        llm_provider: Optional[LiteLLMProvider] = None,
    ):
        """Initialize the agent.

        Args:
            role: Agent role, used in cost-logging metadata (e.g. 'directions', 'scoring')
            system_prompt: The agent's system prompt defining its behavior
            output_schema: Pydantic model class for validating output
            model: Override the default model (e.g. 'gpt-4o', 'claude-sonnet', 'gemini-2.5-pro')
            provider: Explicit provider name (openai, anthropic, gemini, deepseek)
            temperature: Sampling temperature for every call of this agent
            llm_provider: Ready-made provider; skips provider resolution
        """
        self.role = role
        self.system_prompt = system_prompt
        self.output_schema = output_schema
        self.temperature = temperature

        self.llm_provider: LiteLLMProvider = llm_provider or get_provider(provider_name=provider, model=model)
        self.model = model or self.llm_provider.default_model
        if hasattr(self.llm_provider, "set_metadata"):
            self.llm_provider.set_metadata({"agent": self.role})

        self.total_usage = TokenUsage()

    def _build_full_system_prompt(self) -> str:
        """Build the complete system prompt including the output schema."""
        parts = [self.system_prompt]
        parts.append("\n\n# OUTPUT FORMAT\n")
        parts.append("You MUST respond with valid JSON matching this schema:\n\n")
        parts.append(f"```json\n{json.dumps(self.output_schema.model_json_schema(), indent=2)}\n```")
        return "".join(parts)

    def _parse_and_validate(self, response_text: str) -> T:
        """Parse LLM response and validate against schema.

        Args:
            response_text: Raw text response from LLM

        Returns:
            Validated Pydantic model instance

        Raises:
            pydantic.ValidationError: If response doesn't match schema
            json.JSONDecodeError: If response isn't valid JSON
        """
        text = response_text.strip()

        # Handle markdown code blocks
        if "```json" in text:
            start = text.find("```json") + 7
            end = text.find("```", start)
            text = text[start:end].strip()
        elif "```" in text:
            start = text.find("```") + 3
            end = text.find("```", start)
            text = text[start:end].strip()

        data = json.loads(text)
        return self.output_schema.model_validate(data)

    def run(
        self,
        input_data: BaseModel,
        max_retries: Optional[int] = None,
        metadata: Optional[dict] = None,
    ) -> AgentResult:
        """Execute the agent.

        Args:
            input_data: Input data as a Pydantic model
            max_retries: Re-asks on validation failure (default: settings.agent_max_retries)
            metadata: Extra cost-logging metadata for this call (e.g. idea id)

        Returns:
            AgentResult with validated output and metadata

        Raises:
            ImprovementError: ``failure_error`` if the LLM call fails or output
                validation fails after retries
        """
        if max_retries is None:
            max_retries = settings.agent_max_retries
        if metadata and hasattr(self.llm_provider, "set_metadata"):
            self.llm_provider.set_metadata(metadata)

        logger.debug("Running %s agent: %s", self.role, self.get_task_description())
        full_system_prompt = self._build_full_system_prompt()
        base_message = f"# INPUT\n\n{input_data.model_dump_json(indent=2)}"
        user_message = base_message

        last_error = None
        retries = 0

        for attempt in range(max_retries + 1):
            if attempt > 0 and last_error:
                user_message = (
                    f"{base_message}\n\n"
                    f"# PREVIOUS ERROR\n\n"
                    f"Your previous response did not match the required schema. "
                    f"Error: {last_error}\n\n"
                    f"Please fix the issues and provide a valid JSON response."
                )
                retries = attempt

            try:
                response = self.llm_provider.complete(
                    system_prompt=full_system_prompt,
                    user_message=user_message,
                    model=self.model,
                    max_tokens=settings.max_tokens_per_agent_call,
                    temperature=self.temperature,
                )
            except Exception as e:
                logger.warning("%s agent call failed: %s", self.role, e)
                raise self.failure_error(f"{self.role} call failed: {e}") from e

            self.total_usage.input_tokens += response.input_tokens
            self.total_usage.output_tokens += response.output_tokens

            try:
                output = self._parse_and_validate(response.content)
            except (json.JSONDecodeError, PydanticValidationError) as e:
                last_error = str(e)
                logger.warning(
                    "%s agent response rejected (attempt %d/%d): %s",
                    self.role, attempt + 1, max_retries + 1, last_error.splitlines()[0],
                )
                continue

            return AgentResult(
                output=output,
                token_usage=TokenUsage(
                    input_tokens=response.input_tokens,
                    output_tokens=response.output_tokens,
                ),
                model=response.model,
                provider=response.provider,
                raw_response=response.content,
                retries=retries,
            )

        raise self.failure_error(
            f"{self.role} output did not match {self.output_schema.__name__} "
            f"after {max_retries + 1} attempt(s): {last_error}"
        )

    @abstractmethod
    def get_task_description(self) -> str:
        """Return a description of what this agent does.

        Used for logging and debugging.
        """
        pass
