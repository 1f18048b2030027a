"""Agent implementations for the Idea Improvement Engine.

Each agent wraps one JSON-contract LLM call; LLMGenerationService composes
them into the content-generation service used by the orchestrator.
"""

from .base_agent import BaseAgent, AgentResult, TokenUsage
from .direction_agent import DirectionAgent, DirectionInput, normalize_directions
from .rewrite_agent import RewriteAgent, RewriteInput
from .scoring_agent import ScoringAgent, ScoringInput
from .generation_service import ContentGenerationService, LLMGenerationService

__all__ = [
    # Base
    "BaseAgent",
    "AgentResult",
    "TokenUsage",
    # Specialized agents
    "DirectionAgent",
    "DirectionInput",
    "normalize_directions",
    "RewriteAgent",
    "RewriteInput",
    "ScoringAgent",
    "ScoringInput",
    # Service
    "ContentGenerationService",
    "LLMGenerationService",
]
