"""Content-generation service consumed by the improvement orchestrator.

The orchestrator only depends on ContentGenerationService. LLMGenerationService
is the production implementation, composed of the direction, rewrite and
scoring agents.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Union

from contracts import (
    Overview,
    IdeaContext,
    FeedbackSnapshot,
    PillarId,
    ImprovementDirection,
)
from agents.direction_agent import DirectionAgent
from agents.rewrite_agent import RewriteAgent
from agents.scoring_agent import ScoringAgent


class ContentGenerationService(ABC):
    """Abstract interface for proposing, applying and scoring improvements."""

    @abstractmethod
    def propose_directions(
        self,
        overview: Overview,
        pillar: PillarId,
        context: IdeaContext,
        feedback: Optional[FeedbackSnapshot] = None,
    ) -> List[ImprovementDirection]:
        """Return one or more candidate directions for ``pillar``, or raise GenerationError."""
        pass

    @abstractmethod
    def apply_direction(
        self,
        overview: Overview,
        pillar: PillarId,
        direction: Union[ImprovementDirection, str],
        context: IdeaContext,
        feedback: Optional[FeedbackSnapshot] = None,
    ) -> Overview:
        """Return a complete rewritten overview, or raise GenerationError.

        ``direction`` is either a chosen ImprovementDirection or the literal
        "auto", meaning the service both picks and applies a direction.
        """
        pass

    @abstractmethod
    def score_overview(self, overview: Overview, context: IdeaContext) -> FeedbackSnapshot:
        """Return a snapshot with all five pillars scored, or raise ScoringError."""
        pass


class LLMGenerationService(ContentGenerationService):
    """LLM-backed generation service built on LiteLLM agents."""

    def __init__(
        self,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        scoring_model: Optional[str] = None,
    ):
        """Initialize the three agents.

        Args:
            model: Model for direction and rewrite calls (default: settings.default_model)
            provider: Explicit provider name
            scoring_model: Model for scoring calls (default: settings.scoring_model or model)
        """
        self.direction_agent = DirectionAgent(model=model, provider=provider)
        self.rewrite_agent = RewriteAgent(model=model, provider=provider)
        self.scoring_agent = ScoringAgent(model=scoring_model or model, provider=provider)

    def propose_directions(self, overview, pillar, context, feedback=None):
        return self.direction_agent.propose(overview, pillar, context, feedback)

    def apply_direction(self, overview, pillar, direction, context, feedback=None):
        return self.rewrite_agent.rewrite(overview, pillar, direction, context, feedback)

    def score_overview(self, overview, context):
        return self.scoring_agent.score(overview, context)
