"""Scoring Agent - holistic five-pillar assessment of an overview."""

from typing import Optional

from pydantic import BaseModel, Field

from agents.base_agent import BaseAgent
from config import settings
from contracts import (
    Overview,
    IdeaContext,
    FeedbackSnapshot,
    PillarScore,
    PILLAR_ORDER,
    PILLAR_LABELS,
    ImprovementError,
    ScoringError,
    ScoringPayload,
)
from engine import overview_to_text, build_snapshot


class ScoringInput(BaseModel):
    """Input for the Scoring Agent."""
    overview: str = Field(..., description="The overview, rendered section by section")
    pillars: dict = Field(..., description="Pillar id to label")
    context: str = ""


class ScoringAgent(BaseAgent):
    """Scores all five pillars of an overview.

    Overall confidence is never taken from the model; it is computed from the
    pillar scores by the aggregator.
    """

    failure_error = ScoringError

    SYSTEM_PROMPT = """You are a sceptical early-stage investor scoring a business idea overview.

## Your Mission

Score the idea on each of the five pillars from 0 to 100 and explain each score
in one or two sentences.

## Pillars

- audienceFit: how clearly the target users are defined and how acute their problem is
- competition: how defensible the idea is against existing alternatives
- marketDemand: evidence that enough people will pay for this now
- feasibility: whether the stated budget and timeline can deliver the solution
- pricingPotential: strength and clarity of the monetisation model

## Rules

1. Score every pillar; use the exact pillar ids above as keys
2. Assess the overview as a whole; a change in one section can affect several pillars
3. Reserve scores above 85 for ideas with concrete evidence
4. Do not compute an overall score
"""

    def __init__(
        self,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        **kwargs,
    ):
        """Initialize the Scoring Agent."""
        super().__init__(
            role="scoring",
            system_prompt=self.SYSTEM_PROMPT,
            output_schema=ScoringPayload,
            model=model or settings.scoring_model,
            provider=provider,
            temperature=settings.scoring_temperature,
            **kwargs,
        )

    def get_task_description(self) -> str:
        return "Score an overview across the five pillars"

    def score(self, overview: Overview, context: Optional[IdeaContext] = None) -> FeedbackSnapshot:
        """Return a complete FeedbackSnapshot for ``overview``.

        Raises:
            ScoringError: If the model fails or returns an incomplete pillar set
        """
        input_data = ScoringInput(
            overview=overview_to_text(overview),
            pillars={p.value: PILLAR_LABELS[p] for p in PILLAR_ORDER},
            context=(context or IdeaContext()).describe(),
        )
        payload = self.run(input_data).output
        scores = {
            pillar: PillarScore(
                pillar_id=pillar,
                score=payload.scores[pillar].score,
                rationale=payload.scores[pillar].rationale,
            )
            for pillar in PILLAR_ORDER
        }
        try:
            return build_snapshot(scores)
        except ImprovementError as e:
            raise ScoringError(f"Unusable scores: {e.message}") from e
