"""Direction Agent - proposes candidate strategies for one weak pillar."""

import logging
import re
from typing import List, Optional

from pydantic import BaseModel, Field

from agents.base_agent import BaseAgent
from config import settings
from contracts import (
    Overview,
    IdeaContext,
    FeedbackSnapshot,
    PillarId,
    PILLAR_LABELS,
    PILLAR_FOCUS_SECTIONS,
    SECTION_TITLES,
    ImprovementDirection,
    DirectionProposal,
    GenerationError,
)
from engine import overview_to_text

logger = logging.getLogger(__name__)


class DirectionInput(BaseModel):
    """Input for the Direction Agent."""
    overview: str = Field(..., description="The current overview, rendered section by section")
    pillar: PillarId = Field(..., description="Pillar to improve")
    pillar_label: str
    current_score: Optional[int] = Field(None, description="Current score of the pillar")
    rationale: Optional[str] = Field(None, description="Why the pillar scored as it did")
    focus_sections: List[str] = Field(default_factory=list, description="Sections that drive this pillar")
    context: str = Field("", description="Founder context")
    min_directions: int = 3
    max_directions: int = 5


class DirectionAgent(BaseAgent):
    """Proposes 3-5 distinct improvement directions for a single pillar.

    Directions are conceptual shifts (a narrower audience, a different
    pricing lever), not copy edits. The agent never rewrites the overview.
    """

    SYSTEM_PROMPT = """You are a startup strategy advisor reviewing a business idea overview.

## Your Mission

Propose distinct improvement directions for ONE evaluation pillar of the idea.
Each direction is a conceptual shift the founder could make, not a wording tweak.

## Rules

1. Return between min_directions and max_directions directions
2. Every direction targets the given pillar
3. Directions must differ from each other in substance
4. Ground each direction in the current overview and the pillar rationale
5. Use short kebab-case ids (e.g. "narrow-to-clinics"), unique within your answer
6. Set confidence to low, medium or high depending on how likely the shift raises the pillar score
7. Prefer changes to the focus sections listed in the input
"""

    def __init__(
        self,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        **kwargs,
    ):
        """Initialize the Direction Agent."""
        super().__init__(
            role="directions",
            system_prompt=self.SYSTEM_PROMPT,
            output_schema=DirectionProposal,
            model=model,
            provider=provider,
            temperature=settings.direction_temperature,
            **kwargs,
        )

    def get_task_description(self) -> str:
        return "Propose improvement directions for a single pillar"

    def propose(
        self,
        overview: Overview,
        pillar: PillarId,
        context: Optional[IdeaContext] = None,
        feedback: Optional[FeedbackSnapshot] = None,
    ) -> List[ImprovementDirection]:
        """Return at most max_directions directions, all tagged with ``pillar``.

        Raises:
            GenerationError: If the model fails or returns no usable direction
        """
        input_data = DirectionInput(
            overview=overview_to_text(overview),
            pillar=pillar,
            pillar_label=PILLAR_LABELS[pillar],
            current_score=feedback.score_of(pillar) if feedback else None,
            rationale=feedback.scores[pillar].rationale if feedback else None,
            focus_sections=[SECTION_TITLES[s] for s in PILLAR_FOCUS_SECTIONS[pillar]],
            context=(context or IdeaContext()).describe(),
            min_directions=settings.min_directions,
            max_directions=settings.max_directions,
        )
        result = self.run(input_data, metadata={"pillar": pillar.value})
        directions = normalize_directions(result.output.directions, pillar)
        if not directions:
            raise GenerationError("No improvement directions returned", pillar=pillar.value)
        if len(directions) > settings.max_directions:
            logger.debug("Truncating %d directions to %d", len(directions), settings.max_directions)
        return directions[: settings.max_directions]


def _slug(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "direction"


def normalize_directions(
    directions: List[ImprovementDirection],
    pillar: PillarId,
) -> List[ImprovementDirection]:
    """Force the target pillar and make ids unique kebab-case slugs."""
    seen = set()
    result = []
    for direction in directions:
        base = _slug(direction.id)
        candidate = base
        suffix = 2
        while candidate in seen:
            candidate = f"{base}-{suffix}"
            suffix += 1
        seen.add(candidate)
        result.append(direction.model_copy(update={"id": candidate, "pillar": pillar}))
    return result
