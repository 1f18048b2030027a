"""Rewrite Agent - applies one improvement direction to a full overview."""

from typing import List, Optional, Union

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
    AUTO_DIRECTION,
)


class RewriteInput(BaseModel):
    """Input for the Rewrite Agent."""
    overview: Overview = Field(..., description="The current overview")
    pillar: PillarId
    pillar_label: str
    current_score: Optional[int] = None
    rationale: Optional[str] = None
    focus_sections: List[str] = Field(default_factory=list)
    direction: Optional[str] = Field(
        None,
        description="Direction to implement; empty means choose the most impactful change yourself",
    )
    preserve_pitch: bool = True
    context: str = ""


class RewriteAgent(BaseAgent):
    """Returns a complete, rewritten Overview implementing one direction."""

    SYSTEM_PROMPT = """You are a product strategist revising a business idea overview.

## Your Mission

Rewrite the overview so the given pillar would score higher, implementing the
given direction. If no direction is given, pick the single change most likely
to raise the pillar score and implement it.

## Rules

1. Return the COMPLETE overview with all eleven sections, not only the changed ones
2. Concentrate edits on the focus sections; touch other sections only where consistency requires it
3. Keep every claim plausible for the stated market, budget and timeline
4. Do not invent statistics; phrase estimates as estimates
5. If preserve_pitch is true, return the pitch unchanged
"""

    def __init__(
        self,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        **kwargs,
    ):
        """Initialize the Rewrite Agent."""
        super().__init__(
            role="rewrite",
            system_prompt=self.SYSTEM_PROMPT,
            output_schema=Overview,
            model=model,
            provider=provider,
            temperature=settings.rewrite_temperature,
            **kwargs,
        )

    def get_task_description(self) -> str:
        return "Rewrite an overview to strengthen one pillar"

    def rewrite(
        self,
        overview: Overview,
        pillar: PillarId,
        direction: Union[ImprovementDirection, str],
        context: Optional[IdeaContext] = None,
        feedback: Optional[FeedbackSnapshot] = None,
    ) -> Overview:
        """Rewrite ``overview`` along ``direction`` ("auto" lets the model choose).

        Raises:
            GenerationError: If the model fails or never returns a complete overview
        """
        if isinstance(direction, ImprovementDirection):
            direction_text = f"{direction.title}: {direction.description}"
        elif direction == AUTO_DIRECTION:
            direction_text = None
        else:
            direction_text = direction

        input_data = RewriteInput(
            overview=overview,
            pillar=pillar,
            pillar_label=PILLAR_LABELS[pillar],
            current_score=feedback.score_of(pillar) if feedback else None,
            rationale=feedback.scores[pillar].rationale if feedback else None,
            focus_sections=[SECTION_TITLES[s] for s in PILLAR_FOCUS_SECTIONS[pillar]],
            direction=direction_text,
            preserve_pitch=settings.preserve_pitch,
            context=(context or IdeaContext()).describe(),
        )
        result = self.run(input_data, metadata={"pillar": pillar.value})
        rewritten: Overview = result.output
        if settings.preserve_pitch and rewritten.pitch != overview.pitch:
            rewritten = rewritten.model_copy(update={"pitch": overview.pitch})
        return rewritten
