"""Improvement contracts: directions, section diffs, iterations and the versioned record."""

from pydantic import BaseModel, Field, model_validator
from typing import Dict, List, Optional
from enum import Enum
from datetime import datetime

from .overview_contracts import Overview, IdeaContext
from .feedback_contracts import FeedbackSnapshot, PillarId, ScoreDelta, OVERALL_KEY


AUTO_DIRECTION = "auto"


class DirectionConfidence(str, Enum):
    """How confident the generator is that a direction will help."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ImprovementDirection(BaseModel):
    """A candidate strategy for improving one pillar."""
    id: str = Field(..., min_length=1, description="Kebab-case id, unique within one proposal")
    title: str = Field(..., min_length=1, description="Short human title")
    description: str = Field(..., min_length=1, description="The conceptual shift to make")
    pillar: PillarId = Field(..., description="Pillar this direction targets")
    confidence: Optional[DirectionConfidence] = Field(None, description="Generator's confidence")


class DirectionProposal(BaseModel):
    """Directions as returned by the direction model."""
    directions: List[ImprovementDirection] = Field(..., min_length=1)


class SectionDiff(BaseModel):
    """Before/after text of one changed overview section."""
    section: str = Field(..., description="Display title of the section")
    before: str = Field("", description="Normalized text before the change")
    after: str = Field("", description="Normalized text after the change")
    is_fallback: bool = Field(
        False,
        description="True when synthesized because no section actually changed",
    )


class IterationSource(str, Enum):
    """What triggered an iteration."""
    MANUAL = "manual"
    AUTO = "auto"


class ImprovementIteration(BaseModel):
    """Immutable record of one committed improvement step."""
    model_config = {"frozen": True}

    pillar_impacted: PillarId
    score_delta: Dict[str, ScoreDelta] = Field(
        ..., description="One delta per pillar id plus overallConfidence"
    )
    section_diffs: List[SectionDiff] = Field(default_factory=list)
    resulting_overview: Overview
    resulting_feedback: FeedbackSnapshot
    created_at: datetime = Field(default_factory=datetime.now)
    source: IterationSource = IterationSource.MANUAL
    version: int = Field(0, ge=0, description="Version this iteration produced (set on commit)")
    direction: Optional[ImprovementDirection] = Field(
        None, description="Applied direction; None when the generator picked one"
    )

    @model_validator(mode='after')
    def validate_delta_keys(self) -> 'ImprovementIteration':
        """Ensure a delta exists for every pillar and for overall confidence."""
        expected = {p.value for p in PillarId} | {OVERALL_KEY}
        missing = expected - set(self.score_delta)
        if missing:
            raise ValueError(f"score_delta missing keys: {', '.join(sorted(missing))}")
        return self

    @property
    def diff_is_fallback(self) -> bool:
        """True when the only diff entry is the synthesized placeholder."""
        return any(d.is_fallback for d in self.section_diffs)

    @property
    def target_delta(self) -> ScoreDelta:
        """Delta of the targeted pillar."""
        return self.score_delta[self.pillar_impacted.value]

    @property
    def overall_delta(self) -> ScoreDelta:
        """Delta of overall confidence."""
        return self.score_delta[OVERALL_KEY]


class VersionedOverview(BaseModel):
    """Authoritative per-idea state: current overview, feedback, history and undo stack."""
    idea_id: str = Field(..., min_length=1)
    version: int = Field(1, ge=1, description="Incremented by one on every state transition")
    overview: Overview
    feedback: FeedbackSnapshot
    context: IdeaContext = Field(default_factory=IdeaContext)
    history: List[ImprovementIteration] = Field(
        default_factory=list, description="Committed iterations in creation order"
    )
    undo_stack: List[Overview] = Field(
        default_factory=list, description="Previous overviews, most recent last"
    )
    feedback_stale: bool = Field(
        False, description="True after undo until feedback is refreshed"
    )
    updated_at: datetime = Field(default_factory=datetime.now)

    def history_newest_first(self) -> List[ImprovementIteration]:
        """History in reverse-chronological (display) order."""
        return list(reversed(self.history))
