"""Feedback contracts: pillar scores, snapshots and score deltas."""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, List, Optional
from enum import Enum
from decimal import Decimal, ROUND_HALF_UP
import math

from .overview_contracts import OverviewSection


class PillarId(str, Enum):
    """The five fixed evaluation pillars, in declaration order."""
    AUDIENCE_FIT = "audienceFit"
    COMPETITION = "competition"
    MARKET_DEMAND = "marketDemand"
    FEASIBILITY = "feasibility"
    PRICING_POTENTIAL = "pricingPotential"


# Declaration order doubles as the tie-break order for weakest-pillar selection.
PILLAR_ORDER: List[PillarId] = list(PillarId)

# Exact decimal weights; the weighted sum is rounded half-up.
PILLAR_WEIGHTS: Dict[PillarId, Decimal] = {
    PillarId.AUDIENCE_FIT: Decimal("0.20"),
    PillarId.COMPETITION: Decimal("0.20"),
    PillarId.MARKET_DEMAND: Decimal("0.25"),
    PillarId.FEASIBILITY: Decimal("0.15"),
    PillarId.PRICING_POTENTIAL: Decimal("0.20"),
}

if sum(PILLAR_WEIGHTS.values()) != Decimal("1"):
    raise RuntimeError("pillar weights must sum to 1.0")

PILLAR_LABELS: Dict[PillarId, str] = {
    PillarId.AUDIENCE_FIT: "Audience Fit",
    PillarId.COMPETITION: "Competition",
    PillarId.MARKET_DEMAND: "Market Demand",
    PillarId.FEASIBILITY: "Feasibility",
    PillarId.PRICING_POTENTIAL: "Pricing Potential",
}

# Sections whose wording most influences each pillar; used to focus prompts.
PILLAR_FOCUS_SECTIONS: Dict[PillarId, List[OverviewSection]] = {
    PillarId.AUDIENCE_FIT: [OverviewSection.PROBLEM_SUMMARY, OverviewSection.PERSONAS],
    PillarId.COMPETITION: [OverviewSection.COMPETITION, OverviewSection.UNIQUE_VALUE],
    PillarId.MARKET_DEMAND: [OverviewSection.MARKET_SIZE, OverviewSection.PROBLEM_SUMMARY],
    PillarId.FEASIBILITY: [OverviewSection.SOLUTION, OverviewSection.BUILD_NOTES],
    PillarId.PRICING_POTENTIAL: [OverviewSection.MONETISATION],
}

OVERALL_KEY = "overallConfidence"


class Recommendation(str, Enum):
    """Headline verdict derived from overall confidence."""
    BUILD = "build"
    REVISE = "revise"
    DROP = "drop"


class PillarScore(BaseModel):
    """Score for a single pillar."""
    pillar_id: PillarId = Field(..., description="Which pillar this score is for")
    score: int = Field(..., ge=0, le=100, description="Score from 0 to 100")
    rationale: str = Field("", description="Why the pillar received this score")


class FeedbackSnapshot(BaseModel):
    """A scored assessment of an Overview across all five pillars.

    overall_confidence must equal the weighted, round-half-up aggregate of the
    pillar scores. A snapshot that disagrees is rejected, not corrected.
    """
    scores: Dict[PillarId, PillarScore] = Field(..., description="Score per pillar")
    overall_confidence: int = Field(..., ge=0, le=100, description="Weighted overall confidence")

    @model_validator(mode='after')
    def validate_confidence(self) -> 'FeedbackSnapshot':
        """Ensure every pillar is present and the overall matches the weights."""
        from engine.score_aggregator import aggregate
        from .errors import ImprovementError

        for key, value in self.scores.items():
            if value.pillar_id != key:
                raise ValueError(f"score keyed as {key.value} is for pillar {value.pillar_id.value}")
        try:
            expected = aggregate(self.scores)
        except ImprovementError as e:
            raise ValueError(e.message) from e
        if self.overall_confidence != expected:
            raise ValueError(
                f"overall_confidence {self.overall_confidence} does not match "
                f"weighted pillar scores ({expected})"
            )
        return self

    @property
    def recommendation(self) -> Recommendation:
        """Build at 70+, revise at 40+, otherwise drop."""
        if self.overall_confidence >= 70:
            return Recommendation.BUILD
        if self.overall_confidence >= 40:
            return Recommendation.REVISE
        return Recommendation.DROP

    def score_of(self, pillar: PillarId) -> int:
        """Return the score for a pillar."""
        return self.scores[pillar].score


class ScoreDelta(BaseModel):
    """Change of one score between two snapshots.

    Serialized with the key ``from``; ``from_`` is the Python attribute name.
    """
    model_config = {"populate_by_name": True}

    from_: Optional[int] = Field(None, alias="from")
    to: int
    change: Optional[int] = None

    @model_validator(mode='after')
    def validate_change(self) -> 'ScoreDelta':
        """change is to - from, or None when there is no previous score."""
        expected = None if self.from_ is None else self.to - self.from_
        if self.change != expected:
            raise ValueError(f"change {self.change} does not match from/to ({expected})")
        return self


class RawPillarScore(BaseModel):
    """One pillar as returned by the model; numbers are rounded half-up to int."""
    score: int = Field(..., ge=0, le=100)
    rationale: str = ""

    @field_validator('score', mode='before')
    @classmethod
    def round_score(cls, value):
        if isinstance(value, float) and math.isfinite(value):
            return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return value


class ScoringPayload(BaseModel):
    """Raw pillar scores as returned by the scoring model."""
    scores: Dict[PillarId, RawPillarScore] = Field(..., description="Score per pillar id")

    @field_validator('scores')
    @classmethod
    def all_pillars_present(cls, value: Dict[PillarId, RawPillarScore]) -> Dict[PillarId, RawPillarScore]:
        missing = [p.value for p in PILLAR_ORDER if p not in value]
        if missing:
            raise ValueError(f"missing pillar scores: {', '.join(missing)}")
        return value
