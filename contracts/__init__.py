"""Pydantic contracts for the Idea Improvement Engine.

All handoffs between the aggregator, diff engine, store, generation service
and orchestrator are typed through these contracts.
"""

from .overview_contracts import (
    OverviewSection,
    SECTION_TITLES,
    Persona,
    MonetisationModel,
    RiskItem,
    Overview,
    IdeaContext,
)

from .feedback_contracts import (
    PillarId,
    PILLAR_ORDER,
    PILLAR_WEIGHTS,
    PILLAR_LABELS,
    PILLAR_FOCUS_SECTIONS,
    OVERALL_KEY,
    Recommendation,
    PillarScore,
    FeedbackSnapshot,
    ScoreDelta,
    RawPillarScore,
    ScoringPayload,
)

from .improvement_contracts import (
    AUTO_DIRECTION,
    DirectionConfidence,
    ImprovementDirection,
    DirectionProposal,
    SectionDiff,
    IterationSource,
    ImprovementIteration,
    VersionedOverview,
)

from .errors import (
    ImprovementError,
    ValidationError,
    GenerationError,
    ScoringError,
    ConflictError,
    EmptyUndoError,
    IdeaNotFoundError,
    IterationLimitReached,
)

__all__ = [
    # Overview
    "OverviewSection",
    "SECTION_TITLES",
    "Persona",
    "MonetisationModel",
    "RiskItem",
    "Overview",
    "IdeaContext",
    # Feedback
    "PillarId",
    "PILLAR_ORDER",
    "PILLAR_WEIGHTS",
    "PILLAR_LABELS",
    "PILLAR_FOCUS_SECTIONS",
    "OVERALL_KEY",
    "Recommendation",
    "PillarScore",
    "FeedbackSnapshot",
    "ScoreDelta",
    "RawPillarScore",
    "ScoringPayload",
    # Improvement
    "AUTO_DIRECTION",
    "DirectionConfidence",
    "ImprovementDirection",
    "DirectionProposal",
    "SectionDiff",
    "IterationSource",
    "ImprovementIteration",
    "VersionedOverview",
    # Errors
    "ImprovementError",
    "ValidationError",
    "GenerationError",
    "ScoringError",
    "ConflictError",
    "EmptyUndoError",
    "IdeaNotFoundError",
    "IterationLimitReached",
]
