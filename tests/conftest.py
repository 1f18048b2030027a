"""Shared fixtures: overview/feedback factories and a scripted generation service."""

from typing import List, Optional

import pytest

from agents.generation_service import ContentGenerationService
from contracts import (
    Overview,
    Persona,
    MonetisationModel,
    RiskItem,
    IdeaContext,
    FeedbackSnapshot,
    PillarId,
    PillarScore,
    ImprovementDirection,
    DirectionConfidence,
)
from engine import build_snapshot
from store import VersionedOverviewStore


IDEA_ID = "acme-clinic"


def make_overview(**overrides) -> Overview:
    data = dict(
        pitch="Booking software that fills last-minute dental cancellations.",
        problem_summary="Clinics lose revenue when patients cancel on short notice.",
        solution="A waitlist that texts nearby patients when a slot opens.",
        competition="Generic booking tools offer waitlists but no automated fill.",
        personas=[
            Persona(
                name="Practice Manager",
                role="Operations",
                summary="Runs the front desk of a three-chair clinic.",
                needs=["Fewer empty chairs", "No extra admin"],
            )
        ],
        core_features=["Smart waitlist", "SMS offers", "Calendar sync"],
        unique_value="Fills cancelled slots within minutes without staff effort.",
        monetisation=[
            MonetisationModel(
                model="Subscription",
                description="Monthly fee per clinic",
                pricing_notes="£49 per chair",
            )
        ],
        market_size="About 11,000 dental practices in the UK.",
        build_notes="Integrate with the two largest practice-management systems first.",
        risks=[RiskItem(risk="Integration access", mitigation="Start with CSV import")],
    )
    data.update(overrides)
    return Overview(**data)


def make_feedback(
    audience_fit: int = 80,
    competition: int = 70,
    market_demand: int = 60,
    feasibility: int = 90,
    pricing_potential: int = 50,
) -> FeedbackSnapshot:
    values = {
        PillarId.AUDIENCE_FIT: audience_fit,
        PillarId.COMPETITION: competition,
        PillarId.MARKET_DEMAND: market_demand,
        PillarId.FEASIBILITY: feasibility,
        PillarId.PRICING_POTENTIAL: pricing_potential,
    }
    return build_snapshot(
        {p: PillarScore(pillar_id=p, score=s, rationale=f"{p.value} rationale") for p, s in values.items()}
    )


def make_directions(pillar: PillarId, count: int = 3) -> List[ImprovementDirection]:
    return [
        ImprovementDirection(
            id=f"direction-{i + 1}",
            title=f"Direction {i + 1}",
            description=f"Shift number {i + 1}",
            pillar=pillar,
            confidence=DirectionConfidence.MEDIUM,
        )
        for i in range(count)
    ]


class ScriptedGenerationService(ContentGenerationService):
    """In-memory generation service driven by queued responses.

    Queued items are returned in order; an Exception instance is raised
    instead. With an empty queue, rewrites append a marker to the problem
    summary and scoring returns ``default_feedback``.
    """

    def __init__(self, default_feedback: Optional[FeedbackSnapshot] = None):
        self.default_feedback = default_feedback or make_feedback()
        self.direction_queue: list = []
        self.rewrite_queue: list = []
        self.score_queue: list = []
        self.calls: list = []
        self.rewrite_count = 0

    @staticmethod
    def _next(queue: list):
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def propose_directions(self, overview, pillar, context, feedback=None):
        self.calls.append(("propose_directions", pillar))
        if self.direction_queue:
            return self._next(self.direction_queue)
        return make_directions(pillar)

    def apply_direction(self, overview, pillar, direction, context, feedback=None):
        self.calls.append(("apply_direction", pillar, direction))
        self.rewrite_count += 1
        if self.rewrite_queue:
            return self._next(self.rewrite_queue)
        return overview.model_copy(
            update={"problem_summary": f"{overview.problem_summary} (rev {self.rewrite_count})"}
        )

    def score_overview(self, overview, context):
        self.calls.append(("score_overview",))
        if self.score_queue:
            return self._next(self.score_queue)
        return self.default_feedback


@pytest.fixture
def overview() -> Overview:
    return make_overview()


@pytest.fixture
def feedback() -> FeedbackSnapshot:
    return make_feedback()


@pytest.fixture
def service() -> ScriptedGenerationService:
    return ScriptedGenerationService()


@pytest.fixture
def store() -> VersionedOverviewStore:
    return VersionedOverviewStore()


@pytest.fixture
def seeded_store(store, overview, feedback) -> VersionedOverviewStore:
    store.create(IDEA_ID, overview, feedback, IdeaContext(target_market="UK dental clinics"))
    return store
