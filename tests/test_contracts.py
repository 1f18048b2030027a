"""Tests for all Pydantic contracts.

Verifies that every contract can be instantiated with valid data
and that validation works correctly.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from contracts import (
    # Overview
    Overview,
    IdeaContext,
    Persona,
    # Feedback
    PillarId,
    PILLAR_ORDER,
    PILLAR_WEIGHTS,
    PillarScore,
    FeedbackSnapshot,
    Recommendation,
    ScoreDelta,
    ScoringPayload,
    # Improvement
    ImprovementDirection,
    DirectionProposal,
    ImprovementIteration,
    VersionedOverview,
    SectionDiff,
    # Errors
    ImprovementError,
    ConflictError,
    ScoringError,
    IterationLimitReached,
)
from engine import delta

from conftest import make_overview, make_feedback


class TestOverviewContracts:
    """Test Overview and related contracts."""

    def test_valid_overview(self):
        overview = make_overview()
        assert overview.personas[0].name == "Practice Manager"
        assert len(overview.core_features) == 3

    def test_missing_section_rejected(self):
        data = make_overview().model_dump()
        del data["market_size"]
        with pytest.raises(PydanticValidationError):
            Overview.model_validate(data)

    def test_null_section_rejected(self):
        data = make_overview().model_dump()
        data["risks"] = None
        with pytest.raises(PydanticValidationError):
            Overview.model_validate(data)

    def test_unknown_section_rejected(self):
        data = make_overview().model_dump()
        data["tagline"] = "Extra"
        with pytest.raises(PydanticValidationError):
            Overview.model_validate(data)

    def test_empty_sections_allowed(self):
        overview = make_overview(build_notes="", personas=[], risks=[])
        assert overview.build_notes == ""

    def test_persona_defaults(self):
        persona = Persona(name="Sam")
        assert persona.role is None
        assert persona.needs == []

    def test_idea_context_describe(self):
        context = IdeaContext(target_market="Dentists", budget="£20k")
        assert context.describe() == "Target market: Dentists\nBudget: £20k"
        assert IdeaContext().describe() == "No additional context."


class TestFeedbackContracts:
    """Test FeedbackSnapshot, ScoreDelta and scoring payloads."""

    def test_weights_sum_to_one(self):
        assert sum(PILLAR_WEIGHTS.values()) == 1

    def test_consistent_snapshot(self):
        snapshot = make_feedback(80, 70, 60, 90, 50)
        assert snapshot.overall_confidence == 69
        assert snapshot.recommendation == Recommendation.REVISE

    def test_inconsistent_overall_rejected(self):
        data = make_feedback().model_dump()
        data["overall_confidence"] = 70
        with pytest.raises(PydanticValidationError):
            FeedbackSnapshot.model_validate(data)

    def test_missing_pillar_rejected(self):
        scores = {p: PillarScore(pillar_id=p, score=50) for p in PILLAR_ORDER[:4]}
        with pytest.raises(PydanticValidationError):
            FeedbackSnapshot(scores=scores, overall_confidence=50)

    def test_mismatched_pillar_key_rejected(self):
        scores = {p: PillarScore(pillar_id=p, score=50) for p in PILLAR_ORDER}
        scores[PillarId.COMPETITION] = PillarScore(pillar_id=PillarId.FEASIBILITY, score=50)
        with pytest.raises(PydanticValidationError):
            FeedbackSnapshot(scores=scores, overall_confidence=50)

    def test_score_out_of_range_rejected(self):
        with pytest.raises(PydanticValidationError):
            PillarScore(pillar_id=PillarId.COMPETITION, score=101)

    @pytest.mark.parametrize("scores, expected", [
        ((90, 90, 90, 90, 90), Recommendation.BUILD),
        ((70, 70, 70, 70, 70), Recommendation.BUILD),
        ((40, 40, 40, 40, 40), Recommendation.REVISE),
        ((39, 39, 39, 39, 39), Recommendation.DROP),
    ])
    def test_recommendation(self, scores, expected):
        assert make_feedback(*scores).recommendation == expected

    def test_score_delta_alias(self):
        value = ScoreDelta.model_validate({"from": 60, "to": 72, "change": 12})
        assert value.from_ == 60
        assert value.model_dump(by_alias=True) == {"from": 60, "to": 72, "change": 12}

    def test_score_delta_inconsistent_change_rejected(self):
        with pytest.raises(PydanticValidationError):
            ScoreDelta(from_=60, to=72, change=10)
        with pytest.raises(PydanticValidationError):
            ScoreDelta(from_=None, to=72, change=0)

    def test_scoring_payload_rounds_floats(self):
        payload = ScoringPayload.model_validate({
            "scores": {p.value: {"score": 72.5, "rationale": "ok"} for p in PILLAR_ORDER}
        })
        assert payload.scores[PillarId.MARKET_DEMAND].score == 73

    def test_scoring_payload_requires_every_pillar(self):
        with pytest.raises(PydanticValidationError):
            ScoringPayload.model_validate({"scores": {"audienceFit": {"score": 50}}})


class TestImprovementContracts:
    """Test directions, iterations and the versioned record."""

    def test_direction_proposal_requires_one_direction(self):
        with pytest.raises(PydanticValidationError):
            DirectionProposal(directions=[])

    def test_direction_requires_id(self):
        with pytest.raises(PydanticValidationError):
            ImprovementDirection(id="", title="t", description="d", pillar=PillarId.COMPETITION)

    def _iteration(self, **overrides):
        before, after = make_feedback(), make_feedback(pricing_potential=70)
        data = dict(
            pillar_impacted=PillarId.PRICING_POTENTIAL,
            score_delta=delta(before, after),
            section_diffs=[SectionDiff(section="Monetisation Model", before="a", after="b")],
            resulting_overview=make_overview(),
            resulting_feedback=after,
        )
        data.update(overrides)
        return ImprovementIteration(**data)

    def test_iteration_deltas(self):
        iteration = self._iteration()
        assert iteration.target_delta.change == 20
        assert iteration.overall_delta.change == 4
        assert not iteration.diff_is_fallback

    def test_iteration_is_frozen(self):
        iteration = self._iteration()
        with pytest.raises(PydanticValidationError):
            iteration.version = 3

    def test_iteration_requires_every_delta_key(self):
        deltas = delta(make_feedback(), make_feedback())
        del deltas["overallConfidence"]
        with pytest.raises(PydanticValidationError):
            self._iteration(score_delta=deltas)

    def test_versioned_overview_round_trips_json(self):
        record = VersionedOverview(
            idea_id="acme",
            overview=make_overview(),
            feedback=make_feedback(),
            history=[self._iteration(version=2)],
        )
        restored = VersionedOverview.model_validate_json(record.model_dump_json(by_alias=True))
        assert restored.model_dump() == record.model_dump()
        assert restored.history_newest_first()[0].version == 2

    def test_version_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            VersionedOverview(idea_id="acme", version=0, overview=make_overview(), feedback=make_feedback())


class TestErrors:
    """Test the error taxonomy."""

    def test_location_in_message(self):
        error = ScoringError("Scores missing", idea_id="acme", pillar="competition", iteration=2)
        assert str(error) == "Scores missing [idea=acme, pillar=competition, iteration=2]"
        assert isinstance(error, ImprovementError)

    def test_locate_keeps_existing_fields(self):
        error = ScoringError("Scores missing", pillar="competition")
        assert error.locate(idea_id="acme", pillar="feasibility") is error
        assert error.idea_id == "acme"
        assert error.pillar == "competition"

    def test_conflict_versions(self):
        error = ConflictError("stale", expected_version=3, actual_version=4, idea_id="acme")
        assert (error.expected_version, error.actual_version) == (3, 4)
        assert "idea=acme" in str(error)

    def test_iteration_limit_is_not_an_exception(self):
        notice = IterationLimitReached(5, 71, 90)
        assert not isinstance(notice, Exception)
        assert "limit of 5" in str(notice)
