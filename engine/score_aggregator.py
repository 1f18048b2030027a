"""Weighted pillar aggregation and score deltas.

overall = round_half_up(sum(score_i * weight_i)) over the five fixed pillars.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Mapping, Optional, Union

from contracts.feedback_contracts import (
    PILLAR_ORDER,
    PILLAR_WEIGHTS,
    OVERALL_KEY,
    PillarId,
    PillarScore,
    FeedbackSnapshot,
    ScoreDelta,
)
from contracts.errors import ValidationError


ScoreValue = Union[PillarScore, int, float]


def _score_value(pillar: PillarId, value: ScoreValue) -> Decimal:
    raw = value.score if isinstance(value, PillarScore) else value
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValidationError(f"Score for {pillar.value} is not a number: {raw!r}", pillar=pillar.value)
    if not 0 <= raw <= 100:
        raise ValidationError(f"Score for {pillar.value} out of range [0, 100]: {raw}", pillar=pillar.value)
    return Decimal(str(raw))


def aggregate(scores: Mapping[Union[PillarId, str], ScoreValue]) -> int:
    """Aggregate five pillar scores into overall confidence.

    Args:
        scores: Mapping of pillar (enum or its string id) to a PillarScore or number

    Returns:
        Overall confidence as an integer, rounded half-up

    Raises:
        ValidationError: If a pillar is missing or a score is outside [0, 100]
    """
    normalized: Dict[PillarId, ScoreValue] = {}
    for key, value in scores.items():
        try:
            normalized[PillarId(key)] = value
        except ValueError:
            raise ValidationError(f"Unknown pillar: {key!r}") from None

    total = Decimal("0")
    for pillar in PILLAR_ORDER:
        if pillar not in normalized:
            raise ValidationError(f"Missing score for pillar {pillar.value}", pillar=pillar.value)
        total += _score_value(pillar, normalized[pillar]) * PILLAR_WEIGHTS[pillar]

    return int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_snapshot(scores: Mapping[Union[PillarId, str], PillarScore]) -> FeedbackSnapshot:
    """Build a FeedbackSnapshot whose overall confidence is computed from the scores."""
    overall = aggregate(scores)
    return FeedbackSnapshot(
        scores={PillarId(k): v for k, v in scores.items()},
        overall_confidence=overall,
    )


def delta(
    previous: Optional[FeedbackSnapshot],
    next_snapshot: FeedbackSnapshot,
) -> Dict[str, ScoreDelta]:
    """Per-pillar and overall score deltas between two snapshots.

    With no previous snapshot every ``from`` and ``change`` is None.
    """
    result: Dict[str, ScoreDelta] = {}
    for pillar in PILLAR_ORDER:
        before = previous.score_of(pillar) if previous is not None else None
        after = next_snapshot.score_of(pillar)
        result[pillar.value] = _make_delta(before, after)

    before_overall = previous.overall_confidence if previous is not None else None
    result[OVERALL_KEY] = _make_delta(before_overall, next_snapshot.overall_confidence)
    return result


def _make_delta(before: Optional[int], after: int) -> ScoreDelta:
    change = None if before is None else after - before
    return ScoreDelta(from_=before, to=after, change=change)
