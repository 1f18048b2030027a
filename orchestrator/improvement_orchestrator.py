"""Improvement Orchestrator - drives single-pillar refinement and auto-improvement.

A single-pillar refinement moves through:

    IDLE -> AWAITING_DIRECTION -> DIRECTIONS_READY -> APPLYING -> COMMITTED
                                                           \\-> FAILED

DIRECTIONS_READY waits for the caller to pick a direction id (or "auto").
APPLYING rewrites the overview, re-scores all five pillars and commits through
the store. Nothing is persisted unless the rewrite, the re-score and the commit
all succeed.

Auto-improvement repeatedly refines the weakest pillar with "auto" directions
until the target is reached or the iteration cap is hit. The cap is what
guarantees termination: re-scoring can lower other pillars, so scores do not
converge monotonically.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from config import settings
from contracts import (
    Overview,
    IdeaContext,
    FeedbackSnapshot,
    PillarId,
    PILLAR_ORDER,
    AUTO_DIRECTION,
    ImprovementDirection,
    ImprovementIteration,
    IterationSource,
    VersionedOverview,
    ScoreDelta,
    ImprovementError,
    ValidationError,
    GenerationError,
    ScoringError,
    ConflictError,
    IterationLimitReached,
)
from engine import diff, delta
from store import VersionedOverviewStore
from orchestrator.cost_controller import CostController

logger = logging.getLogger(__name__)


class RefinementState(str, Enum):
    """State of a single-pillar refinement for one idea."""
    IDLE = "idle"
    AWAITING_DIRECTION = "awaiting_direction"
    DIRECTIONS_READY = "directions_ready"
    APPLYING = "applying"
    COMMITTED = "committed"
    FAILED = "failed"


class StopReason(str, Enum):
    """Why an auto-improve run ended."""
    TARGET_REACHED = "target_reached"
    ITERATION_LIMIT = "iteration_limit"
    NO_CANDIDATE = "no_candidate"
    STALLED = "stalled"
    BUDGET_EXCEEDED = "budget_exceeded"
    CANCELLED = "cancelled"
    FAILED = "failed"
    CONFLICT = "conflict"


class CancellationToken:
    """Cooperative cancellation for auto-improve runs.

    Checked between iterations only, so a cancelled run never stops mid-commit.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class RefinementResult:
    """Outcome of refine_pillar.

    In DIRECTIONS_READY only ``directions`` is set; in COMMITTED ``iteration``
    and ``record`` describe the new version.
    """
    idea_id: str
    pillar: PillarId
    state: RefinementState
    directions: List[ImprovementDirection] = field(default_factory=list)
    iteration: Optional[ImprovementIteration] = None
    record: Optional[VersionedOverview] = None

    @property
    def committed(self) -> bool:
        return self.state == RefinementState.COMMITTED

    @property
    def version(self) -> Optional[int]:
        return self.record.version if self.record else None

    @property
    def target_delta(self) -> Optional[ScoreDelta]:
        return self.iteration.target_delta if self.iteration else None

    @property
    def overall_delta(self) -> Optional[ScoreDelta]:
        return self.iteration.overall_delta if self.iteration else None


@dataclass
class AutoImproveResult:
    """Outcome of auto_improve, including partial progress on failure."""
    idea_id: str
    final_overview: Overview
    final_feedback: FeedbackSnapshot
    final_version: int
    iterations: List[ImprovementIteration]
    reached_target: bool
    stop_reason: StopReason
    target_score: int
    max_iterations: int
    error: Optional[ImprovementError] = None
    notice: Optional[IterationLimitReached] = None
    cost_usd: float = 0.0
    cost_manifest: Dict[str, Any] = field(default_factory=dict)

    @property
    def iteration_count(self) -> int:
        return len(self.iterations)


@dataclass
class _Session:
    state: RefinementState = RefinementState.IDLE
    directions: List[ImprovementDirection] = field(default_factory=list)
    base_version: Optional[int] = None


def select_weakest_pillar(feedback: FeedbackSnapshot, ceiling: int) -> Optional[PillarId]:
    """Lowest-scoring pillar below ``ceiling``; ties go to declaration order.

    Returns None when every pillar is already at or above the ceiling.
    """
    candidates = [p for p in PILLAR_ORDER if feedback.score_of(p) < ceiling]
    if not candidates:
        return None
    # min() keeps the first of equal keys, which is declaration order
    return min(candidates, key=feedback.score_of)


def _coerce_pillar(pillar: Union[PillarId, str]) -> PillarId:
    try:
        return PillarId(pillar)
    except ValueError:
        raise ValidationError(
            f"Unknown pillar: {pillar!r}. Expected one of {[p.value for p in PILLAR_ORDER]}"
        ) from None


class ImprovementOrchestrator:
    """Coordinates the generation service, aggregator, diff engine and store.

    Independent ideas can be refined concurrently through one orchestrator.
    Within one idea, concurrent writers are serialized by the store's version
    check, never by a lock here.
    """

    def __init__(
        self,
        store: Optional[VersionedOverviewStore] = None,
        generation_service=None,
    ):
        """Initialize the orchestrator.

        Args:
            store: Versioned store; defaults to an in-memory store
            generation_service: ContentGenerationService; defaults to the LLM-backed service
        """
        self.store = store or VersionedOverviewStore()
        if generation_service is None:
            from agents import LLMGenerationService
            generation_service = LLMGenerationService()
        self.generation_service = generation_service
        self._sessions: Dict[Tuple[str, PillarId], _Session] = {}
        self._sessions_lock = threading.Lock()

    # -- state machine -------------------------------------------------------

    def get_state(self, idea_id: str, pillar: Union[PillarId, str]) -> RefinementState:
        """Current refinement state for one idea and pillar."""
        key = (idea_id, _coerce_pillar(pillar))
        with self._sessions_lock:
            session = self._sessions.get(key)
            return session.state if session else RefinementState.IDLE

    def _session(self, idea_id: str, pillar: PillarId) -> _Session:
        with self._sessions_lock:
            return self._sessions.setdefault((idea_id, pillar), _Session())

    def _transition(self, idea_id: str, pillar: PillarId, state: RefinementState, **updates) -> None:
        with self._sessions_lock:
            session = self._sessions.setdefault((idea_id, pillar), _Session())
            logger.debug("Idea %s pillar %s: %s -> %s", idea_id, pillar.value, session.state.value, state.value)
            session.state = state
            for name, value in updates.items():
                setattr(session, name, value)

    def _clear_directions(self, idea_id: str) -> None:
        with self._sessions_lock:
            for (session_idea, _), session in self._sessions.items():
                if session_idea == idea_id and session.state == RefinementState.DIRECTIONS_READY:
                    session.state = RefinementState.IDLE
                    session.directions = []
                    session.base_version = None

    # -- caller-facing operations --------------------------------------------

    def initialize_idea(
        self,
        idea_id: str,
        overview: Union[Overview, dict],
        context: Optional[IdeaContext] = None,
    ) -> VersionedOverview:
        """Score a first overview and create the idea's record at version 1.

        Raises:
            ValidationError: If the overview is malformed or the idea already exists
            ScoringError: If scoring fails
        """
        context = context or IdeaContext()
        try:
            overview = self._ensure_overview(overview)
            if self.store.exists(idea_id):
                raise ValidationError(f"Idea already exists: {idea_id}")
            feedback = self._score(overview, context)
            return self.store.create(idea_id, overview, feedback, context)
        except ImprovementError as e:
            raise e.locate(idea_id=idea_id)

    def list_directions(
        self,
        idea_id: str,
        pillar: Union[PillarId, str],
    ) -> List[ImprovementDirection]:
        """Ask the generation service for candidate directions for one pillar.

        The directions are remembered so a later refine_pillar call can select
        one by id.

        Raises:
            GenerationError: If the service fails or returns no directions
        """
        pillar = _coerce_pillar(pillar)
        record = self._read(idea_id, pillar)
        self._transition(idea_id, pillar, RefinementState.AWAITING_DIRECTION, directions=[], base_version=None)

        try:
            record = self._rescore_if_stale(record)
            directions = self._propose(record, pillar)
        except ImprovementError as e:
            self._transition(idea_id, pillar, RefinementState.FAILED)
            raise e.locate(idea_id=idea_id, pillar=pillar.value)

        self._transition(
            idea_id, pillar, RefinementState.DIRECTIONS_READY,
            directions=directions, base_version=record.version,
        )
        logger.info("Idea %s: %d directions ready for %s", idea_id, len(directions), pillar.value)
        return directions

    def refine_pillar(
        self,
        idea_id: str,
        pillar: Union[PillarId, str],
        selected_direction_id: Optional[str] = None,
    ) -> RefinementResult:
        """Refine one pillar.

        Without a selection this lists directions and stops in DIRECTIONS_READY.
        With a direction id from the last listing, or "auto", it rewrites,
        re-scores and commits. A committed result may show the targeted pillar
        up and overall confidence down; that is a valid outcome.

        Raises:
            ValidationError: Unknown pillar or direction id, or malformed rewrite
            GenerationError: Rewrite failed
            ScoringError: Re-score failed
            ConflictError: The idea changed since the directions were listed or
                during the refinement
        """
        pillar = _coerce_pillar(pillar)
        if selected_direction_id is None:
            directions = self.list_directions(idea_id, pillar)
            return RefinementResult(
                idea_id=idea_id,
                pillar=pillar,
                state=RefinementState.DIRECTIONS_READY,
                directions=directions,
            )

        record = self._read(idea_id, pillar)
        if selected_direction_id == AUTO_DIRECTION:
            direction: Union[ImprovementDirection, str] = AUTO_DIRECTION
        else:
            direction = self._pending_direction(record, pillar, selected_direction_id)
        try:
            record = self._rescore_if_stale(record)
        except ImprovementError as e:
            raise e.locate(idea_id=idea_id, pillar=pillar.value)

        iteration, committed = self._apply(record, pillar, direction, IterationSource.MANUAL)
        return RefinementResult(
            idea_id=idea_id,
            pillar=pillar,
            state=RefinementState.COMMITTED,
            iteration=iteration,
            record=committed,
        )

    def auto_improve(
        self,
        idea_id: str,
        target_score: Optional[int] = None,
        max_iterations: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
        max_cost_usd: Optional[float] = None,
        pillar_ceiling: Optional[int] = None,
    ) -> AutoImproveResult:
        """Refine the weakest pillar with "auto" directions until a stop condition.

        Stops when overall confidence reaches ``target_score``, after
        ``max_iterations`` committed iterations, when no pillar is below
        ``pillar_ceiling`` (default: the target), after
        ``settings.max_stalled_iterations`` iterations without overall gain,
        when the cost budget is spent, on cancellation, or on the first
        failure. Iterations committed before a failure are kept.

        Raises:
            ValidationError: If target_score or max_iterations is out of range
            IdeaNotFoundError: If the idea has no record
            ScoringError: If feedback left stale by an undo cannot be refreshed
        """
        target_score = settings.default_target_score if target_score is None else target_score
        max_iterations = settings.max_auto_iterations if max_iterations is None else max_iterations
        if not 0 <= target_score <= 100:
            raise ValidationError(f"target_score must be in [0, 100], got {target_score}", idea_id=idea_id)
        if max_iterations < 0:
            raise ValidationError(f"max_iterations must be >= 0, got {max_iterations}", idea_id=idea_id)
        ceiling = target_score if pillar_ceiling is None else pillar_ceiling

        try:
            record = self._rescore_if_stale(self.store.read(idea_id))
        except ImprovementError as e:
            raise e.locate(idea_id=idea_id)
        cost = CostController(max_cost_usd)
        max_stalled = settings.max_stalled_iterations
        iterations: List[ImprovementIteration] = []
        stalled = 0
        error: Optional[ImprovementError] = None
        notice: Optional[IterationLimitReached] = None

        logger.info(
            "Auto-improve idea %s from version %d: confidence %d, target %d, max %d iterations",
            idea_id, record.version, record.feedback.overall_confidence, target_score, max_iterations,
        )

        while True:
            if record.feedback.overall_confidence >= target_score:
                stop_reason = StopReason.TARGET_REACHED
                break
            if len(iterations) >= max_iterations:
                stop_reason = StopReason.ITERATION_LIMIT
                notice = IterationLimitReached(max_iterations, record.feedback.overall_confidence, target_score)
                break
            if cancel_token is not None and cancel_token.cancelled:
                stop_reason = StopReason.CANCELLED
                logger.warning("Auto-improve idea %s cancelled after %d iterations", idea_id, len(iterations))
                break
            if cost.is_budget_exceeded:
                stop_reason = StopReason.BUDGET_EXCEEDED
                logger.warning(
                    "Auto-improve idea %s stopped: budget $%.2f spent", idea_id, cost.max_cost_usd
                )
                break

            pillar = select_weakest_pillar(record.feedback, ceiling)
            if pillar is None:
                stop_reason = StopReason.NO_CANDIDATE
                break

            try:
                iteration, record = self._apply(
                    record, pillar, AUTO_DIRECTION, IterationSource.AUTO,
                    iteration_index=len(iterations) + 1,
                )
            except ConflictError as e:
                stop_reason, error = StopReason.CONFLICT, e
                break
            except ImprovementError as e:
                stop_reason, error = StopReason.FAILED, e
                break

            iterations.append(iteration)
            change = iteration.overall_delta.change or 0
            stalled = stalled + 1 if change <= 0 else 0
            if max_stalled is not None and stalled >= max_stalled:
                stop_reason = StopReason.STALLED
                break

        reached = record.feedback.overall_confidence >= target_score
        logger.info(
            "Auto-improve idea %s stopped (%s) at version %d after %d iterations: confidence %d",
            idea_id, stop_reason.value, record.version, len(iterations), record.feedback.overall_confidence,
        )
        return AutoImproveResult(
            idea_id=idea_id,
            final_overview=record.overview,
            final_feedback=record.feedback,
            final_version=record.version,
            iterations=iterations,
            reached_target=reached,
            stop_reason=stop_reason,
            target_score=target_score,
            max_iterations=max_iterations,
            error=error,
            notice=notice,
            cost_usd=cost.total_cost_usd,
            cost_manifest=cost.generate_manifest(),
        )

    def undo_last_improvement(
        self,
        idea_id: str,
        rescore: bool = False,
        base_version: Optional[int] = None,
    ) -> VersionedOverview:
        """Restore the previous overview.

        Feedback is left stale unless ``rescore`` is set, in which case the
        restored overview is scored and its feedback refreshed.

        Raises:
            EmptyUndoError: If there is nothing to undo
            ConflictError: If base_version is stale
            ScoringError: If rescoring fails; the undo itself stays committed
        """
        try:
            record = self.store.undo(idea_id, base_version)
            self._clear_directions(idea_id)
            if rescore:
                feedback = self._score(record.overview, record.context)
                record = self.store.refresh_feedback(idea_id, record.version, feedback)
            return record
        except ImprovementError as e:
            raise e.locate(idea_id=idea_id)

    def get_history(self, idea_id: str) -> List[ImprovementIteration]:
        """Committed iterations, newest first."""
        return self.store.get_history(idea_id, newest_first=True)

    # -- internals -----------------------------------------------------------

    def _read(self, idea_id: str, pillar: PillarId) -> VersionedOverview:
        try:
            return self.store.read(idea_id)
        except ImprovementError as e:
            raise e.locate(pillar=pillar.value)

    def _rescore_if_stale(self, record: VersionedOverview) -> VersionedOverview:
        """Score an overview restored by undo before anything reads its feedback."""
        if not record.feedback_stale:
            return record
        logger.info("Idea %s: re-scoring restored overview at version %d", record.idea_id, record.version)
        feedback = self._score(record.overview, record.context)
        return self.store.refresh_feedback(record.idea_id, record.version, feedback)

    def _pending_direction(
        self,
        record: VersionedOverview,
        pillar: PillarId,
        direction_id: str,
    ) -> ImprovementDirection:
        session = self._session(record.idea_id, pillar)
        if session.state != RefinementState.DIRECTIONS_READY or not session.directions:
            raise ValidationError(
                "No directions listed for this pillar; list directions first",
                idea_id=record.idea_id, pillar=pillar.value,
            )
        if session.base_version != record.version:
            self._transition(record.idea_id, pillar, RefinementState.IDLE, directions=[], base_version=None)
            raise ConflictError(
                "Idea changed since directions were listed",
                expected_version=session.base_version,
                actual_version=record.version,
                idea_id=record.idea_id, pillar=pillar.value,
            )
        for direction in session.directions:
            if direction.id == direction_id:
                return direction
        raise ValidationError(
            f"Unknown direction id {direction_id!r}; expected one of "
            f"{[d.id for d in session.directions]} or {AUTO_DIRECTION!r}",
            idea_id=record.idea_id, pillar=pillar.value,
        )

    def _propose(self, record: VersionedOverview, pillar: PillarId) -> List[ImprovementDirection]:
        try:
            directions = self.generation_service.propose_directions(
                record.overview, pillar, record.context, record.feedback
            )
        except ImprovementError:
            raise
        except Exception as e:
            raise GenerationError(f"Direction proposal failed: {e}") from e

        if not directions:
            raise GenerationError("Generation service returned zero directions")
        try:
            return [ImprovementDirection.model_validate(d) for d in directions]
        except PydanticValidationError as e:
            raise GenerationError(f"Unusable directions: {e.error_count()} validation error(s)") from e

    def _rewrite(
        self,
        record: VersionedOverview,
        pillar: PillarId,
        direction: Union[ImprovementDirection, str],
    ) -> Overview:
        try:
            rewritten = self.generation_service.apply_direction(
                record.overview, pillar, direction, record.context, record.feedback
            )
        except ImprovementError:
            raise
        except Exception as e:
            raise GenerationError(f"Rewrite failed: {e}") from e
        return self._ensure_overview(rewritten)

    def _score(self, overview: Overview, context: IdeaContext) -> FeedbackSnapshot:
        try:
            feedback = self.generation_service.score_overview(overview, context)
        except ImprovementError:
            raise
        except Exception as e:
            raise ScoringError(f"Scoring failed: {e}") from e

        if feedback is None:
            raise ScoringError("Scoring returned no feedback")
        try:
            data = feedback.model_dump() if isinstance(feedback, FeedbackSnapshot) else feedback
            return FeedbackSnapshot.model_validate(data)
        except PydanticValidationError as e:
            raise ScoringError(f"Incomplete or inconsistent scores: {e.error_count()} validation error(s): {e}") from e

    @staticmethod
    def _ensure_overview(value) -> Overview:
        """Re-validate so that partially built overviews are rejected."""
        if value is None:
            raise ValidationError("Rewrite returned no overview")
        try:
            data = value.model_dump() if isinstance(value, Overview) else value
            return Overview.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Incomplete overview: {e.error_count()} validation error(s): {e}") from e

    def _apply(
        self,
        record: VersionedOverview,
        pillar: PillarId,
        direction: Union[ImprovementDirection, str],
        source: IterationSource,
        iteration_index: Optional[int] = None,
    ) -> Tuple[ImprovementIteration, VersionedOverview]:
        """Rewrite, re-score and commit against ``record.version``; all or nothing."""
        idea_id = record.idea_id
        self._transition(idea_id, pillar, RefinementState.APPLYING)
        try:
            rewritten = self._rewrite(record, pillar, direction)
            feedback = self._score(rewritten, record.context)
            try:
                iteration = ImprovementIteration(
                    pillar_impacted=pillar,
                    score_delta=delta(record.feedback, feedback),
                    section_diffs=diff(record.overview, rewritten, fallback=True),
                    resulting_overview=rewritten,
                    resulting_feedback=feedback,
                    source=source,
                    direction=direction if isinstance(direction, ImprovementDirection) else None,
                )
            except PydanticValidationError as e:
                raise ValidationError(f"Inconsistent iteration: {e}") from e
            committed = self.store.commit(idea_id, record.version, rewritten, feedback, iteration)
        except ImprovementError as e:
            self._transition(idea_id, pillar, RefinementState.FAILED, directions=[], base_version=None)
            logger.warning("Refinement of %s failed for idea %s: %s", pillar.value, idea_id, e.message)
            raise e.locate(idea_id=idea_id, pillar=pillar.value, iteration=iteration_index)

        self._transition(idea_id, pillar, RefinementState.COMMITTED, directions=[], base_version=None)
        self._clear_directions(idea_id)
        stamped = committed.history[-1]
        logger.info(
            "Idea %s %s %+d, overall %+d (version %d)",
            idea_id, pillar.value,
            stamped.target_delta.change or 0, stamped.overall_delta.change or 0, committed.version,
        )
        return stamped, committed
