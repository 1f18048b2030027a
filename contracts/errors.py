"""Error taxonomy for the improvement engine.

Every failure raised by the engine derives from ImprovementError and carries
enough location data (idea, pillar, iteration) to tell the caller where it
happened.
"""

from typing import Optional


class ImprovementError(Exception):
    """Base class for all engine failures."""

    def __init__(
        self,
        message: str,
        idea_id: Optional[str] = None,
        pillar: Optional[str] = None,
        iteration: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.idea_id = idea_id
        self.pillar = pillar
        self.iteration = iteration

    def locate(
        self,
        idea_id: Optional[str] = None,
        pillar: Optional[str] = None,
        iteration: Optional[int] = None,
    ) -> "ImprovementError":
        """Fill in location fields that are still unset and return self."""
        if self.idea_id is None:
            self.idea_id = idea_id
        if self.pillar is None:
            self.pillar = pillar
        if self.iteration is None:
            self.iteration = iteration
        return self

    def __str__(self) -> str:
        where = []
        if self.idea_id is not None:
            where.append(f"idea={self.idea_id}")
        if self.pillar is not None:
            where.append(f"pillar={self.pillar}")
        if self.iteration is not None:
            where.append(f"iteration={self.iteration}")
        if not where:
            return self.message
        return f"{self.message} [{', '.join(where)}]"


class ValidationError(ImprovementError):
    """Malformed Overview, FeedbackSnapshot or request; rejected before mutation."""


class GenerationError(ImprovementError):
    """Content generation was unreachable or returned unusable output."""


class ScoringError(ImprovementError):
    """Scoring failed or returned an incomplete pillar set."""


class ConflictError(ImprovementError):
    """Optimistic version mismatch on commit or undo."""

    def __init__(
        self,
        message: str,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.expected_version = expected_version
        self.actual_version = actual_version


class EmptyUndoError(ImprovementError):
    """Undo requested with nothing to revert."""


class IdeaNotFoundError(ImprovementError):
    """No versioned overview exists for the idea."""


class IterationLimitReached:
    """Informational notice: auto-improve stopped at its iteration cap.

    Not an exception. Attached to AutoImproveResult.notice so callers can tell
    an exhausted budget apart from a failure.
    """

    def __init__(self, max_iterations: int, overall_confidence: int, target_score: int):
        self.max_iterations = max_iterations
        self.overall_confidence = overall_confidence
        self.target_score = target_score

    def __str__(self) -> str:
        return (
            f"Iteration limit of {self.max_iterations} reached at overall confidence "
            f"{self.overall_confidence} (target {self.target_score})"
        )

    def __repr__(self) -> str:
        return f"IterationLimitReached({self})"
