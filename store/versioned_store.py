"""Versioned Overview Store.

Holds the single authoritative state per idea and accepts or rejects proposed
next states with optimistic concurrency. commit, undo and refresh_feedback are
the only mutation points; each builds a complete next record and writes it in
one compare-and-swap, so no reader sees a version paired with the wrong
overview, feedback or history.
"""

import logging
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from contracts import (
    Overview,
    FeedbackSnapshot,
    IdeaContext,
    ImprovementIteration,
    VersionedOverview,
    ValidationError,
    ConflictError,
    EmptyUndoError,
    IdeaNotFoundError,
)
from store.persistence import PersistenceBackend, InMemoryPersistence

logger = logging.getLogger(__name__)


class VersionedOverviewStore:
    """Optimistic-concurrency store of VersionedOverview records."""

    def __init__(self, backend: Optional[PersistenceBackend] = None):
        """Initialize the store.

        Args:
            backend: Persistence backend; defaults to an in-memory backend
        """
        self.backend = backend or InMemoryPersistence()

    def create(
        self,
        idea_id: str,
        overview: Overview,
        feedback: FeedbackSnapshot,
        context: Optional[IdeaContext] = None,
    ) -> VersionedOverview:
        """Create the record for an idea that has just received a scored overview.

        Raises:
            ValidationError: If the idea already exists or the inputs are malformed
        """
        record = self._build(
            idea_id=idea_id,
            version=1,
            overview=overview,
            feedback=feedback,
            context=context or IdeaContext(),
            history=[],
            undo_stack=[],
            feedback_stale=False,
        )
        if not self.backend.compare_and_swap(idea_id, None, record):
            raise ValidationError(f"Idea already exists: {idea_id}", idea_id=idea_id)
        logger.info("Created idea %s at version 1 (confidence %d)", idea_id, feedback.overall_confidence)
        return record

    def exists(self, idea_id: str) -> bool:
        return self.backend.load(idea_id) is not None

    def read(self, idea_id: str) -> VersionedOverview:
        """Return the current record.

        Raises:
            IdeaNotFoundError: If the idea has no record
        """
        record = self.backend.load(idea_id)
        if record is None:
            raise IdeaNotFoundError(f"No overview stored for idea {idea_id}", idea_id=idea_id)
        return record

    def get_history(self, idea_id: str, newest_first: bool = True) -> List[ImprovementIteration]:
        """Committed iterations, newest first for display or oldest first for replay."""
        record = self.read(idea_id)
        return record.history_newest_first() if newest_first else list(record.history)

    def commit(
        self,
        idea_id: str,
        base_version: int,
        next_overview: Overview,
        next_feedback: FeedbackSnapshot,
        iteration: ImprovementIteration,
    ) -> VersionedOverview:
        """Commit a new version computed from ``base_version``.

        On success the current overview is pushed onto the undo stack, overview
        and feedback are replaced, the iteration is appended to history and the
        version increments by one.

        Raises:
            ConflictError: If base_version is not the current version; nothing is written
            ValidationError: If the proposed state is malformed; nothing is written
        """
        current = self.read(idea_id)
        self._check_version(current, base_version, "commit")
        if iteration.resulting_overview != next_overview or iteration.resulting_feedback != next_feedback:
            raise ValidationError(
                "Iteration result does not match the committed overview and feedback",
                idea_id=idea_id,
            )

        new_version = current.version + 1
        stamped = iteration.model_copy(update={"version": new_version})
        record = self._build(
            idea_id=idea_id,
            version=new_version,
            overview=next_overview,
            feedback=next_feedback,
            context=current.context,
            history=[*current.history, stamped],
            undo_stack=[*current.undo_stack, current.overview],
            feedback_stale=False,
        )
        self._swap(idea_id, current.version, record, "commit")
        logger.info(
            "Committed idea %s version %d -> %d (pillar %s, confidence %d)",
            idea_id, current.version, new_version,
            iteration.pillar_impacted.value, next_feedback.overall_confidence,
        )
        return record

    def undo(self, idea_id: str, base_version: Optional[int] = None) -> VersionedOverview:
        """Restore the most recent overview from the undo stack.

        Feedback is left as is and flagged stale; callers re-score if needed.
        The version increments because undo is itself a state transition.

        Args:
            idea_id: Idea identifier
            base_version: Version the caller read; defaults to the current version

        Raises:
            EmptyUndoError: If there is nothing to revert
            ConflictError: If base_version is stale or another writer got in first
        """
        current = self.read(idea_id)
        if base_version is not None:
            self._check_version(current, base_version, "undo")
        if not current.undo_stack:
            raise EmptyUndoError(f"Nothing to undo for idea {idea_id}", idea_id=idea_id)

        restored = current.undo_stack[-1]
        record = self._build(
            idea_id=idea_id,
            version=current.version + 1,
            overview=restored,
            feedback=current.feedback,
            context=current.context,
            history=list(current.history),
            undo_stack=list(current.undo_stack[:-1]),
            feedback_stale=True,
        )
        self._swap(idea_id, current.version, record, "undo")
        logger.info("Undid idea %s version %d -> %d", idea_id, current.version, record.version)
        return record

    def refresh_feedback(
        self,
        idea_id: str,
        base_version: int,
        feedback: FeedbackSnapshot,
    ) -> VersionedOverview:
        """Replace feedback for the current overview without touching history.

        Raises:
            ConflictError: If base_version is not the current version
        """
        current = self.read(idea_id)
        self._check_version(current, base_version, "refresh_feedback")
        record = self._build(
            idea_id=idea_id,
            version=current.version + 1,
            overview=current.overview,
            feedback=feedback,
            context=current.context,
            history=list(current.history),
            undo_stack=list(current.undo_stack),
            feedback_stale=False,
        )
        self._swap(idea_id, current.version, record, "refresh_feedback")
        logger.info("Refreshed feedback for idea %s at version %d", idea_id, record.version)
        return record

    def _check_version(self, current: VersionedOverview, base_version: int, operation: str) -> None:
        if base_version != current.version:
            logger.warning(
                "Rejected %s on idea %s: base version %d, current %d",
                operation, current.idea_id, base_version, current.version,
            )
            raise ConflictError(
                f"Stale base version for {operation}: expected {current.version}, got {base_version}",
                expected_version=base_version,
                actual_version=current.version,
                idea_id=current.idea_id,
            )

    def _swap(self, idea_id: str, expected_version: int, record: VersionedOverview, operation: str) -> None:
        if not self.backend.compare_and_swap(idea_id, expected_version, record):
            latest = self.backend.load(idea_id)
            actual = latest.version if latest is not None else None
            logger.warning(
                "Lost %s race on idea %s: expected version %d, found %s",
                operation, idea_id, expected_version, actual,
            )
            raise ConflictError(
                f"Concurrent write during {operation}",
                expected_version=expected_version,
                actual_version=actual,
                idea_id=idea_id,
            )

    def _build(self, **fields) -> VersionedOverview:
        try:
            return VersionedOverview.model_validate({**fields, "updated_at": datetime.now()})
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid versioned overview: {e.error_count()} validation error(s): {e}",
                idea_id=fields.get("idea_id"),
            ) from e
