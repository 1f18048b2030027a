"""Pure scoring and diffing functions used by the orchestrator."""

from .score_aggregator import aggregate, build_snapshot, delta
from .section_diff import diff, section_text, overview_to_text, has_real_changes, SECTION_ORDER

__all__ = [
    "aggregate",
    "build_snapshot",
    "delta",
    "diff",
    "section_text",
    "overview_to_text",
    "has_real_changes",
    "SECTION_ORDER",
]
