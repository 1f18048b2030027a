"""Orchestrator module for improvement execution control."""

from .cost_controller import CostController
from .improvement_orchestrator import (
    ImprovementOrchestrator,
    RefinementState,
    RefinementResult,
    AutoImproveResult,
    StopReason,
    CancellationToken,
    select_weakest_pillar,
)

__all__ = [
    "CostController",
    "ImprovementOrchestrator",
    "RefinementState",
    "RefinementResult",
    "AutoImproveResult",
    "StopReason",
    "CancellationToken",
    "select_weakest_pillar",
]
