"""Cost controller for tracking and limiting API usage costs.

Reads from EngineCostLogger (LiteLLM callback); provides budget checks and per-run manifests.
"""

from typing import Dict, Optional, Any

from config import settings
from providers.cost_logger import get_cost_logger


class CostController:
    """Thin reporting layer over EngineCostLogger for one run.

    The logger is shared by the whole process, so the controller records the
    running total at construction and reports only what was spent since.
    """

    def __init__(self, max_cost_usd: Optional[float] = None):
        """Initialize the cost controller for a new run."""
        self.max_cost_usd = max_cost_usd if max_cost_usd is not None else settings.max_cost_per_run_usd
        logger = get_cost_logger()
        self._baseline_cost = logger.total_cost
        self._baseline_calls = len(logger.calls)

    @property
    def total_cost_usd(self) -> float:
        """Cost in USD spent since this controller was created."""
        return max(0.0, get_cost_logger().total_cost - self._baseline_cost)

    @property
    def is_budget_exceeded(self) -> bool:
        """Check if budget has been exceeded."""
        return self.total_cost_usd >= self.max_cost_usd

    def _calls(self) -> list:
        return get_cost_logger().calls[self._baseline_calls:]

    def get_cost_by_agent(self) -> Dict[str, float]:
        """Get cost breakdown by agent from the logger's call records."""
        costs: Dict[str, float] = {}
        for c in self._calls():
            agent = c.get("agent", "unknown")
            costs[agent] = costs.get(agent, 0) + float(c.get("cost", 0))
        return costs

    def generate_manifest(self) -> Dict[str, Any]:
        """Generate a cost manifest for this run."""
        total = self.total_cost_usd
        return {
            "summary": {
                "total_cost_usd": round(total, 4),
                "max_budget_usd": self.max_cost_usd,
                "budget_used_percent": round(
                    (total / self.max_cost_usd * 100) if self.max_cost_usd > 0 else 0, 1
                ),
                "budget_exceeded": self.is_budget_exceeded,
            },
            "by_agent": {k: round(v, 4) for k, v in self.get_cost_by_agent().items()},
            "detailed_records": [
                {
                    "agent": c.get("agent", "unknown"),
                    "idea": c.get("idea", "-"),
                    "model": c.get("model", "unknown"),
                    "cost_usd": round(float(c.get("cost", 0)), 4),
                }
                for c in self._calls()
            ],
        }
