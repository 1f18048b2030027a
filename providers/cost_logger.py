"""LiteLLM cost tracking callback."""

import logging
import threading

import litellm
from litellm.integrations.custom_logger import CustomLogger

logger = logging.getLogger(__name__)


class EngineCostLogger(CustomLogger):
    """Tracks per-call cost and running total across engine calls."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.total_cost = 0.0
        self.calls = []
        self._lock = threading.Lock()

    def log_success_event(self, kwargs, response_obj, start_time, end_time):
        cost = 0.0
        if response_obj is not None:
            hidden = getattr(response_obj, "_hidden_params", None) or {}
            cost = float(hidden.get("response_cost", 0) or 0)
        litellm_params = kwargs.get("litellm_params") or {}
        meta = (litellm_params.get("metadata") or kwargs.get("metadata") or {})
        if not isinstance(meta, dict):
            meta = {}
        model = kwargs.get("model", "unknown")
        agent = meta.get("agent", "unknown")
        idea = meta.get("idea", "-")
        logger.debug("[%s idea:%s %s] -> $%.4f", agent, idea, model, cost)
        with self._lock:
            self.total_cost += cost
            self.calls.append({"agent": agent, "idea": idea, "model": model, "cost": cost})

    def reset(self):
        with self._lock:
            self.total_cost = 0.0
            self.calls = []


# Singleton for the cost controller to read
_cost_logger = None


def get_cost_logger() -> EngineCostLogger:
    """Return the global EngineCostLogger instance (create and register if needed)."""
    global _cost_logger
    if _cost_logger is None:
        _cost_logger = EngineCostLogger()
        if not litellm.callbacks:
            litellm.callbacks = []
        if _cost_logger not in litellm.callbacks:
            litellm.callbacks.append(_cost_logger)
    return _cost_logger
