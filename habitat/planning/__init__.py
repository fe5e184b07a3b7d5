"""Planning layer: admission, caching, batching, inference and heuristic fallback."""

from habitat.planning.admission import AdmissionPolicy
from habitat.planning.backend import InferenceError, OllamaBackend, parse_plan
from habitat.planning.cache import ResponseCache
from habitat.planning.heuristics import heuristic_plan
from habitat.planning.scheduler import BatchScheduler, PlanResult, Route

__all__ = [
    "AdmissionPolicy",
    "BatchScheduler",
    "InferenceError",
    "OllamaBackend",
    "PlanResult",
    "ResponseCache",
    "Route",
    "heuristic_plan",
    "parse_plan",
]
