"""BatchScheduler — per-tick admission control for inference calls.

Per planning request, in order:
  1. Admission Policy says no → heuristic plan, zero inference cost
  2. Cache hit → reuse the cached plan
  3. Per-tick admission budget exhausted → heuristic plan
  4. Otherwise enqueue with a priority score and, if a flush is due,
     dispatch the highest-priority pending requests concurrently

A request that is queued but not part of a flush gets a heuristic plan
straight away. Its inference result, if ``settle()`` later dispatches it,
goes into the cache for future ticks and never replaces the plan already
handed out this tick.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from habitat.core.models import AgentPlan
from habitat.planning.heuristics import heuristic_plan
from habitat.planning.worker_pool import WorkerPool

if TYPE_CHECKING:
    from habitat.config import SimulationConfig
    from habitat.core.context import PlanningContext
    from habitat.core.models import AgentRuntime
    from habitat.planning.admission import AdmissionPolicy
    from habitat.planning.backend import InferenceBackend
    from habitat.planning.cache import ResponseCache

logger = logging.getLogger(__name__)

CONFLICT_PRIORITY = 100
CRITICAL_GOAL_PRIORITY = 50
RECENT_MESSAGE_PRIORITY = 10
CRITICAL_GOAL_FRAGMENTS = ("safety", "temperature")


class Route:
    """How a plan was obtained; reported with every PlanResult."""

    SKIPPED = "skipped"
    DISABLED = "disabled"
    CACHE = "cache"
    OVER_BUDGET = "over_budget"
    DEFERRED = "deferred"
    INFERENCE = "inference"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class PendingRequest:
    request_id: str
    context: PlanningContext
    priority: int
    enqueued_at: float
    sequence: int


@dataclass(frozen=True, slots=True)
class PlanResult:
    plan: AgentPlan
    route: str

    @property
    def inferred(self) -> bool:
        return self.route in (Route.INFERENCE, Route.CACHE)


@dataclass(frozen=True, slots=True)
class SchedulerStats:
    cache_size: int
    cache_hit_rate: float
    pending_requests: int
    calls_this_tick: int
    current_tick: int
    dispatched_total: int
    failures_total: int
    cache_hits_total: int
    heuristic_total: int

    def as_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def priority_score(context: PlanningContext, recent_seconds: float = 60.0) -> int:
    """Higher is serviced first.

    100 for a conflict signal, 50 per safety/temperature goal, 10 per
    message received within *recent_seconds*.
    """
    score = CONFLICT_PRIORITY if context.has_conflict_signal() else 0
    score += CRITICAL_GOAL_PRIORITY * sum(
        1 for name, _ in context.capability.goals
        if any(fragment in name for fragment in CRITICAL_GOAL_FRAGMENTS)
    )
    score += RECENT_MESSAGE_PRIORITY * sum(
        1 for m in context.messages if context.world_time - m.at < recent_seconds
    )
    return score


class BatchScheduler:
    """Owns the response cache, the pending queue and the per-tick counters.

    Constructed explicitly and handed to the WorldLoop; nothing about it is
    module-global, so tests can run several side by side.
    """

    __slots__ = (
        "_config",
        "_admission",
        "_cache",
        "_backend",
        "_pool",
        "_clock",
        "_cap",
        "_window",
        "_pending",
        "_sequence",
        "_tick",
        "_admitted_this_tick",
        "_calls_this_tick",
        "_last_flush_at",
        "_dispatched_total",
        "_failures_total",
        "_cache_hits_total",
        "_heuristic_total",
    )

    def __init__(
        self,
        config: SimulationConfig,
        admission: AdmissionPolicy,
        cache: ResponseCache,
        backend: InferenceBackend | None,
        pool: WorkerPool | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._admission = admission
        self._cache = cache
        self._backend = backend
        self._cap = max(1, config.max_calls_per_tick)
        self._pool = pool or WorkerPool(self._cap, config.dispatch_timeout_seconds)
        self._clock = clock
        self._window = config.batch_window_seconds
        self._pending: list[PendingRequest] = []
        self._sequence = 0
        self._tick = 0
        self._admitted_this_tick = 0
        self._calls_this_tick = 0
        self._last_flush_at: float | None = None
        self._dispatched_total = 0
        self._failures_total = 0
        self._cache_hits_total = 0
        self._heuristic_total = 0

    # -- public properties --

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def admission(self) -> AdmissionPolicy:
        return self._admission

    @property
    def max_calls_per_tick(self) -> int:
        return self._cap

    @property
    def calls_this_tick(self) -> int:
        return self._calls_this_tick

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def inference_enabled(self) -> bool:
        return self._backend is not None

    # -- tick lifecycle --

    def begin_tick(self, tick: int) -> None:
        """Reset per-tick counters and drop anything left over from the last tick."""
        if self._pending:
            logger.debug("Tick %d: dropping %d stale pending requests", tick, len(self._pending))
            self._pending.clear()
        self._tick = tick
        self._admitted_this_tick = 0
        self._calls_this_tick = 0

    def plan(self, context: PlanningContext, agent: AgentRuntime, tick: int) -> PlanResult:
        """Return exactly one plan for *agent* this tick, never blocking past a flush."""
        if not self._admission.requires_inference(context, agent, tick):
            return self._heuristic(context, Route.SKIPPED)

        if self._backend is None:
            return self._heuristic(context, Route.DISABLED)

        cached = self._cache.get(context.fingerprint)
        if cached is not None:
            self._cache_hits_total += 1
            return PlanResult(dataclasses.replace(cached, source=Route.CACHE), Route.CACHE)

        if self._admitted_this_tick >= self._cap:
            return self._heuristic(context, Route.OVER_BUDGET)

        request = self._enqueue(context)
        if not self._ready_to_flush():
            return self._heuristic(context, Route.DEFERRED)

        outcome = self._flush().get(request.request_id)
        if outcome is None:
            # Outranked by earlier requests; stays queued for settle().
            return self._heuristic(context, Route.DEFERRED)
        return outcome

    def settle(self) -> list[str]:
        """Dispatch what is still queued, within this tick's remaining budget.

        Successful results are cached for later ticks only. Returns the
        request ids whose plans were cached. Anything that did not fit the
        budget is dropped.
        """
        if not self._pending:
            return []
        results = self._flush()
        cached = [rid for rid, result in results.items() if result.route == Route.INFERENCE]
        if self._pending:
            logger.debug("Tick %d: %d deferred requests over budget, dropped",
                         self._tick, len(self._pending))
            self._pending.clear()
        if cached:
            logger.debug("Tick %d: cached %d deferred plans for later ticks", self._tick, len(cached))
        return cached

    def stats(self) -> SchedulerStats:
        return SchedulerStats(
            cache_size=len(self._cache),
            cache_hit_rate=round(self._cache.hit_rate, 4),
            pending_requests=len(self._pending),
            calls_this_tick=self._calls_this_tick,
            current_tick=self._tick,
            dispatched_total=self._dispatched_total,
            failures_total=self._failures_total,
            cache_hits_total=self._cache_hits_total,
            heuristic_total=self._heuristic_total,
        )

    def reset(self) -> None:
        self._pending.clear()
        self._cache.clear()
        self._admitted_this_tick = 0
        self._calls_this_tick = 0
        self._last_flush_at = None

    def shutdown(self) -> None:
        self._pool.shutdown()

    # -- internals --

    def _heuristic(self, context: PlanningContext, route: str) -> PlanResult:
        self._heuristic_total += 1
        return PlanResult(heuristic_plan(context), route)

    def _enqueue(self, context: PlanningContext) -> PendingRequest:
        self._sequence += 1
        request = PendingRequest(
            request_id=f"{context.agent_id}:{self._tick}:{self._sequence}",
            context=context,
            priority=priority_score(context, self._config.recent_message_seconds),
            enqueued_at=self._clock(),
            sequence=self._sequence,
        )
        self._pending.append(request)
        self._admitted_this_tick += 1
        return request

    def _ready_to_flush(self) -> bool:
        if self._admitted_this_tick >= self._cap:
            return True
        if self._last_flush_at is None:
            return True
        return self._clock() - self._last_flush_at >= self._window

    def _flush(self) -> dict[str, PlanResult]:
        """Dispatch up to the remaining budget of highest-priority requests."""
        self._last_flush_at = self._clock()
        budget = self._cap - self._calls_this_tick
        if budget <= 0 or not self._pending or self._backend is None:
            return {}

        self._pending.sort(key=lambda r: (-r.priority, r.sequence))
        batch, self._pending = self._pending[:budget], self._pending[budget:]
        self._calls_this_tick += len(batch)
        self._dispatched_total += len(batch)

        try:
            raw = self._pool.dispatch(
                [(r.request_id, r.context) for r in batch], self._backend.generate,
            )
        except Exception as exc:
            logger.warning("Tick %d: batch of %d inference calls failed: %s", self._tick, len(batch), exc)
            raw = {r.request_id: exc for r in batch}

        results: dict[str, PlanResult] = {}
        for request in batch:
            outcome = raw.get(request.request_id)
            if isinstance(outcome, AgentPlan):
                self._cache.put(request.context.fingerprint, outcome)
                results[request.request_id] = PlanResult(outcome, Route.INFERENCE)
                continue
            self._failures_total += 1
            code = getattr(outcome, "error_code", type(outcome).__name__)
            logger.warning("Inference failed for %s (%s): %s — falling back to heuristic",
                           request.context.agent_id, code, outcome)
            results[request.request_id] = self._heuristic(request.context, Route.FALLBACK)
        return results
