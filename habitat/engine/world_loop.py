"""WorldLoop — the authoritative tick pipeline.

Phase cycle, in this fixed order:
  1. Reset — scheduler per-tick counters
  2. Contexts — one PlanningContext per eligible agent
  3. Planning — one plan per eligible agent via the BatchScheduler
  4. Mediation — winning actions, conflicts and logs from the Mediator
  5. Application — winning actions under physical rate limits
  6. Logging — mediator entries appended to the bounded event log
  7. Metrics — harmony and resource usage
  8. Statuses — idle / acting / conflict
  9. Director — band control on conflict and cooperation frequency

Any failure in phases 2-9 rolls the world back to the state it had before
phase 2, applies passive drift instead, and logs ``agent_loop_error``.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import TYPE_CHECKING

from habitat.core.context import ContextLookupError, build_context
from habitat.core.enums import AgentStatus, EventKind
from habitat.core.snapshot import Snapshot
from habitat.engine.physics import (
    UnknownActionError,
    apply_action,
    apply_intervention,
    apply_passive_drift,
    clamp,
)
from habitat.planning.admission import LAST_TEMPERATURE_KEY
from habitat.planning.scheduler import priority_score

if TYPE_CHECKING:
    from habitat.config import SimulationConfig
    from habitat.core.context import PlanningContext
    from habitat.core.world_state import WorldState
    from habitat.engine.director import Director
    from habitat.engine.mediator import Mediator, MediationResult
    from habitat.planning.scheduler import BatchScheduler, PlanResult
    from habitat.systems.rng import DeterministicRNG
    from habitat.utils.event_log import WorldEvent

logger = logging.getLogger(__name__)


class WorldLoop:
    """The heartbeat of the simulation.

    Sole writer of WorldState. The scheduler, mediator and director are
    injected so each can be replaced independently (tests use fakes).
    """

    __slots__ = (
        "_config",
        "_world",
        "_scheduler",
        "_mediator",
        "_director",
        "_rng",
        "_last_results",
        "_last_mediation",
        "_tick_events",
        "_failed_ticks",
    )

    def __init__(
        self,
        config: SimulationConfig,
        world: WorldState,
        scheduler: BatchScheduler,
        mediator: Mediator,
        director: Director,
        rng: DeterministicRNG,
    ) -> None:
        self._config = config
        self._world = world
        self._scheduler = scheduler
        self._mediator = mediator
        self._director = director
        self._rng = rng
        self._last_results: dict[str, PlanResult] = {}
        self._last_mediation: MediationResult | None = None
        self._tick_events: list[WorldEvent] = []
        self._failed_ticks = 0

    @property
    def world(self) -> WorldState:
        return self._world

    @property
    def scheduler(self) -> BatchScheduler:
        return self._scheduler

    @property
    def last_results(self) -> dict[str, PlanResult]:
        """Plan obtained for each eligible agent during the most recent tick."""
        return self._last_results

    @property
    def last_mediation(self) -> MediationResult | None:
        return self._last_mediation

    @property
    def tick_events(self) -> list[WorldEvent]:
        """Events logged during the most recent tick."""
        return self._tick_events

    @property
    def failed_ticks(self) -> int:
        return self._failed_ticks

    def tick_once(self) -> bool:
        """Execute a single tick. Returns False once max_ticks is reached."""
        if self._world.tick >= self._config.max_ticks:
            logger.info("Tick %d: Max ticks reached.", self._world.tick)
            return False

        self._step()
        self._world.tick += 1
        self._world.time_sec += self._config.tick_seconds
        return True

    def create_snapshot(self) -> Snapshot:
        """Create an immutable snapshot of the current world state."""
        return Snapshot.from_world(self._world)

    def run(self, max_ticks: int | None = None) -> None:
        """Execute ticks until *max_ticks* (default: config.max_ticks)."""
        limit = self._config.max_ticks if max_ticks is None else min(max_ticks, self._config.max_ticks)
        logger.info("=== Simulation started (seed=%d) ===", self._world.seed)

        while self._world.tick < limit:
            if not self.tick_once():
                break
            if self._world.tick % 50 == 0:
                stats = self._scheduler.stats()
                logger.info(
                    "Tick %d: health=%.2f power=%.2fkW dispatched=%d cache_hit_rate=%.2f",
                    self._world.tick, self._world.health, self._world.resources.power_kw,
                    stats.dispatched_total, stats.cache_hit_rate,
                )

        logger.info("=== Simulation finished at tick %d ===", self._world.tick)

    def _step(self) -> None:
        world = self._world
        tick = world.tick
        t0 = time.perf_counter()

        # --- Phase 1: Reset ---
        self._scheduler.begin_tick(tick)
        checkpoint = world.checkpoint()

        try:
            self._pipeline(tick)
        except Exception as exc:
            self._failed_ticks += 1
            logger.exception("Tick %d: pipeline failed — rolling back and applying passive drift", tick)
            world.restore(checkpoint)
            self._last_results = {}
            self._last_mediation = None
            apply_passive_drift(world, self._rng)
            world.log(EventKind.AGENT_LOOP_ERROR, data={
                "tick": tick,
                "error": str(exc),
                "error_type": type(exc).__name__,
            })

        elapsed = time.perf_counter() - t0
        if tick % self._config.stats_interval == 0:
            stats = self._scheduler.stats().as_dict()
            stats["tick_ms"] = round(elapsed * 1000.0, 3)
            world.log(EventKind.PERFORMANCE_STATS, data=stats)

        self._tick_events = world.events.since(world.time_sec)
        logger.debug("Tick %d: total=%.4fs events=%d", tick, elapsed, len(self._tick_events))

    def _pipeline(self, tick: int) -> None:
        world = self._world

        # --- Phase 2: Contexts ---
        contexts = self._phase_contexts(tick)

        # --- Phase 3: Planning ---
        # Highest priority first; ties keep registration order
        recent = self._config.recent_message_seconds
        ordered = sorted(contexts.items(), key=lambda item: -priority_score(item[1], recent))
        planned: dict[str, PlanResult] = {}
        for agent_id, context in ordered:
            agent = world.agents[agent_id]
            result = self._scheduler.plan(context, agent, tick)
            planned[agent_id] = result
            if result.inferred:
                agent.memory[LAST_TEMPERATURE_KEY] = context.room.temperature
        self._scheduler.settle()
        results = {agent_id: planned[agent_id] for agent_id in contexts}
        self._last_results = results

        if results:
            routes = Counter(r.route for r in results.values())
            logger.debug("Tick %d: plans %s", tick, dict(routes))

        # --- Phase 4: Mediation ---
        mediation = self._mediator.resolve([(aid, r.plan) for aid, r in results.items()], world)
        self._last_mediation = mediation

        # --- Phase 5: Application ---
        acted = self._phase_apply(mediation, tick)

        # --- Phase 6: Logging ---
        world.events.append_many(mediation.logs)

        # --- Phase 7: Metrics ---
        self._update_derived_metrics()

        # --- Phase 8: Statuses ---
        for agent in world.agents.values():
            agent.status = AgentStatus.IDLE
        for agent_id in acted:
            world.agents[agent_id].status = AgentStatus.ACTING
        for conflict in mediation.conflicts:
            loser = world.agents.get(conflict.loser)
            if loser is not None:
                loser.status = AgentStatus.CONFLICT

        # --- Phase 9: Director ---
        for intervention in self._director.evaluate(world):
            apply_intervention(world, intervention, self._config)
            world.log(EventKind.DIRECTOR_EVENT, room=intervention.room, data=intervention.event_data())

    # -- phases --

    def _phase_contexts(self, tick: int) -> dict[str, PlanningContext]:
        admission = self._scheduler.admission
        contexts: dict[str, PlanningContext] = {}
        for agent_id, agent in self._world.agents.items():
            try:
                context = build_context(agent_id, self._world)
            except ContextLookupError as exc:
                logger.debug("Tick %d: skipping %s: %s", tick, agent_id, exc)
                continue
            if admission.should_plan(agent) or admission.requires_inference(context, agent, tick):
                contexts[agent_id] = context
        return contexts

    def _phase_apply(self, mediation: MediationResult, tick: int) -> set[str]:
        """Apply winning actions; returns the ids of agents that acted."""
        world = self._world
        acted: set[str] = set()
        for agent_id, action in mediation.actions:
            agent = world.agents.get(agent_id)
            room = world.rooms.get(agent.room) if agent is not None else None
            if agent is None or room is None:
                logger.debug("Tick %d: no agent/room for action %s from %s", tick, action.name, agent_id)
                continue
            try:
                change = apply_action(agent, room, action, self._config)
            except UnknownActionError as exc:
                logger.info("Tick %d: rejected action: %s", tick, exc)
                continue
            acted.add(agent_id)
            logger.debug("Tick %d: %s %s %s: %s → %s", tick, agent_id, change.kind.action_name,
                         change.field, change.before, change.after)
        return acted

    def _update_derived_metrics(self) -> None:
        world = self._world
        cfg = self._config
        since = world.time_sec - cfg.metrics_window_seconds
        cooperation = world.events.count_since(EventKind.COOPERATION, since)
        conflicts = world.events.count_since(EventKind.CONFLICT_RESOLVED, since)
        world.health = clamp(
            world.health
            + cfg.cooperation_weight * cooperation
            - cfg.conflict_weight * conflicts
            + cfg.health_recovery,
            0.0, 1.0,
        )
        world.resources.power_kw = cfg.base_power_kw + cfg.power_per_acting_kw * world.acting_count()
