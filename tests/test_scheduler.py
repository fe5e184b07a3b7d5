"""Tests for the BatchScheduler.

Covers:
- Route selection: skipped, disabled, cache, over budget, deferred, inference, fallback
- Per-tick budget is never exceeded, whatever the number of admitted agents
- Cache reuse across ticks and determinism of cached plans
- Failure of one request never affects its batch siblings
- settle(): deferred requests are dispatched within the remaining budget
  and cached for later ticks only
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from habitat.core.enums import AgentStatus, EventKind
from habitat.core.models import AgentPlan, ProposedAction, RoomState
from habitat.planning.admission import AdmissionPolicy
from habitat.planning.cache import ResponseCache
from habitat.planning.scheduler import (
    CONFLICT_PRIORITY,
    CRITICAL_GOAL_PRIORITY,
    RECENT_MESSAGE_PRIORITY,
    BatchScheduler,
    Route,
    priority_score,
)
from habitat.systems.scenario import EMOTION_LAMP, SMART_AC, SMART_SOFA
from tests.helpers.household import (
    FakeBackend,
    FakeClock,
    make_agent,
    make_config,
    make_context,
    make_scheduler,
    make_world,
)

COOL_PLAN = AgentPlan(
    actions=(ProposedAction("cool", {"delta_c": -1.0}),),
    rationale="too warm",
    source="inference",
)

# deep_think_interval=6 makes tick 0 and tick 6 admit everyone
DEEP_TICK = 0
NEXT_DEEP_TICK = 6
QUIET_TICK = 1


def _world_with(n, capability=SMART_AC, **agent_kwargs):
    world = make_world({"living_room": RoomState(temperature=25.0)})
    for i in range(n):
        world.add_agent(make_agent(f"dev_{i}", capability, planning_phase=3, **agent_kwargs))
    return world


def _plan_all(scheduler, world, tick):
    scheduler.begin_tick(tick)
    results = {}
    for agent_id, agent in world.agents.items():
        results[agent_id] = scheduler.plan(make_context(world, agent_id), agent, tick)
    return results


def _warm_up(scheduler):
    """Flush once on tick 0 so the batch window is open for the next tick."""
    world = make_world()
    world.add_agent(make_agent("warm_up", SMART_AC))
    _plan_all(scheduler, world, DEEP_TICK)


class _ExplodingPool:
    def dispatch(self, batch, call):
        raise RuntimeError("executor gone")

    def shutdown(self):
        pass


class TestRoutes:
    """One PlanResult per request, with the route that produced it."""

    def test_not_admitted_is_skipped_without_cost(self):
        backend = FakeBackend()
        scheduler = make_scheduler(backend=backend)
        world = _world_with(1)
        result = _plan_all(scheduler, world, QUIET_TICK)["dev_0"]
        assert result.route == Route.SKIPPED
        assert result.plan.source == "heuristic"
        assert backend.calls == []
        assert scheduler.calls_this_tick == 0
        scheduler.shutdown()

    def test_disabled_backend_is_heuristic(self):
        scheduler = make_scheduler(backend=None)
        world = _world_with(1)
        result = _plan_all(scheduler, world, DEEP_TICK)["dev_0"]
        assert result.route == Route.DISABLED
        assert not scheduler.inference_enabled
        assert len(scheduler.cache) == 0
        scheduler.shutdown()

    def test_first_admitted_request_is_inferred(self):
        backend = FakeBackend()
        backend.script("dev_0", COOL_PLAN)
        scheduler = make_scheduler(backend=backend)
        world = _world_with(1)
        result = _plan_all(scheduler, world, DEEP_TICK)["dev_0"]
        assert result.route == Route.INFERENCE
        assert result.inferred
        assert result.plan == COOL_PLAN
        assert backend.calls == ["dev_0"]
        scheduler.shutdown()

    def test_heuristic_plan_when_deferred(self):
        clock = FakeClock()
        backend = FakeBackend()
        scheduler = make_scheduler(make_config(max_calls_per_tick=3), backend, clock)
        world = _world_with(2)
        _plan_all(scheduler, world, DEEP_TICK)

        # Same clock reading: the batch window has not elapsed
        world.rooms["living_room"].temperature = 26.0
        scheduler.begin_tick(NEXT_DEEP_TICK)
        agent = world.agents["dev_0"]
        result = scheduler.plan(make_context(world, "dev_0"), agent, NEXT_DEEP_TICK)
        assert result.route == Route.DEFERRED
        assert result.plan.source == "heuristic"
        assert scheduler.pending_count == 1
        scheduler.shutdown()


class TestBudget:
    """calls_this_tick <= max_calls_per_tick, always."""

    def test_ten_admitted_agents_two_calls(self):
        backend = FakeBackend()
        scheduler = make_scheduler(make_config(max_calls_per_tick=2), backend)
        world = _world_with(10, status=AgentStatus.CONFLICT)
        results = _plan_all(scheduler, world, QUIET_TICK)
        scheduler.settle()

        assert len(results) == 10
        assert len(backend.calls) == 2
        assert scheduler.calls_this_tick == 2
        routes = [r.route for r in results.values()]
        assert routes.count(Route.INFERENCE) == 2
        assert routes.count(Route.OVER_BUDGET) == 8
        scheduler.shutdown()

    def test_budget_holds_with_deferrals_and_settle(self):
        clock = FakeClock()
        backend = FakeBackend()
        config = make_config(max_calls_per_tick=3, batch_window_seconds=5.0)
        scheduler = make_scheduler(config, backend, clock)
        world = _world_with(8)
        for tick in range(0, 60, 6):
            _plan_all(scheduler, world, tick)
            scheduler.settle()
            assert scheduler.calls_this_tick <= 3
            world.rooms["living_room"].temperature += 0.1
            clock.advance(1.0)
        assert len(backend.calls) <= 3 * 10
        scheduler.shutdown()

    def test_counters_reset_each_tick(self):
        backend = FakeBackend()
        scheduler = make_scheduler(make_config(max_calls_per_tick=1), backend)
        world = _world_with(3)
        _plan_all(scheduler, world, DEEP_TICK)
        assert scheduler.calls_this_tick == 1
        scheduler.begin_tick(1)
        assert scheduler.calls_this_tick == 0
        assert scheduler.pending_count == 0
        scheduler.shutdown()


class TestCacheReuse:
    """Inferred plans are reused for identical contexts."""

    def test_identical_context_hits_cache_next_tick(self):
        backend = FakeBackend()
        backend.script("dev_0", COOL_PLAN)
        scheduler = make_scheduler(backend=backend)
        world = _world_with(1)
        _plan_all(scheduler, world, DEEP_TICK)
        result = _plan_all(scheduler, world, NEXT_DEEP_TICK)["dev_0"]

        assert result.route == Route.CACHE
        assert result.plan.actions == COOL_PLAN.actions
        assert result.plan.source == "cache"
        assert backend.calls_for("dev_0") == 1
        assert scheduler.stats().cache_hits_total == 1
        scheduler.shutdown()

    def test_cached_plan_is_deterministic(self):
        backend = FakeBackend()
        backend.script("dev_0", COOL_PLAN)
        scheduler = make_scheduler(backend=backend)
        world = _world_with(1)
        _plan_all(scheduler, world, DEEP_TICK)
        first = _plan_all(scheduler, world, NEXT_DEEP_TICK)["dev_0"].plan
        second = _plan_all(scheduler, world, 12)["dev_0"].plan
        assert first == second
        scheduler.shutdown()

    def test_changed_context_misses_cache(self):
        clock = FakeClock()
        backend = FakeBackend()
        scheduler = make_scheduler(backend=backend, clock=clock)
        world = _world_with(1)
        _plan_all(scheduler, world, DEEP_TICK)
        world.rooms["living_room"].temperature = 27.0
        clock.advance(1.0)
        result = _plan_all(scheduler, world, NEXT_DEEP_TICK)["dev_0"]
        assert result.route == Route.INFERENCE
        assert backend.calls_for("dev_0") == 2
        scheduler.shutdown()

    def test_expired_entry_triggers_new_call(self):
        clock = FakeClock()
        backend = FakeBackend()
        scheduler = make_scheduler(make_config(cache_ttl_seconds=300), backend, clock)
        world = _world_with(1)
        _plan_all(scheduler, world, DEEP_TICK)
        clock.advance(301)
        result = _plan_all(scheduler, world, NEXT_DEEP_TICK)["dev_0"]
        assert result.route == Route.INFERENCE
        assert backend.calls_for("dev_0") == 2
        scheduler.shutdown()

    def test_over_budget_agents_served_on_later_ticks(self):
        clock = FakeClock()
        backend = FakeBackend()
        scheduler = make_scheduler(make_config(max_calls_per_tick=2), backend, clock)
        world = _world_with(4)
        _plan_all(scheduler, world, DEEP_TICK)
        clock.advance(1.0)
        results = _plan_all(scheduler, world, NEXT_DEEP_TICK)
        routes = sorted(r.route for r in results.values())
        assert routes == [Route.CACHE, Route.CACHE, Route.INFERENCE, Route.INFERENCE]
        assert len(set(backend.calls)) == 4
        scheduler.shutdown()


class TestFailures:
    """Failures fall back to heuristics, one request at a time."""

    def test_failed_request_falls_back(self):
        backend = FakeBackend()
        backend.fail("dev_0")
        scheduler = make_scheduler(backend=backend)
        world = _world_with(1)
        result = _plan_all(scheduler, world, DEEP_TICK)["dev_0"]
        assert result.route == Route.FALLBACK
        assert result.plan.source == "heuristic"
        assert result.plan.actions[0].name == "cool"
        assert scheduler.stats().failures_total == 1
        assert len(scheduler.cache) == 0
        scheduler.shutdown()

    def test_each_failure_falls_back_separately(self):
        backend = FakeBackend()
        backend.fail("dev_0", error_code="http_status")
        backend.script("dev_1", COOL_PLAN)
        scheduler = make_scheduler(make_config(max_calls_per_tick=2), backend)
        world = _world_with(2)
        results = _plan_all(scheduler, world, DEEP_TICK)

        assert results["dev_0"].route == Route.FALLBACK
        assert results["dev_1"].route == Route.INFERENCE
        assert results["dev_1"].plan == COOL_PLAN
        scheduler.shutdown()

    def test_failure_isolated_within_one_batch(self):
        backend = FakeBackend()
        backend.fail("dev_0", error_code="http_status")
        backend.script("dev_1", COOL_PLAN)
        scheduler = make_scheduler(make_config(max_calls_per_tick=3), backend)
        world = _world_with(2)
        _warm_up(scheduler)

        # Window still open: both wait and settle() sends them as one batch
        scheduler.begin_tick(NEXT_DEEP_TICK)
        results = {
            aid: scheduler.plan(make_context(world, aid), world.agents[aid], NEXT_DEEP_TICK)
            for aid in ("dev_0", "dev_1")
        }
        assert results["dev_0"].route == Route.DEFERRED
        assert results["dev_1"].route == Route.DEFERRED

        scheduler.settle()
        assert backend.calls_for("dev_0") == 1
        assert backend.calls_for("dev_1") == 1
        assert scheduler.stats().failures_total == 1
        assert make_context(world, "dev_1").fingerprint in scheduler.cache
        assert make_context(world, "dev_0").fingerprint not in scheduler.cache
        scheduler.shutdown()

    def test_pool_failure_falls_back_for_whole_batch(self):
        config = make_config()
        clock = FakeClock()
        scheduler = BatchScheduler(
            config, AdmissionPolicy(config), ResponseCache(clock=clock), FakeBackend(),
            pool=_ExplodingPool(), clock=clock,
        )
        world = _world_with(1)
        result = _plan_all(scheduler, world, DEEP_TICK)["dev_0"]
        assert result.route == Route.FALLBACK
        assert scheduler.stats().failures_total == 1


class TestSettle:
    """Deferred requests are dispatched at end of phase, results cached only."""

    def _deferred_setup(self):
        backend = FakeBackend()
        backend.script("dev_0", COOL_PLAN)
        scheduler = make_scheduler(make_config(max_calls_per_tick=3), backend)
        world = _world_with(1)
        _warm_up(scheduler)
        scheduler.begin_tick(NEXT_DEEP_TICK)
        result = scheduler.plan(make_context(world, "dev_0"), world.agents["dev_0"], NEXT_DEEP_TICK)
        return scheduler, backend, world, result

    def test_deferred_request_cached_by_settle(self):
        scheduler, backend, world, result = self._deferred_setup()
        assert result.route == Route.DEFERRED
        assert backend.calls_for("dev_0") == 0

        cached = scheduler.settle()
        assert len(cached) == 1
        assert backend.calls_for("dev_0") == 1
        assert make_context(world, "dev_0").fingerprint in scheduler.cache
        scheduler.shutdown()

    def test_deferred_plan_not_substituted_this_tick(self):
        scheduler, _, _, result = self._deferred_setup()
        scheduler.settle()
        assert result.plan.source == "heuristic"
        scheduler.shutdown()

    def test_cached_result_used_next_tick(self):
        scheduler, _, world, _ = self._deferred_setup()
        scheduler.settle()
        nxt = _plan_all(scheduler, world, 12)["dev_0"]
        assert nxt.route == Route.CACHE
        assert nxt.plan.actions == COOL_PLAN.actions
        scheduler.shutdown()

    def test_settle_with_nothing_pending(self):
        scheduler = make_scheduler(backend=FakeBackend())
        assert scheduler.settle() == []
        scheduler.shutdown()


class TestPriority:
    """Conflict first, then critical goals, then recent messages."""

    def _ctx(self, capability=SMART_SOFA, status=AgentStatus.IDLE, messages=()):
        world = make_world()
        world.time_sec = 100.0
        world.add_agent(make_agent("dev", capability, status=status))
        world.add_agent(make_agent("other", EMOTION_LAMP))
        for at, content in messages:
            world.time_sec = at
            world.log(EventKind.MESSAGE, device_id="other", data={"to": "dev", "content": content})
        world.time_sec = 100.0
        return make_context(world, "dev")

    def test_plain_agent_scores_zero(self):
        assert priority_score(self._ctx()) == 0

    def test_conflict_status(self):
        assert priority_score(self._ctx(status=AgentStatus.CONFLICT)) == CONFLICT_PRIORITY

    def test_safety_goal(self):
        # SMART_AC has a single "safety" goal among its goals
        assert priority_score(self._ctx(SMART_AC)) == CRITICAL_GOAL_PRIORITY

    def test_recent_messages_only(self):
        ctx = self._ctx(messages=[(10.0, "old news"), (80.0, "hello"), (95.0, "hi again")])
        assert priority_score(ctx, recent_seconds=60.0) == 2 * RECENT_MESSAGE_PRIORITY

    def test_conflict_message_outranks_everything_else(self):
        conflicted = self._ctx(messages=[(99.0, "conflict over lights")])
        safety = self._ctx(SMART_AC)
        assert priority_score(conflicted) > priority_score(safety)


class TestStats:
    def test_stats_snapshot(self):
        backend = FakeBackend()
        scheduler = make_scheduler(make_config(max_calls_per_tick=2), backend)
        world = _world_with(3)
        _plan_all(scheduler, world, DEEP_TICK)
        stats = scheduler.stats()
        assert stats.current_tick == DEEP_TICK
        assert stats.calls_this_tick == 2
        assert stats.dispatched_total == 2
        assert stats.cache_size == 2
        assert stats.heuristic_total == 1
        assert set(stats.as_dict()) >= {"cache_size", "cache_hit_rate", "pending_requests", "calls_this_tick"}
        scheduler.shutdown()

    def test_reset_clears_cache(self):
        scheduler = make_scheduler(backend=FakeBackend())
        _plan_all(scheduler, _world_with(1), DEEP_TICK)
        scheduler.reset()
        assert len(scheduler.cache) == 0
        assert scheduler.calls_this_tick == 0
        scheduler.shutdown()
