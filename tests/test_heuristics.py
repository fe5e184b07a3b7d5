"""Tests for the rule-based fallback planner."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from habitat.core.models import CapabilitySpec, Policies, QuietHours, RoomState
from habitat.planning.heuristics import HEURISTIC_SOURCE, empty_plan, heuristic_plan
from habitat.systems.scenario import EMOTION_LAMP, SMART_AC, SMART_SOFA
from tests.helpers.household import HEATER, make_agent, make_context, make_world

NIGHT = 23 * 3600.0
NOON = 12 * 3600.0


def _ctx(capability, temperature=22.0, light=0.5, world_time=NOON, policies=None):
    world = make_world({"living_room": RoomState(temperature=temperature, light=light)}, policies)
    world.time_sec = world_time
    world.add_agent(make_agent("dev", capability))
    return make_context(world, "dev")


def _names(plan):
    return [a.name for a in plan.actions]


class TestTemperature:
    """Nudge toward the comfort band."""

    def test_cools_above_band(self):
        plan = heuristic_plan(_ctx(SMART_AC, temperature=26.0))
        assert _names(plan) == ["cool"]
        assert plan.actions[0].args["delta_c"] < 0

    def test_heats_below_band(self):
        plan = heuristic_plan(_ctx(SMART_AC, temperature=18.5))
        assert _names(plan) == ["heat"]
        assert plan.actions[0].args["delta_c"] > 0

    def test_idle_inside_band(self):
        plan = heuristic_plan(_ctx(SMART_AC, temperature=22.0))
        assert plan.actions == ()
        assert plan.rationale == "Heuristic behavior: 0 actions based on current conditions"

    def test_heat_only_device_cannot_cool(self):
        assert heuristic_plan(_ctx(HEATER, temperature=27.0)).actions == ()
        assert _names(heuristic_plan(_ctx(HEATER, temperature=19.0))) == ["heat"]

    def test_no_comfort_band_no_temperature_action(self):
        policies = Policies(comfort_band=None)
        assert heuristic_plan(_ctx(SMART_AC, temperature=30.0, policies=policies)).actions == ()


class TestQuietHours:
    """Lighting devices dim during quiet hours and tell everyone."""

    def test_dims_bright_room_at_night(self):
        plan = heuristic_plan(_ctx(EMOTION_LAMP, light=0.8, world_time=NIGHT))
        assert _names(plan) == ["set_brightness"]
        assert plan.actions[0].args["level_0_1"] == 0.1
        assert len(plan.messages) == 1
        assert plan.messages[0].to == "all"

    def test_already_dim_room_left_alone(self):
        assert heuristic_plan(_ctx(EMOTION_LAMP, light=0.15, world_time=NIGHT)).actions == ()

    def test_daytime_left_alone(self):
        assert heuristic_plan(_ctx(EMOTION_LAMP, light=0.8, world_time=NOON)).actions == ()

    def test_window_wraps_midnight(self):
        early_morning = 3 * 3600.0
        plan = heuristic_plan(_ctx(EMOTION_LAMP, light=0.8, world_time=early_morning))
        assert _names(plan) == ["set_brightness"]

    def test_custom_window(self):
        policies = Policies(quiet_hours=QuietHours(start="13:00", end="15:00"))
        plan = heuristic_plan(_ctx(EMOTION_LAMP, light=0.8, world_time=14 * 3600.0, policies=policies))
        assert _names(plan) == ["set_brightness"]


class TestTotality:
    """Always returns a plan, never raises."""

    def test_every_builtin_capability(self):
        for capability in (SMART_AC, EMOTION_LAMP, SMART_SOFA):
            for temperature in (10.0, 22.0, 35.0):
                for world_time in (NOON, NIGHT):
                    plan = heuristic_plan(_ctx(capability, temperature, 0.9, world_time))
                    assert plan.source == HEURISTIC_SOURCE

    def test_capability_with_no_actions(self):
        bare = CapabilitySpec(agent_type="sensor")
        plan = heuristic_plan(_ctx(bare, temperature=40.0, light=1.0, world_time=NIGHT))
        assert plan.actions == ()
        assert plan.messages == ()

    def test_sofa_never_acts(self):
        assert heuristic_plan(_ctx(SMART_SOFA, temperature=30.0, world_time=NIGHT)).actions == ()

    def test_empty_plan(self):
        plan = empty_plan()
        assert plan.actions == ()
        assert plan.rationale == "No action taken"
