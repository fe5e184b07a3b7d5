"""Tests for PlanningContext construction and fingerprinting.

Covers:
- Inbound messages: addressed or broadcast, own messages excluded, last 3 kept
- Sibling summaries carry id, room and status only
- Missing agent or room raises ContextLookupError
- Fingerprint is stable for equal inputs and sensitive to the fields it covers
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from habitat.core.context import ContextLookupError, build_context
from habitat.core.enums import AgentStatus, EventKind
from habitat.core.models import Policies, RoomState
from habitat.systems.scenario import EMOTION_LAMP, SMART_AC
from tests.helpers.household import make_agent, make_world


def _send(world, sender, to, content, at=None):
    if at is not None:
        world.time_sec = at
    world.log(EventKind.MESSAGE, room="living_room", device_id=sender, data={"to": to, "content": content})


def _two_agent_world():
    world = make_world({"living_room": RoomState(temperature=26.0), "bedroom": RoomState()})
    world.add_agent(make_agent("ac_1", SMART_AC, "living_room"))
    world.add_agent(make_agent("lamp_1", EMOTION_LAMP, "bedroom", status=AgentStatus.ACTING,
                               memory={"color": "blue"}))
    return world


class TestInboundMessages:
    """Only messages meant for the agent reach its context."""

    def test_direct_and_broadcast_messages_included(self):
        world = _two_agent_world()
        _send(world, "lamp_1", "ac_1", "please cool down", at=10.0)
        _send(world, "lamp_1", "all", "dimming lights", at=20.0)
        ctx = build_context("ac_1", world)
        assert [m.content for m in ctx.messages] == ["please cool down", "dimming lights"]
        assert ctx.messages[0].sender == "lamp_1"
        assert ctx.messages[0].at == 10.0

    def test_messages_to_others_excluded(self):
        world = _two_agent_world()
        _send(world, "ac_1", "lamp_1", "hello lamp")
        assert build_context("ac_1", world).messages == ()

    def test_own_broadcast_not_inbound(self):
        world = _two_agent_world()
        _send(world, "ac_1", "all", "I am cooling")
        assert build_context("ac_1", world).messages == ()
        assert len(build_context("lamp_1", world).messages) == 1

    def test_only_last_three_kept_in_order(self):
        world = _two_agent_world()
        for i in range(5):
            _send(world, "lamp_1", "ac_1", f"msg {i}", at=float(i))
        ctx = build_context("ac_1", world)
        assert [m.content for m in ctx.messages] == ["msg 2", "msg 3", "msg 4"]
        assert ctx.last_message.content == "msg 4"

    def test_non_message_events_ignored(self):
        world = _two_agent_world()
        world.log(EventKind.AGENT_ACTION, device_id="lamp_1", data={"to": "ac_1", "content": "x"})
        assert build_context("ac_1", world).messages == ()


class TestContextFields:
    """Room, siblings and policies copied into the context."""

    def test_room_snapshot_matches_room(self):
        world = _two_agent_world()
        ctx = build_context("ac_1", world)
        assert ctx.room_id == "living_room"
        assert ctx.room.temperature == 26.0

    def test_room_snapshot_is_detached(self):
        world = _two_agent_world()
        ctx = build_context("ac_1", world)
        world.rooms["living_room"].temperature = 18.0
        assert ctx.room.temperature == 26.0

    def test_siblings_exclude_self_and_memory(self):
        world = _two_agent_world()
        ctx = build_context("ac_1", world)
        assert len(ctx.siblings) == 1
        sibling = ctx.siblings[0]
        assert (sibling.id, sibling.room, sibling.status) == ("lamp_1", "bedroom", AgentStatus.ACTING)
        assert not hasattr(sibling, "memory")

    def test_status_and_time_copied(self):
        world = _two_agent_world()
        world.time_sec = 420.0
        world.agents["ac_1"].status = AgentStatus.CONFLICT
        ctx = build_context("ac_1", world)
        assert ctx.world_time == 420.0
        assert ctx.status == AgentStatus.CONFLICT
        assert ctx.has_conflict_signal()

    def test_conflict_keyword_is_a_conflict_signal(self):
        world = _two_agent_world()
        _send(world, "lamp_1", "ac_1", "We are COMPETING for the thermostat")
        assert build_context("ac_1", world).has_conflict_signal()

    def test_unknown_agent_raises(self):
        world = _two_agent_world()
        with pytest.raises(ContextLookupError):
            build_context("ghost", world)

    def test_agent_in_removed_room_raises(self):
        world = _two_agent_world()
        del world.rooms["bedroom"]
        with pytest.raises(ContextLookupError):
            build_context("lamp_1", world)


class TestFingerprint:
    """Deterministic cache key."""

    def test_equal_worlds_give_equal_fingerprints(self):
        a, b = _two_agent_world(), _two_agent_world()
        assert build_context("ac_1", a).fingerprint == build_context("ac_1", b).fingerprint

    def test_fingerprint_is_hex_string(self):
        fp = build_context("ac_1", _two_agent_world()).fingerprint
        assert len(fp) == 16
        int(fp, 16)

    def test_room_change_changes_fingerprint(self):
        world = _two_agent_world()
        before = build_context("ac_1", world).fingerprint
        world.rooms["living_room"].temperature = 25.5
        assert build_context("ac_1", world).fingerprint != before

    def test_new_message_changes_fingerprint(self):
        world = _two_agent_world()
        before = build_context("ac_1", world).fingerprint
        _send(world, "lamp_1", "ac_1", "hi")
        assert build_context("ac_1", world).fingerprint != before

    def test_policy_order_changes_fingerprint(self):
        world = _two_agent_world()
        before = build_context("ac_1", world).fingerprint
        world.policies = Policies(priority_order=("comfort", "safety", "efficiency", "privacy"))
        assert build_context("ac_1", world).fingerprint != before

    def test_world_time_and_siblings_do_not_affect_fingerprint(self):
        world = _two_agent_world()
        before = build_context("ac_1", world).fingerprint
        world.time_sec = 9999.0
        world.agents["lamp_1"].status = AgentStatus.IDLE
        assert build_context("ac_1", world).fingerprint == before
