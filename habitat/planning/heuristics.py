"""Rule-based fallback planner.

Used whenever fresh inference is skipped, deferred, over budget or fails.
Pure function of the PlanningContext: no I/O, no randomness, no mutation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from habitat.core.context import BROADCAST
from habitat.core.models import AgentPlan, OutboundMessage, ProposedAction

if TYPE_CHECKING:
    from habitat.core.context import PlanningContext

HEURISTIC_SOURCE = "heuristic"
TEMPERATURE_STEP = 1.0
QUIET_HOURS_LIGHT_LIMIT = 0.2
QUIET_HOURS_BRIGHTNESS = 0.1


def empty_plan(rationale: str = "No action taken", source: str = HEURISTIC_SOURCE) -> AgentPlan:
    return AgentPlan(rationale=rationale, source=source)


def heuristic_plan(context: PlanningContext) -> AgentPlan:
    """Minimal safe behaviour per capability class."""
    actions: list[ProposedAction] = []
    messages: list[OutboundMessage] = []
    capability = context.capability
    policies = context.policies
    room = context.room

    band = policies.comfort_band
    if band is not None:
        if capability.has_action("heat") and room.temperature < band.min_temperature:
            actions.append(ProposedAction("heat", {"delta_c": TEMPERATURE_STEP}))
        elif capability.has_action("cool") and room.temperature > band.max_temperature:
            actions.append(ProposedAction("cool", {"delta_c": -TEMPERATURE_STEP}))

    if (
        capability.has_action("set_brightness")
        and policies.quiet_hours.contains(context.world_time)
        and room.light > QUIET_HOURS_LIGHT_LIMIT
    ):
        actions.append(ProposedAction("set_brightness", {"level_0_1": QUIET_HOURS_BRIGHTNESS}))
        messages.append(OutboundMessage(
            to=BROADCAST,
            content=f"Dimming {context.room_id} lights for quiet hours",
        ))

    return AgentPlan(
        actions=tuple(actions),
        messages=tuple(messages),
        rationale=f"Heuristic behavior: {len(actions)} actions based on current conditions",
        source=HEURISTIC_SOURCE,
    )
