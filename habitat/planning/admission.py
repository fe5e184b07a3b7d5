"""Decides, per agent per tick, whether a fresh inference call is warranted."""

from __future__ import annotations

from typing import TYPE_CHECKING

from habitat.core.enums import AgentStatus

if TYPE_CHECKING:
    from habitat.config import SimulationConfig
    from habitat.core.context import PlanningContext
    from habitat.core.models import AgentRuntime

LAST_TEMPERATURE_KEY = "last_temperature"


class AdmissionPolicy:
    """Triggers for fresh inference.

    An agent is admitted if any of these hold:
      - its status is ``conflict``
      - its context changed materially since it last planned (room
        temperature drift past a threshold, or an inbound message that
        mentions conflict or competition)
      - the tick is a periodic deep-think tick
      - the tick is the agent's round-robin planning slot
    """

    __slots__ = ("_deep_think_interval", "_phases", "_drift_threshold")

    def __init__(self, config: SimulationConfig) -> None:
        self._deep_think_interval = max(1, config.deep_think_interval)
        self._phases = max(1, config.planning_phases)
        self._drift_threshold = config.temperature_drift_threshold

    def reasons(self, context: PlanningContext, agent: AgentRuntime, tick: int) -> list[str]:
        found: list[str] = []
        if agent.status == AgentStatus.CONFLICT:
            found.append("conflict")
        if self._temperature_drifted(context, agent):
            found.append("temperature_drift")
        if any(m.mentions_conflict() for m in context.messages):
            found.append("conflict_message")
        if tick % self._deep_think_interval == 0:
            found.append("deep_think")
        if self.in_phase(agent, tick):
            found.append("round_robin")
        return found

    def requires_inference(self, context: PlanningContext, agent: AgentRuntime, tick: int) -> bool:
        return bool(self.reasons(context, agent, tick))

    def in_phase(self, agent: AgentRuntime, tick: int) -> bool:
        return agent.planning_phase is not None and tick % self._phases == agent.planning_phase

    @staticmethod
    def should_plan(agent: AgentRuntime) -> bool:
        """Agents without a planning phase get a plan every tick."""
        return agent.planning_phase is None

    def _temperature_drifted(self, context: PlanningContext, agent: AgentRuntime) -> bool:
        last = agent.memory.get(LAST_TEMPERATURE_KEY)
        if last is None:
            return False
        return abs(context.room.temperature - float(last)) > self._drift_threshold
