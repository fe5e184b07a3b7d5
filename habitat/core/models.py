"""Core data models: rooms, capabilities, agents, plans."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from habitat.core.enums import AgentStatus


@dataclass(slots=True)
class RoomState:
    """Mutable environmental readings for one room."""

    temperature: float = 22.0
    light: float = 0.5          # normalized lumens, 0..1
    noise: float = 0.0
    humidity: float = 0.5

    def copy(self) -> RoomState:
        return RoomState(
            temperature=self.temperature, light=self.light,
            noise=self.noise, humidity=self.humidity,
        )

    def as_dict(self) -> dict[str, float]:
        return {
            "temperature": self.temperature,
            "light": self.light,
            "noise": self.noise,
            "humidity": self.humidity,
        }


@dataclass(slots=True)
class ResourceUsage:
    """Household resource vector recomputed every tick."""

    power_kw: float = 1.2
    bandwidth: float = 0.8
    privacy_budget: float = 1.0

    def copy(self) -> ResourceUsage:
        return ResourceUsage(self.power_kw, self.bandwidth, self.privacy_budget)


@dataclass(frozen=True, slots=True)
class QuietHours:
    """Daily window (``HH:MM``) during which devices keep the house calm."""

    start: str = "22:00"
    end: str = "07:00"

    @staticmethod
    def _hour(value: str) -> int:
        return int(value.split(":", 1)[0])

    def contains(self, time_sec: float) -> bool:
        """True if the world clock *time_sec* falls inside the window.

        A window whose start is after its end wraps around midnight.
        """
        hour = int((time_sec / 3600.0) % 24)
        start, end = self._hour(self.start), self._hour(self.end)
        if start > end:
            return hour >= start or hour < end
        return start <= hour < end


@dataclass(frozen=True, slots=True)
class ComfortBand:
    """Acceptable indoor temperature range."""

    min_temperature: float = 20.0
    max_temperature: float = 24.0


@dataclass(frozen=True, slots=True)
class Policies:
    """Household governance configuration shared by every agent."""

    priority_order: tuple[str, ...] = ("safety", "comfort", "efficiency", "privacy")
    quiet_hours: QuietHours = field(default_factory=QuietHours)
    comfort_band: ComfortBand | None = field(default_factory=ComfortBand)
    max_power_kw: float = 2.0
    soft_weights: tuple[tuple[str, float], ...] = ()   # (goal name, weight)

    def soft_weight(self, goal: str, default: float = 0.5) -> float:
        for name, weight in self.soft_weights:
            if name == goal:
                return weight
        return default


@dataclass(frozen=True, slots=True)
class CapabilitySpec:
    """What a device can do and what it cares about."""

    agent_type: str
    actions: tuple[str, ...] = ()
    goals: tuple[tuple[str, float], ...] = ()      # (goal name, weight)

    def has_action(self, fragment: str) -> bool:
        return any(fragment in name for name in self.actions)

    def goal_weight(self, name: str) -> float:
        for goal, weight in self.goals:
            if goal == name:
                return weight
        return 0.0

    @property
    def top_goal(self) -> str | None:
        if not self.goals:
            return None
        return max(self.goals, key=lambda g: g[1])[0]


@dataclass(slots=True)
class AgentRuntime:
    """A device agent living in the home."""

    id: str
    capability: CapabilitySpec
    room: str
    status: AgentStatus = AgentStatus.IDLE
    memory: dict[str, Any] = field(default_factory=dict)
    planning_phase: int | None = None

    def copy(self) -> AgentRuntime:
        return AgentRuntime(
            id=self.id, capability=self.capability, room=self.room,
            status=self.status, memory=dict(self.memory),
            planning_phase=self.planning_phase,
        )


@dataclass(frozen=True, slots=True)
class ProposedAction:
    """One action inside a plan: a name plus free-form arguments."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class OutboundMessage:
    to: str
    content: str


@dataclass(frozen=True, slots=True)
class AgentPlan:
    """Proposed actions and messages for one agent; effective only after mediation."""

    actions: tuple[ProposedAction, ...] = ()
    messages: tuple[OutboundMessage, ...] = ()
    rationale: str = ""
    source: str = "heuristic"

    def as_dict(self) -> dict[str, Any]:
        return {
            "actions": [{"name": a.name, "args": dict(a.args)} for a in self.actions],
            "messages_to": [{"to": m.to, "content": m.content} for m in self.messages],
            "explain": self.rationale,
            "source": self.source,
        }
