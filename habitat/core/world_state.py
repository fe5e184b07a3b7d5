"""Mutable authoritative world state — only mutated by the WorldLoop."""

from __future__ import annotations

from dataclasses import dataclass

from habitat.core.enums import AgentStatus
from habitat.core.models import AgentRuntime, Policies, ResourceUsage, RoomState
from habitat.utils.event_log import EventLog, WorldEvent


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """Copy of every mutable world field, taken before a tick's pipeline runs."""

    rooms: dict[str, RoomState]
    agents: dict[str, AgentRuntime]
    events: list[WorldEvent]
    health: float
    resources: ResourceUsage


class WorldState:
    """The single source of truth for the simulation."""

    __slots__ = ("tick", "time_sec", "seed", "rooms", "agents", "events", "health", "resources", "policies")

    def __init__(
        self,
        seed: int,
        policies: Policies | None = None,
        event_log: EventLog | None = None,
    ) -> None:
        self.tick: int = 0
        self.time_sec: float = 0.0
        self.seed: int = seed
        self.rooms: dict[str, RoomState] = {}
        self.agents: dict[str, AgentRuntime] = {}
        self.events: EventLog = event_log if event_log is not None else EventLog()
        self.health: float = 1.0
        self.resources: ResourceUsage = ResourceUsage()
        self.policies: Policies = policies or Policies()

    def add_room(self, room_id: str, room: RoomState) -> None:
        self.rooms[room_id] = room

    def add_agent(self, agent: AgentRuntime) -> None:
        if agent.room not in self.rooms:
            raise KeyError(f"Agent {agent.id!r} placed in unknown room {agent.room!r}")
        self.agents[agent.id] = agent

    def log(
        self,
        kind: str,
        room: str = "global",
        device_id: str | None = None,
        data: dict | None = None,
    ) -> WorldEvent:
        """Append an event stamped with the current world time."""
        event = WorldEvent(timestamp=self.time_sec, room=room, kind=kind, device_id=device_id, data=data or {})
        self.events.append(event)
        return event

    def checkpoint(self) -> Checkpoint:
        return Checkpoint(
            rooms={rid: r.copy() for rid, r in self.rooms.items()},
            agents={aid: a.copy() for aid, a in self.agents.items()},
            events=self.events.all(),
            health=self.health,
            resources=self.resources.copy(),
        )

    def restore(self, checkpoint: Checkpoint) -> None:
        """Roll every mutable field back to *checkpoint*. Tick and time are untouched."""
        self.rooms = {rid: r.copy() for rid, r in checkpoint.rooms.items()}
        self.agents = {aid: a.copy() for aid, a in checkpoint.agents.items()}
        self.events.replace(checkpoint.events)
        self.health = checkpoint.health
        self.resources = checkpoint.resources.copy()

    def acting_count(self) -> int:
        return sum(1 for a in self.agents.values() if a.status == AgentStatus.ACTING)
