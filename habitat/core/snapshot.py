"""Immutable snapshot of the world state for API reader threads."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from habitat.core.models import AgentRuntime, ResourceUsage, RoomState
from habitat.core.world_state import WorldState


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Read-only view of the world, safe to share across threads.

    Rooms and agents are copied; the mappings are wrapped in
    MappingProxyType so readers cannot mutate them.
    """

    tick: int
    time_sec: float
    seed: int
    rooms: Mapping[str, RoomState]
    agents: Mapping[str, AgentRuntime]
    health: float
    resources: ResourceUsage

    @classmethod
    def from_world(cls, world: WorldState) -> Snapshot:
        return cls(
            tick=world.tick,
            time_sec=world.time_sec,
            seed=world.seed,
            rooms=MappingProxyType({rid: r.copy() for rid, r in world.rooms.items()}),
            agents=MappingProxyType({aid: a.copy() for aid, a in world.agents.items()}),
            health=world.health,
            resources=world.resources.copy(),
        )
