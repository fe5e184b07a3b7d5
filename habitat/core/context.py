"""Per-agent planning input built from the world, plus its cache fingerprint."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import xxhash

from habitat.core.enums import AgentStatus, EventKind

if TYPE_CHECKING:
    from habitat.core.models import CapabilitySpec, Policies, RoomState
    from habitat.core.world_state import WorldState

MAX_INBOUND_MESSAGES = 3
BROADCAST = "all"
CONFLICT_KEYWORDS = ("conflict", "competing", "compete", "competition")


class ContextLookupError(LookupError):
    """Raised when the agent or its room is missing from the world."""


@dataclass(frozen=True, slots=True)
class InboundMessage:
    sender: str
    content: str
    at: float

    def mentions_conflict(self) -> bool:
        text = self.content.lower()
        return any(word in text for word in CONFLICT_KEYWORDS)


@dataclass(frozen=True, slots=True)
class SiblingSummary:
    """What one agent may know about another: no private memory."""

    id: str
    room: str
    status: AgentStatus


@dataclass(frozen=True, slots=True)
class RoomSnapshot:
    temperature: float
    light: float
    noise: float
    humidity: float

    @classmethod
    def from_room(cls, room: RoomState) -> RoomSnapshot:
        return cls(room.temperature, room.light, room.noise, room.humidity)

    def as_dict(self) -> dict[str, float]:
        return {
            "temperature": self.temperature,
            "light": self.light,
            "noise": self.noise,
            "humidity": self.humidity,
        }


@dataclass(frozen=True, slots=True)
class PlanningContext:
    """Immutable read-only view of the world for one agent's planning attempt."""

    agent_id: str
    capability: CapabilitySpec
    room_id: str
    room: RoomSnapshot
    messages: tuple[InboundMessage, ...]
    siblings: tuple[SiblingSummary, ...]
    policies: Policies
    world_time: float
    status: AgentStatus = AgentStatus.IDLE
    planning_phase: int | None = None

    @property
    def last_message(self) -> InboundMessage | None:
        return self.messages[-1] if self.messages else None

    def has_conflict_signal(self) -> bool:
        if self.status == AgentStatus.CONFLICT:
            return True
        return any(m.mentions_conflict() for m in self.messages)

    def fingerprint_payload(self) -> dict[str, Any]:
        last = self.last_message
        return {
            "agent_id": self.agent_id,
            "room": self.room.as_dict(),
            "last_message": (
                {"from": last.sender, "content": last.content, "at": last.at} if last else None
            ),
            "priority_order": list(self.policies.priority_order),
        }

    @property
    def fingerprint(self) -> str:
        """Deterministic cache key over agent, room, latest message and policy order."""
        canonical = json.dumps(self.fingerprint_payload(), sort_keys=True, separators=(",", ":"))
        return xxhash.xxh64(canonical.encode("utf-8")).hexdigest()


def build_context(agent_id: str, world: WorldState) -> PlanningContext:
    """Snapshot the slice of *world* relevant to *agent_id*.

    Raises ContextLookupError when the agent or its room is unknown.
    """
    agent = world.agents.get(agent_id)
    if agent is None:
        raise ContextLookupError(f"Unknown agent {agent_id!r}")
    room = world.rooms.get(agent.room)
    if room is None:
        raise ContextLookupError(f"Agent {agent_id!r} is in unknown room {agent.room!r}")

    inbound: list[InboundMessage] = []
    for event in world.events.all():
        if event.kind != EventKind.MESSAGE or event.device_id == agent_id:
            continue
        to = event.data.get("to")
        if to != agent_id and to != BROADCAST:
            continue
        inbound.append(InboundMessage(
            sender=event.device_id or "unknown",
            content=str(event.data.get("content", "")),
            at=event.timestamp,
        ))

    siblings = tuple(
        SiblingSummary(id=other.id, room=other.room, status=other.status)
        for other in world.agents.values()
        if other.id != agent_id
    )

    return PlanningContext(
        agent_id=agent_id,
        capability=agent.capability,
        room_id=agent.room,
        room=RoomSnapshot.from_room(room),
        messages=tuple(inbound[-MAX_INBOUND_MESSAGES:]),
        siblings=siblings,
        policies=world.policies,
        world_time=world.time_sec,
        status=agent.status,
        planning_phase=agent.planning_phase,
    )
