"""Mediation of competing plans into winning actions.

The WorldLoop depends only on the ``Mediator`` protocol. ``PriorityMediator``
is the default household governance: contested resources are awarded by
goal utility under the household policies.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from habitat.core.enums import ActionKind, Domain, EventKind
from habitat.systems.rng import stable_key
from habitat.utils.event_log import WorldEvent

if TYPE_CHECKING:
    from habitat.core.models import AgentPlan, AgentRuntime, ProposedAction
    from habitat.core.world_state import WorldState
    from habitat.systems.rng import DeterministicRNG

logger = logging.getLogger(__name__)

SAFETY_BOOST = 10.0
EMERGENCY_BOOST = 5.0
EMERGENCY_LOW = 18.0
EMERGENCY_HIGH = 28.0
TIE_BREAK_SPREAD = 0.1
BONUS_LOOKBACK_SECONDS = 300.0

PRIORITY_MESSAGES = {
    "safety": "Safety takes precedence over all other concerns",
    "comfort": "User comfort is prioritized",
    "efficiency": "Energy efficiency wins out",
    "privacy": "Privacy protection is maintained",
}


@dataclass(frozen=True, slots=True)
class Conflict:
    winner: str
    loser: str
    room: str
    resource: str
    rule_applied: str
    explanation: str


@dataclass(frozen=True, slots=True)
class MediationResult:
    actions: tuple[tuple[str, ProposedAction], ...] = ()
    conflicts: tuple[Conflict, ...] = ()
    logs: tuple[WorldEvent, ...] = ()

    @property
    def winners(self) -> set[str]:
        return {agent_id for agent_id, _ in self.actions}

    @property
    def losers(self) -> set[str]:
        return {c.loser for c in self.conflicts}


class Mediator(Protocol):
    def resolve(self, plans: list[tuple[str, AgentPlan]], world: WorldState) -> MediationResult: ...


def contested_resource(action: ProposedAction) -> str | None:
    """Shared room resource an action competes for, if any."""
    kind = ActionKind.parse(action.name)
    if kind is None:
        return None
    if kind.is_temperature:
        return "temperature"
    if kind.is_lighting:
        return "lighting"
    return None


class PriorityMediator:
    """Resolves same-room contention for temperature and lighting.

    Resolution policy:
    - Two or more agents in one room proposing actions on the same
      resource conflict; the highest utility wins, every other claimant
      loses its actions on that resource.
    - Utility = sum(goal weight × policy soft weight) + safety boost +
      emergency-temperature boost + a small deterministic tie-break.
    - Agents sharing a room that all act without conflict cooperate.
    """

    __slots__ = ("_rng",)

    def __init__(self, rng: DeterministicRNG) -> None:
        self._rng = rng

    def resolve(self, plans: list[tuple[str, AgentPlan]], world: WorldState) -> MediationResult:
        logs: list[WorldEvent] = []
        now = world.time_sec

        active: list[tuple[AgentRuntime, AgentPlan]] = []
        for agent_id, plan in plans:
            agent = world.agents.get(agent_id)
            if agent is None:
                logger.debug("Mediator: dropping plan from unknown agent %s", agent_id)
                continue
            active.append((agent, plan))
            for message in plan.messages:
                logs.append(WorldEvent(
                    timestamp=now, room=agent.room, kind=EventKind.MESSAGE, device_id=agent.id,
                    data={"to": message.to, "content": message.content},
                ))

        claims: dict[tuple[str, str], list[AgentRuntime]] = defaultdict(list)
        for agent, plan in active:
            for resource in sorted({r for a in plan.actions if (r := contested_resource(a))}):
                claims[(agent.room, resource)].append(agent)

        conflicts: list[Conflict] = []
        blocked: set[tuple[str, str]] = set()   # (agent id, resource)
        for (room_id, resource), claimants in sorted(claims.items()):
            if len(claimants) < 2:
                continue
            ranked = sorted(
                claimants,
                key=lambda a: (-self._utility(a, world), a.id),
            )
            winner = ranked[0]
            for loser in ranked[1:]:
                conflict = self._conflict(winner, loser, room_id, resource)
                conflicts.append(conflict)
                blocked.add((loser.id, resource))
                logs.append(WorldEvent(
                    timestamp=now, room=room_id, kind=EventKind.CONFLICT_RESOLVED, device_id=winner.id,
                    data={
                        "winner": winner.id,
                        "loser": loser.id,
                        "resource": resource,
                        "rule": conflict.rule_applied,
                        "explanation": conflict.explanation,
                    },
                ))

        actions: list[tuple[str, ProposedAction]] = []
        actors_by_room: dict[str, list[str]] = defaultdict(list)
        for agent, plan in active:
            kept = [a for a in plan.actions if (agent.id, contested_resource(a)) not in blocked]
            for action in kept:
                actions.append((agent.id, action))
                logs.append(WorldEvent(
                    timestamp=now, room=agent.room, kind=EventKind.AGENT_ACTION, device_id=agent.id,
                    data={"action": action.name, "args": dict(action.args), "source": plan.source},
                ))
            if kept:
                actors_by_room[agent.room].append(agent.id)

        involved = {c.winner for c in conflicts} | {c.loser for c in conflicts}
        bonus = self._pending_bonus(world)
        for room_id, actors in sorted(actors_by_room.items()):
            cooperating = [aid for aid in actors if aid not in involved]
            if len(cooperating) >= 2:
                logs.append(WorldEvent(
                    timestamp=now, room=room_id, kind=EventKind.COOPERATION,
                    data={"participants": cooperating, "bonus": bonus},
                ))

        if conflicts:
            logger.debug("Tick %d: mediated %d conflicts", world.tick, len(conflicts))
        return MediationResult(actions=tuple(actions), conflicts=tuple(conflicts), logs=tuple(logs))

    # -- internals --

    def _utility(self, agent: AgentRuntime, world: WorldState) -> float:
        policies = world.policies
        goals = agent.capability.goals
        utility = sum(weight * policies.soft_weight(name) for name, weight in goals)
        if any("safe" in name for name, _ in goals):
            utility += SAFETY_BOOST
        room = world.rooms.get(agent.room)
        if room is not None and (room.temperature < EMERGENCY_LOW or room.temperature > EMERGENCY_HIGH):
            utility += EMERGENCY_BOOST
        utility += self._rng.next_float(Domain.MEDIATION, stable_key(agent.id), world.tick) * TIE_BREAK_SPREAD
        return utility

    @staticmethod
    def _conflict(winner: AgentRuntime, loser: AgentRuntime, room_id: str, resource: str) -> Conflict:
        goal = winner.capability.top_goal or "unknown"
        reason = PRIORITY_MESSAGES.get(goal, f"{goal} priority resolved the conflict")
        return Conflict(
            winner=winner.id,
            loser=loser.id,
            room=room_id,
            resource=resource,
            rule_applied=f"{goal}_priority",
            explanation=f"{winner.id} wins over {loser.id}: {reason}",
        )

    @staticmethod
    def _pending_bonus(world: WorldState) -> float:
        """Most recent cooperation bonus hinted by the Director, or 0."""
        since = world.time_sec - BONUS_LOOKBACK_SECONDS
        for event in reversed(world.events.since(since)):
            if event.kind == EventKind.DIRECTOR_EVENT and event.data.get("type") == "cooperation_opportunity":
                return float(event.data.get("cooperation_bonus", 0.0))
        return 0.0
