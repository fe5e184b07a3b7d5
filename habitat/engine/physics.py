"""Physical constraints on how fast devices can change the home.

Action application, passive environmental drift, and Director
interventions. All functions here are called from the WorldLoop thread,
which is the only writer of WorldState.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from habitat.core.enums import ActionKind, Domain
from habitat.systems.rng import stable_key

if TYPE_CHECKING:
    from habitat.config import SimulationConfig
    from habitat.core.models import AgentRuntime, ProposedAction, RoomState
    from habitat.core.world_state import WorldState
    from habitat.engine.director import Intervention
    from habitat.systems.rng import DeterministicRNG

logger = logging.getLogger(__name__)

DEFAULT_BRIGHTNESS = 0.5
DEFAULT_SIZE_CM = 180.0

# Passive drift
OUTSIDE_BASE_TEMPERATURE = 20.0
OUTSIDE_SWING = 10.0
DIURNAL_PERIOD_DIVISOR = 43200.0
OUTSIDE_COUPLING = 0.01
LIGHT_DECAY = 0.99
NOISE_DECAY = 0.95
HUMIDITY_STEP = 0.01
HUMIDITY_MIN = 0.3
HUMIDITY_MAX = 0.7


class UnknownActionError(ValueError):
    """The action name does not map to any ActionKind."""


@dataclass(frozen=True, slots=True)
class AppliedChange:
    agent_id: str
    kind: ActionKind
    field: str
    before: Any
    after: Any


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def temperature_delta(kind: ActionKind, args: dict[str, Any], current: float) -> float:
    """Requested temperature change before rate limiting.

    A non-zero ``delta_c`` wins. Otherwise ``target`` (or ``target_c``)
    minus the current reading. Otherwise no change. ``heat`` never lowers
    and ``cool`` never raises the temperature.
    """
    delta = _number(args.get("delta_c"))
    from_target = False
    if not delta:
        target = _number(args.get("target", args.get("target_c")))
        delta = target - current if target is not None else 0.0
        from_target = True

    match kind:
        case ActionKind.HEAT:
            return max(delta, 0.0) if from_target else abs(delta)
        case ActionKind.COOL:
            return min(delta, 0.0) if from_target else -abs(delta)
        case ActionKind.SET_TEMPERATURE:
            return delta
        case _:
            raise ValueError(f"{kind.name} is not a temperature action")


def apply_action(
    agent: AgentRuntime,
    room: RoomState,
    action: ProposedAction,
    config: SimulationConfig,
) -> AppliedChange:
    """Apply one winning action to *room* / *agent* under rate limits.

    Raises UnknownActionError for names outside ActionKind.
    """
    kind = ActionKind.parse(action.name)
    if kind is None:
        raise UnknownActionError(f"Unknown action {action.name!r} from {agent.id}")
    args = action.args

    match kind:
        case ActionKind.HEAT | ActionKind.COOL | ActionKind.SET_TEMPERATURE:
            before = room.temperature
            step = config.max_temperature_step
            delta = clamp(temperature_delta(kind, args, before), -step, step)
            room.temperature = clamp(before + delta, config.temperature_min, config.temperature_max)
            return AppliedChange(agent.id, kind, "temperature", before, room.temperature)

        case ActionKind.SET_BRIGHTNESS:
            before = room.light
            level = _number(args.get("level_0_1", args.get("level")))
            target = clamp(DEFAULT_BRIGHTNESS if level is None else level, 0.0, 1.0)
            room.light = clamp(before + (target - before) * config.brightness_easing, 0.0, 1.0)
            return AppliedChange(agent.id, kind, "light", before, room.light)

        case ActionKind.SET_COLOR:
            before = agent.memory.get("color")
            agent.memory["color"] = str(args.get("color", before or "warm_white"))
            return AppliedChange(agent.id, kind, "color", before, agent.memory["color"])

        case ActionKind.SET_FIRMNESS:
            before = agent.memory.get("firmness")
            agent.memory["firmness"] = args.get("firmness", args.get("level", before))
            return AppliedChange(agent.id, kind, "firmness", before, agent.memory["firmness"])

        case ActionKind.RESIZE:
            before = float(agent.memory.get("size_cm", DEFAULT_SIZE_CM))
            requested = _number(args.get("size_cm"))
            target = DEFAULT_SIZE_CM if requested is None else requested
            step = config.max_size_step
            agent.memory["size_cm"] = before + clamp(target - before, -step, step)
            return AppliedChange(agent.id, kind, "size_cm", before, agent.memory["size_cm"])

        case ActionKind.FAN:
            before = agent.memory.get("fan")
            agent.memory["fan"] = args.get("speed", args.get("mode", "auto"))
            return AppliedChange(agent.id, kind, "fan", before, agent.memory["fan"])

        case _:
            raise ValueError(f"Unhandled action kind {kind!r}")


def outside_temperature(time_sec: float) -> float:
    return OUTSIDE_BASE_TEMPERATURE + math.sin(time_sec / DIURNAL_PERIOD_DIVISOR) * OUTSIDE_SWING


def apply_passive_drift(world: WorldState, rng: DeterministicRNG) -> None:
    """Environment evolving on its own: no device involvement."""
    outside = outside_temperature(world.time_sec)
    for room_id, room in world.rooms.items():
        room.temperature += (outside - room.temperature) * OUTSIDE_COUPLING
        room.light *= LIGHT_DECAY
        room.noise *= NOISE_DECAY
        jitter = rng.next_float(Domain.DRIFT, stable_key(room_id), world.tick) - 0.5
        room.humidity = clamp(room.humidity + jitter * HUMIDITY_STEP, HUMIDITY_MIN, HUMIDITY_MAX)


def apply_intervention(world: WorldState, intervention: Intervention, config: SimulationConfig) -> None:
    """Carry out a Director intervention on the rooms it targets."""
    match intervention.kind:
        case "perturbation":
            room = world.rooms.get(intervention.room)
            if room is None:
                logger.warning("Director targeted unknown room %s", intervention.room)
                return
            if intervention.variable == "temperature":
                room.temperature = clamp(
                    room.temperature + intervention.delta, config.temperature_min, config.temperature_max,
                )
            else:
                room.light = clamp(room.light + intervention.delta, 0.0, 1.0)
        case "calming":
            rate = config.calming_rate
            for room in world.rooms.values():
                room.temperature += (config.comfort_temperature - room.temperature) * rate
                room.light += (config.comfort_light - room.light) * rate
        case "cooperation_opportunity":
            pass
        case other:
            raise ValueError(f"Unknown intervention {other!r}")
