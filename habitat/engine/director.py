"""Director — band-based controller over conflict and cooperation frequency.

Every ``director_interval`` ticks it counts ``conflict_resolved`` and
``cooperation`` events over a sliding window and proposes interventions:

  - too few conflicts  → one perturbation (nudge a random room)
  - too many conflicts → one calming pass (ease every room toward comfort)
  - too little cooperation → one cooperation opportunity hint

Proportional only: the window is the sole memory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from habitat.core.enums import Domain, EventKind

if TYPE_CHECKING:
    from habitat.config import SimulationConfig
    from habitat.core.world_state import WorldState
    from habitat.systems.rng import DeterministicRNG

logger = logging.getLogger(__name__)

TEMPERATURE_NUDGE = 1.0
LIGHT_NUDGE = 0.15
PERTURBATION_INTENSITY = 0.3
COOPERATION_HINTS = ("visitor_arrival", "energy_peak")

# RNG keys for the independent draws of one evaluation
_KEY_ROOM = 1
_KEY_VARIABLE = 2
_KEY_SIGN = 3
_KEY_HINT = 4


@dataclass(frozen=True, slots=True)
class Intervention:
    kind: str
    room: str = "global"
    variable: str | None = None
    delta: float = 0.0
    data: dict[str, Any] = field(default_factory=dict)

    def event_data(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.kind}
        if self.variable is not None:
            payload["variable"] = self.variable
            payload["delta"] = self.delta
        payload.update(self.data)
        return payload


@dataclass(frozen=True, slots=True)
class WindowCounts:
    conflicts: int
    cooperation: int


class Director:
    __slots__ = ("_config", "_rng")

    def __init__(self, config: SimulationConfig, rng: DeterministicRNG) -> None:
        self._config = config
        self._rng = rng

    def due(self, tick: int) -> bool:
        return tick % self._config.director_interval == 0

    def window_counts(self, world: WorldState) -> WindowCounts:
        since = world.time_sec - self._config.director_window_seconds
        return WindowCounts(
            conflicts=world.events.count_since(EventKind.CONFLICT_RESOLVED, since),
            cooperation=world.events.count_since(EventKind.COOPERATION, since),
        )

    def evaluate(self, world: WorldState) -> list[Intervention]:
        """Interventions for this tick; empty when not due or inside the band.

        Pure with respect to *world*: the WorldLoop applies the result.
        """
        if not self.due(world.tick):
            return []

        cfg = self._config
        counts = self.window_counts(world)
        interventions: list[Intervention] = []

        if counts.conflicts < cfg.conflict_target_min:
            perturbation = self._perturbation(world)
            if perturbation is not None:
                interventions.append(perturbation)
        elif counts.conflicts > cfg.conflict_target_max:
            interventions.append(Intervention(
                kind="calming",
                data={
                    "target_temperature": cfg.comfort_temperature,
                    "target_light": cfg.comfort_light,
                    "rate": cfg.calming_rate,
                },
            ))

        if counts.cooperation < cfg.cooperation_target_min:
            hint = self._rng.choice(Domain.DIRECTOR, _KEY_HINT, world.tick, list(COOPERATION_HINTS))
            interventions.append(Intervention(
                kind="cooperation_opportunity",
                data={"hint": hint, "cooperation_bonus": cfg.cooperation_bonus},
            ))

        if interventions:
            logger.info(
                "Tick %d: director window conflicts=%d cooperation=%d → %s",
                world.tick, counts.conflicts, counts.cooperation,
                ", ".join(i.kind for i in interventions),
            )
        return interventions

    # -- internals --

    def _perturbation(self, world: WorldState) -> Intervention | None:
        room_ids = sorted(world.rooms)
        if not room_ids:
            return None
        tick = world.tick
        room_id = self._rng.choice(Domain.DIRECTOR, _KEY_ROOM, tick, room_ids)
        sign = 1.0 if self._rng.next_bool(Domain.DIRECTOR, _KEY_SIGN, tick) else -1.0
        if self._rng.next_bool(Domain.DIRECTOR, _KEY_VARIABLE, tick):
            variable, delta = "temperature", sign * TEMPERATURE_NUDGE
        else:
            variable, delta = "light", sign * LIGHT_NUDGE
        return Intervention(
            kind="perturbation",
            room=room_id,
            variable=variable,
            delta=delta,
            data={"cause": "environmental_shift", "intensity": PERTURBATION_INTENSITY},
        )
