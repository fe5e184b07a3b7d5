"""Default household: three rooms and the devices that live in them."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from habitat.config import InferenceConfig
from habitat.core.models import AgentRuntime, CapabilitySpec, Policies, RoomState
from habitat.core.world_state import WorldState
from habitat.systems.rng import DeterministicRNG
from habitat.utils.event_log import EventLog

if TYPE_CHECKING:
    from habitat.config import SimulationConfig
    from habitat.engine.world_loop import WorldLoop
    from habitat.planning.backend import InferenceBackend

logger = logging.getLogger(__name__)


DEFAULT_ROOMS: dict[str, RoomState] = {
    "living_room": RoomState(temperature=22.0, light=0.6, noise=0.1, humidity=0.45),
    "kitchen": RoomState(temperature=21.0, light=0.7, noise=0.2, humidity=0.5),
    "bedroom": RoomState(temperature=20.0, light=0.2, noise=0.05, humidity=0.4),
}

SMART_AC = CapabilitySpec(
    agent_type="smart_ac",
    actions=("cool", "heat", "fan"),
    goals=(("safety", 1.0), ("comfort", 0.8), ("efficiency", 0.6)),
)

EMOTION_LAMP = CapabilitySpec(
    agent_type="emotion_lamp",
    actions=("set_brightness", "set_color"),
    goals=(("comfort", 0.9), ("privacy", 0.4)),
)

SMART_SOFA = CapabilitySpec(
    agent_type="smart_sofa",
    actions=("resize", "set_firmness"),
    goals=(("comfort", 1.0), ("efficiency", 0.3)),
)

# (agent id, capability, room, initial memory)
DEFAULT_DEVICES: tuple[tuple[str, CapabilitySpec, str, dict], ...] = (
    ("ac_1", SMART_AC, "living_room", {}),
    ("lamp_1", EMOTION_LAMP, "living_room", {"color": "warm_white"}),
    ("sofa_1", SMART_SOFA, "living_room", {"size_cm": 180.0, "firmness": "medium"}),
)


def build_default_world(config: SimulationConfig, rng: DeterministicRNG) -> WorldState:
    """Seed a fresh world with the default rooms, devices and policies."""
    world = WorldState(
        seed=config.world_seed,
        policies=Policies(),
        event_log=EventLog(max_size=config.event_log_max, keep=config.event_log_keep),
    )
    for room_id, room in DEFAULT_ROOMS.items():
        world.add_room(room_id, room.copy())

    for agent_id, capability, room_id, memory in DEFAULT_DEVICES:
        agent = AgentRuntime(
            id=agent_id,
            capability=capability,
            room=room_id,
            memory=dict(memory),
            planning_phase=rng.planning_phase(agent_id, config.planning_phases),
        )
        world.add_agent(agent)
        logger.info("Spawned %s (%s) in %s, planning phase %d",
                    agent_id, capability.agent_type, room_id, agent.planning_phase)

    return world


def build_world_loop(
    config: SimulationConfig,
    inference: InferenceConfig | None = None,
    backend: InferenceBackend | None = None,
) -> WorldLoop:
    """Wire a default world, scheduler, mediator and director into a WorldLoop.

    *backend* overrides the HTTP client built from *inference*; with
    inference disabled every agent plans heuristically.
    """
    from habitat.engine.director import Director
    from habitat.engine.mediator import PriorityMediator
    from habitat.engine.world_loop import WorldLoop
    from habitat.planning.admission import AdmissionPolicy
    from habitat.planning.backend import OllamaBackend
    from habitat.planning.cache import ResponseCache
    from habitat.planning.scheduler import BatchScheduler

    inference = inference or InferenceConfig.from_env()
    if backend is None and inference.enabled:
        backend = OllamaBackend(inference)
    if backend is None:
        logger.info("Inference disabled — all agents will plan heuristically")
    else:
        logger.info("Inference backend: %s (%s)", inference.host, inference.model)

    rng = DeterministicRNG(config.world_seed)
    world = build_default_world(config, rng)
    scheduler = BatchScheduler(
        config,
        AdmissionPolicy(config),
        ResponseCache(config.cache_ttl_seconds, config.cache_max_entries),
        backend,
    )
    return WorldLoop(
        config=config,
        world=world,
        scheduler=scheduler,
        mediator=PriorityMediator(rng),
        director=Director(config, rng),
        rng=rng,
    )
