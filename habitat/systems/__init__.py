"""Engine systems: RNG and scenario seeding."""

from habitat.systems.rng import DeterministicRNG
from habitat.systems.scenario import build_default_world

__all__ = ["DeterministicRNG", "build_default_world"]
