"""Domain-separated deterministic RNG using xxhash.

Every draw is Hash(WorldSeed, Domain, Key, Tick), so the Director's
perturbations, passive drift and mediator tie-breaks replay identically
for a given seed regardless of how many inference calls happened.
"""

from __future__ import annotations

import struct

import xxhash

from habitat.core.enums import Domain


def stable_key(text: str) -> int:
    """Map a string id (agent or room) to a stable signed 32-bit key."""
    return xxhash.xxh32(text.encode("utf-8")).intdigest() - (1 << 31)


class DeterministicRNG:
    """Stateless domain-separated pseudo-random number generator.

    Each call is a pure function of (seed, domain, key, tick), so it is
    safe to share between threads.
    """

    __slots__ = ("_seed",)

    _MAX_UINT64 = (1 << 64) - 1

    def __init__(self, seed: int) -> None:
        self._seed = seed

    def _hash(self, domain: Domain, key: int, tick: int) -> int:
        payload = struct.pack("<qiqq", self._seed, domain.value, key, tick)
        return xxhash.xxh64(payload).intdigest()

    def next_float(self, domain: Domain, key: int, tick: int) -> float:
        """Return a deterministic float in [0.0, 1.0)."""
        return self._hash(domain, key, tick) / (self._MAX_UINT64 + 1)

    def next_int(self, domain: Domain, key: int, tick: int, low: int, high: int) -> int:
        """Return a deterministic integer in [low, high] inclusive."""
        f = self.next_float(domain, key, tick)
        return low + int(f * (high - low + 1))

    def next_bool(self, domain: Domain, key: int, tick: int, probability: float = 0.5) -> bool:
        return self.next_float(domain, key, tick) < probability

    def choice(self, domain: Domain, key: int, tick: int, items: list):
        if not items:
            raise ValueError("choice() from an empty list")
        return items[self.next_int(domain, key, tick, 0, len(items) - 1)]

    def planning_phase(self, agent_id: str, phases: int = 4) -> int:
        """Round-robin slot in [0, phases) for *agent_id*."""
        return self.next_int(Domain.PHASE, stable_key(agent_id), 0, 0, phases - 1)
