"""Fingerprint-keyed plan cache with TTL expiry and LRU size bound."""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from habitat.core.models import AgentPlan

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CacheEntry:
    fingerprint: str
    plan: AgentPlan
    created_at: float
    hits: int = 0


class ResponseCache:
    """Stores inferred plans by context fingerprint.

    Expiry is pull-based: a lookup evicts the entry it finds expired, and
    every insertion sweeps all expired entries. Past ``max_entries`` the
    least recently used entry is evicted.
    """

    __slots__ = ("_entries", "_ttl", "_max_entries", "_clock", "_total_hits", "_evictions")

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 512,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._ttl = ttl_seconds
        self._max_entries = max(1, max_entries)
        self._clock = clock
        self._total_hits = 0
        self._evictions = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: str) -> bool:
        entry = self._entries.get(fingerprint)
        return entry is not None and not self._expired(entry, self._clock())

    @property
    def total_hits(self) -> int:
        return self._total_hits

    @property
    def evictions(self) -> int:
        return self._evictions

    @property
    def hit_rate(self) -> float:
        """Total hits over live entries; a coarse diagnostic, not per-entry."""
        if not self._entries:
            return 0.0
        return self._total_hits / len(self._entries)

    def get(self, fingerprint: str) -> AgentPlan | None:
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            del self._entries[fingerprint]
            self._evictions += 1
            return None
        entry.hits += 1
        self._total_hits += 1
        self._entries.move_to_end(fingerprint)
        return entry.plan

    def put(self, fingerprint: str, plan: AgentPlan) -> None:
        now = self._clock()
        self._purge_expired(now)
        self._entries[fingerprint] = CacheEntry(fingerprint=fingerprint, plan=plan, created_at=now)
        self._entries.move_to_end(fingerprint)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.debug("Cache full: evicted least recently used %s", evicted)

    def purge_expired(self) -> int:
        return self._purge_expired(self._clock())

    def clear(self) -> None:
        self._entries.clear()
        self._total_hits = 0

    # -- internals --

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at > self._ttl

    def _purge_expired(self, now: float) -> int:
        stale = [fp for fp, entry in self._entries.items() if self._expired(entry, now)]
        for fp in stale:
            del self._entries[fp]
        self._evictions += len(stale)
        return len(stale)
