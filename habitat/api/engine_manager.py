"""EngineManager — runs the WorldLoop on a background thread.

The API reads from an atomically-swapped immutable Snapshot; the WorldLoop
mutates WorldState exclusively on its own thread (single writer preserved).
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

from habitat.core.snapshot import Snapshot
from habitat.systems.scenario import build_world_loop

if TYPE_CHECKING:
    from habitat.config import InferenceConfig, SimulationConfig
    from habitat.engine.world_loop import WorldLoop
    from habitat.planning.backend import InferenceBackend
    from habitat.planning.scheduler import SchedulerStats
    from habitat.utils.event_log import WorldEvent

logger = logging.getLogger(__name__)


class EngineManager:
    """Manages the simulation lifecycle on a background thread.

    Provides thread-safe access to:
      - latest snapshot (atomic reference swap)
      - world event log (lock-guarded)
      - scheduler statistics as of the last completed tick
      - control commands (start / pause / resume / step / reset)
    """

    def __init__(
        self,
        config: SimulationConfig,
        inference: InferenceConfig | None = None,
        backend: InferenceBackend | None = None,
    ) -> None:
        self._config = config
        self._inference = inference
        self._backend = backend
        self._tick_rate: float = 1.0  # seconds between ticks

        self._loop: WorldLoop | None = None

        # Thread-safe shared state
        self._snapshot_lock = threading.Lock()
        self._latest_snapshot: Snapshot | None = None
        self._latest_stats: SchedulerStats | None = None

        # Control
        self._thread: threading.Thread | None = None
        self._running = threading.Event()
        self._paused = threading.Event()
        self._step_requested = threading.Event()
        self._stop_requested = threading.Event()  # replaced per run

        self._build()

    # -- public properties --

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def running(self) -> bool:
        return self._running.is_set()

    @property
    def paused(self) -> bool:
        return self._paused.is_set()

    @property
    def tick_rate(self) -> float:
        return self._tick_rate

    @tick_rate.setter
    def tick_rate(self, value: float) -> None:
        self._tick_rate = max(0.01, min(value, 10.0))

    @property
    def inference_enabled(self) -> bool:
        return self._loop is not None and self._loop.scheduler.inference_enabled

    # -- snapshot access --

    def get_snapshot(self) -> Snapshot | None:
        with self._snapshot_lock:
            return self._latest_snapshot

    def get_stats(self) -> SchedulerStats | None:
        with self._snapshot_lock:
            return self._latest_stats

    def get_events(self, since: float | None = None, limit: int = 100) -> list[WorldEvent]:
        if self._loop is None:
            return []
        events = self._loop.world.events
        items = events.since(since) if since is not None else events.all()
        return items[-limit:] if limit > 0 else []

    # -- lifecycle --

    def start(self) -> None:
        if self._running.is_set():
            return
        assert self._loop is not None
        self._stop_requested = threading.Event()
        self._paused.clear()
        self._running.set()
        self._thread = threading.Thread(
            target=self._run_loop,
            args=(self._loop, self._stop_requested),
            name="world-loop",
            daemon=True,
        )
        self._thread.start()
        logger.info("Simulation started.")

    def pause(self) -> None:
        self._paused.set()
        logger.info("Simulation paused.")

    def resume(self) -> None:
        self._paused.clear()
        logger.info("Simulation resumed.")

    def step(self) -> None:
        """Execute exactly one tick while paused."""
        self._step_requested.set()

    def stop(self) -> None:
        self._stop_requested.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            if self._thread.is_alive():
                logger.warning("Engine thread still finishing a tick, waiting for it to exit.")
                self._thread.join()
            self._thread = None
        self._running.clear()
        if self._loop is not None:
            self._loop.scheduler.shutdown()
        logger.info("Simulation stopped.")

    def reset(self) -> None:
        """Stop, rebuild the world from scratch, and restart if it was running."""
        was_running = self.running
        self.stop()
        self._build()
        if was_running:
            self.start()
        logger.info("Simulation reset.")

    def tick_now(self) -> int:
        """Run one tick on the caller's thread. Only valid while stopped."""
        if self.running:
            raise RuntimeError("tick_now() requires the engine thread to be stopped")
        assert self._loop is not None
        self._loop.tick_once()
        self._publish()
        return self._loop.world.tick

    # -- internals --

    def _build(self) -> None:
        self._loop = build_world_loop(self._config, self._inference, self._backend)
        self._publish()

    def _run_loop(self, loop: WorldLoop, stop_requested: threading.Event) -> None:
        """Background thread main loop, bound to one WorldLoop for its whole life."""
        logger.info("Engine thread started.")

        while not stop_requested.is_set():
            if self._paused.is_set() and not self._step_requested.is_set():
                time.sleep(0.01)
                continue

            single_step = self._step_requested.is_set()
            if single_step:
                self._step_requested.clear()

            if not loop.tick_once():
                self._publish()
                logger.info("Simulation ended at tick %d.", loop.world.tick)
                break

            self._publish()

            if not single_step:
                stop_requested.wait(self._tick_rate)

        self._running.clear()
        logger.info("Engine thread exited.")

    def _publish(self) -> None:
        """Swap in a fresh snapshot and scheduler stats."""
        assert self._loop is not None
        snap = self._loop.create_snapshot()
        stats = self._loop.scheduler.stats()
        with self._snapshot_lock:
            self._latest_snapshot = snap
            self._latest_stats = stats
