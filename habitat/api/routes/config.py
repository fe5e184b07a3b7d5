"""GET /api/v1/config — expose simulation configuration."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from habitat.api.dependencies import get_engine_manager
from habitat.api.engine_manager import EngineManager
from habitat.api.schemas import SimulationConfigResponse

router = APIRouter()


@router.get("/config", response_model=SimulationConfigResponse)
def get_config(
    manager: EngineManager = Depends(get_engine_manager),
) -> SimulationConfigResponse:
    cfg = manager.config
    return SimulationConfigResponse(
        world_seed=cfg.world_seed,
        tick_seconds=cfg.tick_seconds,
        max_ticks=cfg.max_ticks,
        max_calls_per_tick=cfg.max_calls_per_tick,
        batch_window_seconds=cfg.batch_window_seconds,
        deep_think_interval=cfg.deep_think_interval,
        cache_ttl_seconds=cfg.cache_ttl_seconds,
        cache_max_entries=cfg.cache_max_entries,
        director_interval=cfg.director_interval,
        event_log_max=cfg.event_log_max,
        event_log_keep=cfg.event_log_keep,
        tick_rate=manager.tick_rate,
        inference_enabled=manager.inference_enabled,
    )
