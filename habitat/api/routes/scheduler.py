"""GET /api/v1/scheduler — planning scheduler statistics."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from habitat.api.dependencies import get_engine_manager
from habitat.api.engine_manager import EngineManager
from habitat.api.schemas import SchedulerStatsResponse

router = APIRouter()


@router.get("/scheduler", response_model=SchedulerStatsResponse)
def get_scheduler_stats(manager: EngineManager = Depends(get_engine_manager)) -> SchedulerStatsResponse:
    stats = manager.get_stats()
    if stats is None:
        raise HTTPException(status_code=503, detail="Simulation not initialized.")
    return SchedulerStatsResponse(
        **stats.as_dict(),
        max_calls_per_tick=manager.config.max_calls_per_tick,
        inference_enabled=manager.inference_enabled,
    )
