"""GET /api/v1/state, /events, /status — live world data polled by clients."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from habitat.api.dependencies import get_engine_manager
from habitat.api.engine_manager import EngineManager
from habitat.api.schemas import (
    AgentSchema,
    EventListResponse,
    EventSchema,
    ResourceSchema,
    RoomSchema,
    SimulationStatus,
    WorldStateResponse,
)

router = APIRouter()


@router.get("/state", response_model=WorldStateResponse)
def get_state(manager: EngineManager = Depends(get_engine_manager)) -> WorldStateResponse:
    snapshot = manager.get_snapshot()
    if snapshot is None:
        raise HTTPException(status_code=503, detail="Simulation not initialized.")

    rooms = [
        RoomSchema(room_id=rid, temperature=r.temperature, light=r.light, noise=r.noise, humidity=r.humidity)
        for rid, r in sorted(snapshot.rooms.items())
    ]
    agents = [
        AgentSchema(
            agent_id=a.id,
            agent_type=a.capability.agent_type,
            room=a.room,
            status=a.status.label,
            planning_phase=a.planning_phase,
            actions=list(a.capability.actions),
            memory=dict(a.memory),
        )
        for _, a in sorted(snapshot.agents.items())
    ]
    res = snapshot.resources
    return WorldStateResponse(
        tick=snapshot.tick,
        time_sec=snapshot.time_sec,
        health=snapshot.health,
        resources=ResourceSchema(power_kw=res.power_kw, bandwidth=res.bandwidth, privacy_budget=res.privacy_budget),
        rooms=rooms,
        agents=agents,
    )


@router.get("/events", response_model=EventListResponse)
def get_events(
    since: float | None = Query(None, description="Only events with timestamp >= since (world seconds)"),
    limit: int = Query(100, ge=1, le=500),
    kind: str | None = Query(None, description="Filter by event kind"),
    manager: EngineManager = Depends(get_engine_manager),
) -> EventListResponse:
    events = manager.get_events(since=since, limit=500)
    if kind is not None:
        events = [e for e in events if e.kind == kind]
    events = events[-limit:]
    return EventListResponse(
        count=len(events),
        events=[EventSchema(**e.as_dict()) for e in events],
    )


@router.get("/status", response_model=SimulationStatus)
def get_status(manager: EngineManager = Depends(get_engine_manager)) -> SimulationStatus:
    snapshot = manager.get_snapshot()
    return SimulationStatus(
        tick=snapshot.tick if snapshot else 0,
        running=manager.running,
        paused=manager.paused,
    )
