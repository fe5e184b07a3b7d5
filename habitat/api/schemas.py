"""Pydantic response models for the REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# --- World State ---

class RoomSchema(BaseModel):
    room_id: str
    temperature: float
    light: float = Field(description="Normalized light level, 0..1")
    noise: float
    humidity: float


class AgentSchema(BaseModel):
    agent_id: str
    agent_type: str
    room: str
    status: str = Field(description="idle | acting | conflict")
    planning_phase: int | None = None
    actions: list[str] = Field(default_factory=list)
    memory: dict[str, Any] = Field(default_factory=dict)


class ResourceSchema(BaseModel):
    power_kw: float
    bandwidth: float
    privacy_budget: float


class WorldStateResponse(BaseModel):
    tick: int
    time_sec: float
    health: float
    resources: ResourceSchema
    rooms: list[RoomSchema]
    agents: list[AgentSchema]


# --- Events ---

class EventSchema(BaseModel):
    timestamp: float
    room: str
    kind: str
    device_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class EventListResponse(BaseModel):
    count: int
    events: list[EventSchema]


# --- Scheduler ---

class SchedulerStatsResponse(BaseModel):
    cache_size: int
    cache_hit_rate: float = Field(description="Total hits divided by live cache entries")
    pending_requests: int
    calls_this_tick: int
    current_tick: int
    dispatched_total: int
    failures_total: int
    cache_hits_total: int
    heuristic_total: int
    max_calls_per_tick: int
    inference_enabled: bool


# --- Control ---

class ControlResponse(BaseModel):
    status: str
    message: str
    tick: int = 0


# --- Config ---

class SimulationConfigResponse(BaseModel):
    world_seed: int
    tick_seconds: float
    max_ticks: int
    max_calls_per_tick: int
    batch_window_seconds: float
    deep_think_interval: int
    cache_ttl_seconds: float
    cache_max_entries: int
    director_interval: int
    event_log_max: int
    event_log_keep: int
    tick_rate: float
    inference_enabled: bool


# --- Status ---

class SimulationStatus(BaseModel):
    tick: int
    running: bool
    paused: bool
