"""Core data models and world representation."""

from habitat.core.context import ContextLookupError, PlanningContext, build_context
from habitat.core.enums import ActionKind, AgentStatus, Domain, EventKind
from habitat.core.models import AgentPlan, AgentRuntime, CapabilitySpec, Policies, RoomState
from habitat.core.snapshot import Snapshot
from habitat.core.world_state import WorldState

__all__ = [
    "ActionKind",
    "AgentPlan",
    "AgentRuntime",
    "AgentStatus",
    "CapabilitySpec",
    "ContextLookupError",
    "Domain",
    "EventKind",
    "PlanningContext",
    "Policies",
    "RoomState",
    "Snapshot",
    "WorldState",
    "build_context",
]
