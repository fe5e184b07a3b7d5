"""Enumerations used throughout the engine."""

from __future__ import annotations

from enum import IntEnum, unique


@unique
class AgentStatus(IntEnum):
    """Coarse per-tick status of a device agent."""

    IDLE = 0
    ACTING = 1
    CONFLICT = 2

    @property
    def label(self) -> str:
        return self.name.lower()


@unique
class ActionKind(IntEnum):
    """Closed set of actions a plan may carry into the world.

    Anything not listed here is rejected at application time.
    """

    HEAT = 0
    COOL = 1
    SET_TEMPERATURE = 2
    SET_BRIGHTNESS = 3
    SET_COLOR = 4
    SET_FIRMNESS = 5
    RESIZE = 6
    FAN = 7

    @classmethod
    def parse(cls, name: str) -> ActionKind | None:
        """Map an action name such as ``"set_brightness"`` to its kind, or None."""
        try:
            return cls[name.strip().upper()]
        except KeyError:
            return None

    @property
    def action_name(self) -> str:
        return self.name.lower()

    @property
    def is_temperature(self) -> bool:
        return self in (ActionKind.HEAT, ActionKind.COOL, ActionKind.SET_TEMPERATURE)

    @property
    def is_lighting(self) -> bool:
        return self in (ActionKind.SET_BRIGHTNESS, ActionKind.SET_COLOR)


@unique
class Domain(IntEnum):
    """RNG domain separators."""

    DIRECTOR = 0
    DRIFT = 1
    MEDIATION = 2
    PHASE = 3


class EventKind:
    """String kinds written to the world event log."""

    PERFORMANCE_STATS = "performance_stats"
    AGENT_LOOP_ERROR = "agent_loop_error"
    DIRECTOR_EVENT = "director_event"
    AGENT_ACTION = "agent_action"
    CONFLICT_RESOLVED = "conflict_resolved"
    COOPERATION = "cooperation"
    MESSAGE = "message"
