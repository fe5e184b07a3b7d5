"""Simulation configuration with sensible defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _truthy_env(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _first_non_empty(*values: str | None) -> str | None:
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


@dataclass(frozen=True)
class InferenceConfig:
    """Where and how to reach the generative inference backend."""

    host: str = "http://localhost:11434"
    model: str = "mistral"
    enabled: bool = True
    timeout_seconds: float = 30.0

    # Sampling
    temperature: float = 0.7
    top_p: float = 0.9
    max_output_tokens: int = 512

    @classmethod
    def from_env(cls) -> InferenceConfig:
        """Read backend address and model name from the environment, falling back to defaults."""
        host = _first_non_empty(os.environ.get("OLLAMA_HOST")) or cls.host
        model = _first_non_empty(os.environ.get("OLLAMA_MODEL")) or cls.model
        raw_timeout = _first_non_empty(os.environ.get("HABITAT_INFERENCE_TIMEOUT"))
        try:
            timeout = float(raw_timeout) if raw_timeout else cls.timeout_seconds
        except ValueError:
            timeout = cls.timeout_seconds
        return cls(
            host=host.rstrip("/"),
            model=model,
            enabled=_truthy_env("HABITAT_INFERENCE_ENABLED", default=True),
            timeout_seconds=timeout,
        )


@dataclass(frozen=True)
class SimulationConfig:
    """Immutable configuration for the simulation run."""

    # World
    world_seed: int = 42
    tick_seconds: float = 10.0
    max_ticks: int = 5000

    # Scheduling
    max_calls_per_tick: int = 2
    batch_window_seconds: float = 1.0
    dispatch_timeout_seconds: float = 35.0

    # Admission
    deep_think_interval: int = 6
    planning_phases: int = 4
    temperature_drift_threshold: float = 0.5
    recent_message_seconds: float = 60.0

    # Cache
    cache_ttl_seconds: float = 300.0
    cache_max_entries: int = 512

    # Physics
    temperature_min: float = 18.0
    temperature_max: float = 28.0
    max_temperature_step: float = 0.5
    brightness_easing: float = 0.3
    max_size_step: float = 10.0

    # Event log
    event_log_max: int = 200
    event_log_keep: int = 100

    # Derived metrics
    metrics_window_seconds: float = 60.0
    cooperation_weight: float = 0.05
    conflict_weight: float = 0.10
    health_recovery: float = 0.01
    base_power_kw: float = 0.5
    power_per_acting_kw: float = 0.3

    # Director
    director_interval: int = 8
    director_window_seconds: float = 300.0
    conflict_target_min: int = 1
    conflict_target_max: int = 3
    cooperation_target_min: int = 2
    calming_rate: float = 0.1
    comfort_temperature: float = 22.0
    comfort_light: float = 0.5
    cooperation_bonus: float = 0.5

    # Diagnostics
    stats_interval: int = 10

    # Logging
    log_level: str = "INFO"
