"""FastAPI application factory with lifespan management."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from habitat.api.dependencies import set_engine_manager
from habitat.api.engine_manager import EngineManager
from habitat.api.routes import api_router
from habitat.config import InferenceConfig, SimulationConfig
from habitat.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def create_app(
    config: SimulationConfig | None = None,
    inference: InferenceConfig | None = None,
    autostart: bool = True,
) -> FastAPI:
    """Build and return the fully-configured FastAPI application."""
    if config is None:
        config = SimulationConfig()

    _config = config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging(_config.log_level)
        manager = EngineManager(_config, inference)
        set_engine_manager(manager)
        if autostart:
            manager.start()
        logger.info("API server started — simulation %s.", "running" if autostart else "stopped")
        yield
        manager.stop()
        set_engine_manager(None)
        logger.info("API server shutting down.")

    app = FastAPI(
        title="Habitat Planning Scheduler",
        description=(
            "Tick-driven multi-agent smart-home simulation with budgeted inference planning.\n\n"
            "## API Groups\n\n"
            "- **State** — Rooms, devices, harmony, resource usage and the world event log\n"
            "- **Scheduler** — Inference budget, cache and fallback statistics\n"
            "- **Control** — Simulation lifecycle: start, pause, resume, step, reset\n"
            "- **Config** — Read-only simulation configuration\n"
        ),
        version="0.1.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "State", "description": "Live world state and event log, polled by clients."},
            {"name": "Scheduler", "description": "Per-tick inference budget usage, cache size and hit rate, fallbacks."},
            {"name": "Control", "description": "Simulation lifecycle controls: start, pause, resume, single-step, and reset."},
            {"name": "Config", "description": "Read-only simulation configuration parameters."},
        ],
    )

    # CORS: allow any origin in dev
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    return app
