"""Entry point: ``python -m habitat``.

Supports two modes:
  - ``python -m habitat serve``  → FastAPI server with the engine on a background thread
  - ``python -m habitat cli``    → Headless run for a fixed number of ticks
"""

from __future__ import annotations

import argparse
import dataclasses
import logging

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tick-driven smart-home planning scheduler")
    sub = parser.add_subparsers(dest="command")

    # --- Server mode (default) ---
    srv = sub.add_parser("serve", help="Start the FastAPI server (default)")
    srv.add_argument("--host", type=str, default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)
    srv.add_argument("--seed", type=int, default=42)
    srv.add_argument("--no-inference", action="store_true", help="Plan heuristically only")
    srv.add_argument("--paused", action="store_true", help="Do not start ticking until /control/start")
    srv.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING"])

    # --- Headless CLI mode ---
    cli = sub.add_parser("cli", help="Run a headless simulation")
    cli.add_argument("--seed", type=int, default=42)
    cli.add_argument("--ticks", type=int, default=100)
    cli.add_argument("--no-inference", action="store_true", help="Plan heuristically only")
    cli.add_argument("--log-level", type=str, default="INFO", choices=["DEBUG", "INFO", "WARNING"])

    return parser


def _inference_config(args: argparse.Namespace):
    from habitat.config import InferenceConfig

    inference = InferenceConfig.from_env()
    if args.no_inference:
        inference = dataclasses.replace(inference, enabled=False)
    return inference


def _run_server(args: argparse.Namespace) -> None:
    import uvicorn

    from habitat.api.app import create_app
    from habitat.config import SimulationConfig

    config = SimulationConfig(world_seed=args.seed, log_level=args.log_level)
    app = create_app(config, _inference_config(args), autostart=not args.paused)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


def _run_cli(args: argparse.Namespace) -> None:
    from habitat.config import SimulationConfig
    from habitat.systems.scenario import build_world_loop
    from habitat.utils.logging import setup_logging

    config = SimulationConfig(world_seed=args.seed, max_ticks=args.ticks, log_level=args.log_level)
    setup_logging(config.log_level)

    loop = build_world_loop(config, _inference_config(args))
    try:
        loop.run()
    finally:
        loop.scheduler.shutdown()

    world = loop.world
    stats = loop.scheduler.stats()
    logger.info("Final health=%.2f power=%.2fkW failed_ticks=%d", world.health,
                world.resources.power_kw, loop.failed_ticks)
    logger.info("Scheduler: dispatched=%d failures=%d cache_hits=%d heuristic=%d cache_size=%d",
                stats.dispatched_total, stats.failures_total, stats.cache_hits_total,
                stats.heuristic_total, stats.cache_size)
    for room_id, room in sorted(world.rooms.items()):
        logger.info("  %-12s temp=%.2f light=%.2f humidity=%.2f",
                    room_id, room.temperature, room.light, room.humidity)


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    # Default to serve mode if no subcommand given
    if args.command is None or args.command == "serve":
        if args.command is None:
            args = parser.parse_args(["serve"])
        _run_server(args)
    elif args.command == "cli":
        _run_cli(args)


if __name__ == "__main__":
    main()
