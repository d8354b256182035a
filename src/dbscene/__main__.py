import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

import uvicorn

from .api.app import init_app
from .common.exceptions import DbsceneError
from .core.config import SystemConfig
from .core.control import BridgeController

logger = logging.getLogger("dbscene")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="DS100 to QLab scene bridge")
    parser.add_argument("--config", help="Path to a YAML configuration file")
    parser.add_argument(
        "--no-api", action="store_true", help="Run the OSC bridge without the HTTP API"
    )
    parser.add_argument("--host", help="Control API host (overrides config)")
    parser.add_argument("--port", type=int, help="Control API port (overrides config)")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (overrides the configured verbosity)",
    )
    return parser.parse_args(argv)


def setup_logging(config: SystemConfig, override: Optional[str] = None) -> None:
    level = getattr(logging, override.upper()) if override else config.log_level
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def run_bridge(config: SystemConfig) -> None:
    """Run the OSC bridge until SIGINT or SIGTERM"""
    controller = BridgeController(config)
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, shutdown_event.set)
        except NotImplementedError:
            pass

    await controller.start()
    logger.info(f"dbscene: listening for scene commands on port {controller.listen_port}")
    try:
        await shutdown_event.wait()
    finally:
        await controller.stop()


async def run_with_api(config: SystemConfig, host: str, port: int) -> None:
    """Run the bridge behind the HTTP control API"""
    app = init_app(config=config)
    log_level = logging.getLevelName(config.log_level).lower()
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level=log_level))
    await server.serve()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        config = (
            SystemConfig.from_yaml(args.config) if args.config else SystemConfig.create_default()
        )
    except DbsceneError as e:
        print(f"dbscene: {e}", file=sys.stderr)
        return 2

    setup_logging(config, args.log_level)

    try:
        if args.no_api:
            asyncio.run(run_bridge(config))
        else:
            asyncio.run(
                run_with_api(config, args.host or config.api.host, args.port or config.api.port)
            )
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except DbsceneError as e:
        logger.error(f"dbscene: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
