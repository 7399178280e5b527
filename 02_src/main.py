"""Main entry point for bustop."""

import asyncio
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from bustop.api import create_fastapi_app
from bustop.app import Orchestrator
from bustop.config import MonitorConfig
from bustop.logging_config import get_logger, setup_logging
from sim import SimulatedBus

logger = get_logger(__name__)


async def serve(config: MonitorConfig) -> None:
    """Serve the display API until shutdown or a session-fatal error."""
    # A real bus adapter plugs in here; the simulated bus stands in for it
    bus = SimulatedBus()
    await bus.start()

    orchestrator = Orchestrator(bus, config)
    app = create_fastapi_app(orchestrator)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.api_host,
            port=config.api_port,
            log_level="info",
            log_config=None,
        )
    )

    async def watch_session() -> None:
        await orchestrator.wait_stopped()
        server.should_exit = True

    watcher = asyncio.create_task(watch_session())
    try:
        await server.serve()
    finally:
        watcher.cancel()
        await bus.stop()

    if orchestrator.fatal_error is not None:
        raise orchestrator.fatal_error


def main():
    """Run the monitor."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    setup_logging()
    config = MonitorConfig.from_env()
    logger.info("bustop listening on http://%s:%s", config.api_host, config.api_port)

    asyncio.run(serve(config))


if __name__ == "__main__":
    main()
