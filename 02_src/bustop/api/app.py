"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..app import Orchestrator
from .routes import ranking, selection, series


def create_fastapi_app(
    orchestrator: Orchestrator,
    manage_lifecycle: bool = True,
) -> FastAPI:
    """Create the display API around an orchestrator.

    With manage_lifecycle the orchestrator is started and stopped by the
    application lifespan; otherwise the caller owns it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        if manage_lifecycle:
            await orchestrator.start()
        yield
        # Shutdown
        if manage_lifecycle:
            await orchestrator.stop()

    fastapi_app = FastAPI(
        title="bustop API",
        description="Method ranking and call traces of a remote object bus",
        version="0.1.0",
        lifespan=lifespan,
    )

    fastapi_app.include_router(ranking.create_ranking_router(orchestrator))
    fastapi_app.include_router(series.create_series_router(orchestrator))
    fastapi_app.include_router(selection.create_selection_router(orchestrator))

    return fastapi_app
