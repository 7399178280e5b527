"""Time-series API routes."""

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from ...app import IOrchestrator


class SeriesResponse(BaseModel):
    """Response model for a plotted series."""

    name: str
    values: list[float]


def create_series_router(orchestrator: IOrchestrator) -> APIRouter:
    """Create series router."""
    router = APIRouter(prefix="/api/series", tags=["series"])

    @router.get("/{name}", response_model=SeriesResponse)
    async def get_series(
        name: str,
        limit: int = Query(100, ge=0, le=10000, description="Display capacity"),
    ) -> dict:
        """Most recent samples of one series of the selected method."""
        try:
            values = orchestrator.series(name, limit)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown series: {name}")
        return {"name": name, "values": values}

    return router
