"""Ranking API routes."""

from fastapi import APIRouter
from pydantic import BaseModel

from ...app import IOrchestrator


class RankingRowResponse(BaseModel):
    """Response model for one ranked method."""

    rank: int
    count: int
    min_latency_us: float
    max_latency_us: float
    avg_latency_us: float
    action: str


class RankingLinesResponse(BaseModel):
    """Response model for the tabular ranking."""

    lines: list[str]


def create_ranking_router(orchestrator: IOrchestrator) -> APIRouter:
    """Create ranking router."""
    router = APIRouter(prefix="/api/ranking", tags=["ranking"])

    @router.get("", response_model=list[RankingRowResponse])
    async def get_ranking() -> list[dict]:
        """Most used methods, latest poll."""
        return [
            {
                "rank": row.rank,
                "count": row.count,
                "min_latency_us": row.min_latency_us,
                "max_latency_us": row.max_latency_us,
                "avg_latency_us": row.avg_latency_us,
                "action": row.action,
            }
            for row in orchestrator.ranking_snapshot()
        ]

    @router.get("/lines", response_model=RankingLinesResponse)
    async def get_ranking_lines() -> dict:
        """Ranking as text lines, header first."""
        return {"lines": orchestrator.ranking_lines()}

    return router
