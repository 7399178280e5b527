"""Selection API routes."""

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ...app import Orchestrator
from ...errors import SelectionError, SessionFatalError


class SelectionRequest(BaseModel):
    """Request model for selecting a method."""

    service: str
    method: str


class SelectionResponse(BaseModel):
    """Response model for the current selection."""

    service: str | None = None
    method: str | None = None
    slot: int | None = None
    state: str | None = None
    records: int = 0
    pending: int = 0


def _describe(orchestrator: Orchestrator) -> dict:
    selection = orchestrator.selection
    correlator = orchestrator.correlator
    if selection is None or correlator is None:
        return {}
    return {
        "service": selection.service,
        "method": selection.method,
        "slot": selection.slot,
        "state": correlator.state.value,
        "records": correlator.records_count,
        "pending": correlator.pending_count,
    }


def create_selection_router(orchestrator: Orchestrator) -> APIRouter:
    """Create selection router."""
    router = APIRouter(prefix="/api/selection", tags=["selection"])

    @router.get("", response_model=SelectionResponse)
    async def get_selection() -> dict:
        """Method currently traced, if any."""
        return _describe(orchestrator)

    @router.post("", response_model=SelectionResponse)
    async def select_method(request: SelectionRequest) -> dict:
        """Trace another method."""
        try:
            await orchestrator.select(request.service, request.method)
        except SelectionError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except SessionFatalError as e:
            raise HTTPException(status_code=503, detail=str(e))
        except RuntimeError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return _describe(orchestrator)

    @router.delete("", response_model=SelectionResponse)
    async def clear_selection() -> dict:
        """Stop tracing."""
        await orchestrator.clear_selection()
        return {}

    return router
