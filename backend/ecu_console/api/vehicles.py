from fastapi import APIRouter, Depends, Query

from ecu_console.api.deps import get_console
from ecu_console.models.api import OperationResult
from ecu_console.services.console import DiagnosticConsole

router = APIRouter()


@router.get("/vehicles/search", response_model=OperationResult)
async def search_vehicles(
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=50),
    console: DiagnosticConsole = Depends(get_console),
):
    return console.search_vehicles(q, limit=limit)
