from fastapi import APIRouter, Depends

from ecu_console.api.deps import get_console
from ecu_console.models.api import NavigateRequest, OperationResult
from ecu_console.services.console import DiagnosticConsole

router = APIRouter()


@router.get("/navigation", response_model=OperationResult)
async def current_route(console: DiagnosticConsole = Depends(get_console)):
    return console.current_route()


@router.post("/navigation", response_model=OperationResult)
async def navigate(req: NavigateRequest, console: DiagnosticConsole = Depends(get_console)):
    return console.navigate(req.route, req.params)


@router.post("/navigation/back", response_model=OperationResult)
async def back(console: DiagnosticConsole = Depends(get_console)):
    return console.back()
