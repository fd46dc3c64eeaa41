from fastapi import APIRouter, Depends

from ecu_console.api.deps import get_console
from ecu_console.models.api import ActivityRequest, OperationResult, StartSessionRequest
from ecu_console.services.console import DiagnosticConsole

router = APIRouter()


@router.post("/sessions", response_model=OperationResult)
async def start_session(req: StartSessionRequest, console: DiagnosticConsole = Depends(get_console)):
    vehicle = console.vehicles.resolve(req.vin, req.model, req.year)
    return await console.start_session(vehicle)


@router.get("/sessions/current", response_model=OperationResult)
async def current_session(console: DiagnosticConsole = Depends(get_console)):
    return console.current_session()


@router.delete("/sessions/current", response_model=OperationResult)
async def end_session(console: DiagnosticConsole = Depends(get_console)):
    return console.end_session()


@router.get("/sessions/history", response_model=OperationResult)
async def session_history(console: DiagnosticConsole = Depends(get_console)):
    return console.session_history()


@router.post("/sessions/current/activity", response_model=OperationResult)
async def record_activity(req: ActivityRequest, console: DiagnosticConsole = Depends(get_console)):
    return console.record_activity(req.action, req.details)


@router.get("/sessions/current/modules/{module_id}/codes", response_model=OperationResult)
async def trouble_codes(module_id: str, console: DiagnosticConsole = Depends(get_console)):
    return await console.load_trouble_codes(module_id)


@router.delete("/cache", response_model=OperationResult)
async def clear_cache(console: DiagnosticConsole = Depends(get_console)):
    return console.clear_cache()
