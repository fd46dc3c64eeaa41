from fastapi import APIRouter, Depends

from ecu_console.api.deps import get_console
from ecu_console.models.api import OperationResult
from ecu_console.models.module import ProgressUpdate
from ecu_console.services.console import DiagnosticConsole

router = APIRouter()


@router.get("/modules", response_model=OperationResult)
async def list_modules(console: DiagnosticConsole = Depends(get_console)):
    return console.list_modules()


@router.delete("/modules/progress", response_model=OperationResult)
async def reset_progress(module_id: str | None = None, console: DiagnosticConsole = Depends(get_console)):
    return console.reset_progress(module_id)


@router.get("/modules/{module_id}", response_model=OperationResult)
async def describe_module(module_id: str, console: DiagnosticConsole = Depends(get_console)):
    return console.describe_module(module_id)


@router.post("/modules/{module_id}/select", response_model=OperationResult)
async def select_module(module_id: str, console: DiagnosticConsole = Depends(get_console)):
    return console.select_module(module_id)


@router.post("/modules/{module_id}/progress", response_model=OperationResult)
async def report_progress(
    module_id: str,
    update: ProgressUpdate,
    console: DiagnosticConsole = Depends(get_console),
):
    return console.report_progress(module_id, update)


@router.get("/modules/{module_id}/progress", response_model=OperationResult)
async def module_progress(module_id: str, console: DiagnosticConsole = Depends(get_console)):
    return console.module_progress(module_id)


@router.get("/modules/{module_id}/history", response_model=OperationResult)
async def module_history(module_id: str, console: DiagnosticConsole = Depends(get_console)):
    return console.module_history(module_id)


@router.get("/modules/{module_id}/tabs", response_model=OperationResult)
async def tab_gates(module_id: str, console: DiagnosticConsole = Depends(get_console)):
    return console.tab_gates(module_id)


@router.get("/modules/{module_id}/tabs/{tab}", response_model=OperationResult)
async def is_tab_unlocked(module_id: str, tab: str, console: DiagnosticConsole = Depends(get_console)):
    return console.is_tab_unlocked(module_id, tab)
