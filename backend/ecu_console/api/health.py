from fastapi import APIRouter, Depends

from ecu_console.api.deps import get_console
from ecu_console.models.api import OperationResult
from ecu_console.services.console import DiagnosticConsole

router = APIRouter()


@router.get("/health", response_model=OperationResult)
async def health_check(console: DiagnosticConsole = Depends(get_console)):
    active = console.sessions.active
    return OperationResult.ok(
        {
            "status": "ok",
            "session_state": console.sessions.state.value,
            "active_session": active.id if active else None,
            "data_source": console.data_source.name,
            "data_source_configured": console.data_source.is_configured(),
        }
    )
