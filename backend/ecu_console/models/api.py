from typing import Any

from pydantic import BaseModel

from ecu_console.errors import DiagnosticError


class ErrorInfo(BaseModel):
    code: str
    message: str


class OperationResult(BaseModel):
    success: bool
    data: Any = None
    error: ErrorInfo | None = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json")
        elif isinstance(data, list):
            data = [d.model_dump(mode="json") if isinstance(d, BaseModel) else d for d in data]
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: DiagnosticError) -> "OperationResult":
        return cls(success=False, error=ErrorInfo(code=error.code, message=error.message))


class StartSessionRequest(BaseModel):
    vin: str = ""
    model: str
    year: int | None = None


class ActivityRequest(BaseModel):
    action: str
    details: dict = {}


class NavigateRequest(BaseModel):
    route: str
    params: dict = {}
