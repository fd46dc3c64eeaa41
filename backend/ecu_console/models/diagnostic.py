from enum import Enum

from pydantic import BaseModel


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FreezeFrameParameter(BaseModel):
    name: str
    value: float | int | str
    unit: str = ""


class TroubleCode(BaseModel):
    code: str
    description: str
    severity: Severity = Severity.MEDIUM
    occurrence_count: int = 1
    category: str = ""
    status: str = "active"
    freeze_frame: list[FreezeFrameParameter] = []
