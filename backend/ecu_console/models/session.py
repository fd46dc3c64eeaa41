from enum import Enum

from pydantic import BaseModel

from ecu_console.models.module import Priority


class ManagerState(str, Enum):
    NONE = "none"
    STARTING = "starting"
    ACTIVE = "active"
    COMPLETED = "completed"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class VehicleProfile(BaseModel):
    id: str
    vin: str = ""
    model: str = ""
    year: int | None = None
    ecu_modules: list[str] = []


class DetectedModule(BaseModel):
    module_id: str
    name: str
    category: str
    priority: Priority
    dtc_count: int = 0
    critical_dtc_count: int = 0


class SessionAction(BaseModel):
    action: str
    timestamp: str
    details: dict = {}


class DiagnosticSession(BaseModel):
    id: str
    vehicle_id: str
    vehicle_vin: str = ""
    vehicle_model: str = ""
    start_time: str
    end_time: str | None = None
    duration_ms: int | None = None
    status: SessionStatus = SessionStatus.ACTIVE
    modules: list[DetectedModule] = []
    total_dtcs: int = 0
    critical_dtcs: int = 0
    protocols_used: list[str] = []
    services_supported: list[str] = []
    pages_visited: list[str] = ["dashboard"]
    last_activity: str | None = None
    actions: list[SessionAction] = []

    def module(self, module_id: str) -> DetectedModule | None:
        for detected in self.modules:
            if detected.module_id == module_id:
                return detected
        return None
