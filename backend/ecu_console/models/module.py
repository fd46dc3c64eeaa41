from enum import Enum

from pydantic import BaseModel, ConfigDict


class Priority(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Tab(str, Enum):
    DTC = "DTC"
    ECU_ID = "ECU_Id"
    LIVE_DATA = "Live_Data"
    ACTUATORS = "Actuators"
    ROUTINES = "Routines"


class ModuleCapabilities(BaseModel):
    model_config = ConfigDict(frozen=True)

    dtc_analysis: bool = True
    individual_freeze_frames: bool = True
    ecu_identification: bool = True
    live_data: bool = False
    actuator_testing: bool = False
    diagnostic_routines: bool = False


class ModuleDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    category: str
    priority: Priority
    capabilities: ModuleCapabilities
    protocols: tuple[str, ...] = ()
    supported_services: tuple[str, ...] = ()
    actuator_count: int = 0
    routine_count: int = 0
    live_data_parameters: int = 0


class ModuleProgress(BaseModel):
    dtc_analyzed: bool = False
    categories_viewed: list[str] = []
    freeze_frames_viewed: list[str] = []
    ecu_id_accessed: bool = False
    live_data_accessed: bool = False
    actuators_accessed: bool = False
    routines_accessed: bool = False
    last_updated: str | None = None
    session_count: int = 0


class ProgressUpdate(BaseModel):
    """Partial progress report. Only fields that were sent are merged."""

    model_config = ConfigDict(extra="forbid")

    dtc_analyzed: bool | None = None
    categories_viewed: list[str] | None = None
    freeze_frames_viewed: list[str] | None = None
    ecu_id_accessed: bool | None = None
    live_data_accessed: bool | None = None
    actuators_accessed: bool | None = None
    routines_accessed: bool | None = None


TabGateSet = dict[Tab, bool]


class ModuleHistoryEntry(BaseModel):
    timestamp: str
    activity: dict
    session_id: str | None = None


class ModuleSelection(BaseModel):
    module: ModuleDescriptor
    progress: ModuleProgress
    tabs: dict[Tab, bool]
