class DiagnosticError(Exception):
    """Base class for failures reported back to the console as structured errors."""

    code: str = "diagnostic_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnknownModule(DiagnosticError):
    code = "unknown_module"

    def __init__(self, module_id: str, message: str | None = None):
        super().__init__(message or f"Unknown ECU module: {module_id}")
        self.module_id = module_id


class VehicleInvalid(DiagnosticError):
    code = "vehicle_invalid"


class SessionNotActive(DiagnosticError):
    code = "session_not_active"

    def __init__(self, message: str = "No active diagnostic session"):
        super().__init__(message)


class LoaderFailure(DiagnosticError):
    code = "loader_failure"

    def __init__(self, module_id: str, cause: Exception):
        super().__init__(f"Failed to load trouble codes for {module_id}: {cause}")
        self.module_id = module_id
        self.cause = cause


class StorageCorrupt(DiagnosticError):
    code = "storage_corrupt"

    def __init__(self, key: str, cause: Exception):
        super().__init__(f"Stored record '{key}' could not be parsed: {cause}")
        self.key = key
