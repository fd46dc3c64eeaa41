from abc import ABC, abstractmethod

from ecu_console.models.diagnostic import TroubleCode


class DiagnosticDataSource(ABC):
    name: str = ""
    display_name: str = ""

    @abstractmethod
    async def fetch_trouble_codes(self, module_id: str) -> list[TroubleCode]:
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        ...
