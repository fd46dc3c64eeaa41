import asyncio

import pytest

from ecu_console.config import Settings, settings
from ecu_console.models.diagnostic import TroubleCode
from ecu_console.models.session import VehicleProfile
from ecu_console.services.catalog import CapabilityCatalog
from ecu_console.services.console import DiagnosticConsole
from ecu_console.services.vehicle_service import VehicleService
from ecu_console.sources.base import DiagnosticDataSource
from ecu_console.storage.gateway import MemoryStorage

SAMPLE_CODES = {
    "EMS": [
        {
            "code": "P0171",
            "description": "System too lean (Bank 1)",
            "severity": "high",
            "occurrence_count": 4,
            "category": "Fuel System",
            "freeze_frame": [{"name": "Engine RPM", "value": 2150, "unit": "rpm"}],
        },
        {
            "code": "P0300",
            "description": "Random/multiple cylinder misfire detected",
            "severity": "critical",
            "occurrence_count": 2,
            "category": "Ignition System",
        },
    ],
    "ESP": [
        {"code": "C0040", "description": "Right front wheel speed sensor circuit", "severity": "critical"},
    ],
}


class SpyDataSource(DiagnosticDataSource):
    """Counts loader calls and can be told to fail or stall."""

    name = "spy"
    display_name = "Spy"

    def __init__(self, codes: dict | None = None):
        self.codes = SAMPLE_CODES if codes is None else codes
        self.calls: list[str] = []
        self.failures = 0
        self.delay = 0.0

    def is_configured(self) -> bool:
        return True

    async def fetch_trouble_codes(self, module_id: str) -> list[TroubleCode]:
        self.calls.append(module_id)
        await asyncio.sleep(self.delay)
        if self.failures:
            self.failures -= 1
            raise ConnectionError("adapter timeout")
        return [TroubleCode(**c) for c in self.codes.get(module_id, [])]


class FlakyStorage(MemoryStorage):
    """Raises on writes to the listed keys."""

    def __init__(self, failing_keys: set[str] | None = None):
        super().__init__()
        self.failing_keys = failing_keys or set()

    def write(self, key: str, value: str) -> None:
        if key in self.failing_keys:
            raise OSError(f"disk full writing {key}")
        super().write(key, value)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def catalog() -> CapabilityCatalog:
    return CapabilityCatalog.from_yaml(settings.catalog_path)


@pytest.fixture
def source() -> SpyDataSource:
    return SpyDataSource()


@pytest.fixture
def console(catalog, storage, source) -> DiagnosticConsole:
    return build_console(catalog, storage, source)


def build_console(catalog, storage, source) -> DiagnosticConsole:
    return DiagnosticConsole(
        catalog=catalog,
        storage=storage,
        data_source=source,
        vehicles=VehicleService(settings.vehicles_path),
        settings=Settings(storage_backend="memory", checkpoint_delay_seconds=0.0),
    )


def make_vehicle(vin: str = "MA1TA2XUV7A000001", modules: list[str] | None = None) -> VehicleProfile:
    return VehicleProfile(
        id=vin,
        vin=vin,
        model="XUV700",
        year=2023,
        ecu_modules=["EMS", "TCU", "ESP", "SRS", "SVS"] if modules is None else modules,
    )


@pytest.fixture
def vehicle() -> VehicleProfile:
    return make_vehicle()
