import logging
from pathlib import Path

from ecu_console.config import settings
from ecu_console.data.catalog_loader import load_trouble_code_fixtures
from ecu_console.models.diagnostic import TroubleCode
from ecu_console.sources.base import DiagnosticDataSource

logger = logging.getLogger(__name__)


class FixtureDataSource(DiagnosticDataSource):
    """Serves recorded trouble-code captures from a YAML file."""

    name = "fixture"
    display_name = "Recorded captures"

    def __init__(self, path: str | None = None):
        self._path = path or settings.fixture_path

    def is_configured(self) -> bool:
        return Path(self._path).exists()

    async def fetch_trouble_codes(self, module_id: str) -> list[TroubleCode]:
        records = load_trouble_code_fixtures(self._path).get(module_id, [])
        logger.info(f"Read {len(records)} trouble codes for {module_id} from {self._path}")
        return [TroubleCode(**r) for r in records]
