"""UI-facing operations of the diagnostic console.

Each public method returns an ``OperationResult``. Domain errors raised by the
components underneath are converted here and do not propagate further.
"""

import functools
import inspect
import logging

from ecu_console.config import Settings
from ecu_console.errors import DiagnosticError, UnknownModule
from ecu_console.models.api import OperationResult
from ecu_console.models.module import ProgressUpdate, Tab, TabGateSet
from ecu_console.models.session import VehicleProfile
from ecu_console.services.catalog import CapabilityCatalog
from ecu_console.services.navigation import NavigationController
from ecu_console.services.progress_store import ProgressStore
from ecu_console.services.result_cache import ResultCache
from ecu_console.services.session_manager import ProgressCallback, SessionManager
from ecu_console.services.unlock import UnlockStateMachine
from ecu_console.services.vehicle_service import VehicleService
from ecu_console.sources.base import DiagnosticDataSource
from ecu_console.sources.factory import DataSourceFactory
from ecu_console.storage.gateway import StorageGateway, create_storage

logger = logging.getLogger(__name__)


def structured(method):
    """Wrap a console method so it returns an OperationResult."""
    if inspect.iscoroutinefunction(method):

        @functools.wraps(method)
        async def async_wrapper(*args, **kwargs) -> OperationResult:
            try:
                return OperationResult.ok(await method(*args, **kwargs))
            except DiagnosticError as e:
                logger.info(f"{method.__name__} failed: {e.message}")
                return OperationResult.fail(e)

        return async_wrapper

    @functools.wraps(method)
    def wrapper(*args, **kwargs) -> OperationResult:
        try:
            return OperationResult.ok(method(*args, **kwargs))
        except DiagnosticError as e:
            logger.info(f"{method.__name__} failed: {e.message}")
            return OperationResult.fail(e)

    return wrapper


def _tabs(gates: TabGateSet) -> dict[str, bool]:
    return {tab.value: unlocked for tab, unlocked in gates.items()}


class DiagnosticConsole:
    def __init__(
        self,
        catalog: CapabilityCatalog,
        storage: StorageGateway,
        data_source: DiagnosticDataSource,
        vehicles: VehicleService,
        settings: Settings | None = None,
    ):
        settings = settings or Settings()
        self.catalog = catalog
        self.data_source = data_source
        self.vehicles = vehicles
        self.progress_store = ProgressStore(storage, history_limit=settings.module_history_limit)
        self.unlock = UnlockStateMachine(catalog, self.progress_store, storage)
        self.cache = ResultCache(storage)
        self.sessions = SessionManager(
            catalog,
            storage,
            self.cache,
            self.unlock,
            history_limit=settings.session_history_limit,
            action_log_limit=settings.action_log_limit,
            checkpoint_delay=settings.checkpoint_delay_seconds,
        )
        self.navigation = NavigationController(history_limit=settings.navigation_history_limit)

    @classmethod
    def from_settings(cls, settings: Settings) -> "DiagnosticConsole":
        return cls(
            catalog=CapabilityCatalog.from_yaml(settings.catalog_path),
            storage=create_storage(settings.storage_backend, settings.storage_dir),
            data_source=DataSourceFactory.create(settings.data_source),
            vehicles=VehicleService(settings.vehicles_path),
            settings=settings,
        )

    # modules

    @structured
    def list_modules(self):
        return {
            "modules": [m.model_dump(mode="json") for m in self.catalog.all()],
            "statistics": self.catalog.statistics(),
        }

    @structured
    def describe_module(self, module_id: str):
        return self.catalog.describe(module_id)

    @structured
    def select_module(self, module_id: str):
        selection = self.unlock.select_module(module_id)
        return {**selection.model_dump(mode="json"), "tabs": _tabs(selection.tabs)}

    @structured
    def report_progress(self, module_id: str, update: ProgressUpdate):
        session_id = self.sessions.active.id if self.sessions.active else None
        return _tabs(self.unlock.report_progress(module_id, update, session_id=session_id))

    @structured
    def tab_gates(self, module_id: str):
        return _tabs(self.unlock.gates(module_id))

    @structured
    def is_tab_unlocked(self, module_id: str, tab: Tab | str):
        tab_name = tab.value if isinstance(tab, Tab) else tab
        return {"module_id": module_id, "tab": tab_name, "unlocked": self.unlock.is_unlocked(module_id, tab)}

    @structured
    def module_progress(self, module_id: str):
        return self.unlock.progress(module_id)

    @structured
    def module_history(self, module_id: str):
        return self.unlock.history(module_id)

    @structured
    def reset_progress(self, module_id: str | None = None):
        if module_id is not None:
            self.catalog.describe(module_id)
        self.unlock.reset(module_id)

    # sessions

    @structured
    def resolve_vehicle(self, vin: str, model: str, year: int | None = None):
        return self.vehicles.resolve(vin, model, year)

    @structured
    def search_vehicles(self, query: str, limit: int = 10):
        return self.vehicles.search(query, limit=limit)

    @structured
    async def start_session(self, vehicle: VehicleProfile, on_progress: ProgressCallback | None = None):
        session = await self.sessions.start(vehicle, on_progress=on_progress)
        self.navigation.reset()
        return session

    @structured
    def end_session(self):
        ended = self.sessions.end()
        self.navigation.reset()
        return ended

    @structured
    def current_session(self):
        return self.sessions.active

    @structured
    def session_history(self):
        return self.sessions.history()

    @structured
    def record_activity(self, action: str, details: dict | None = None):
        return self.sessions.record_activity(action, details)

    @structured
    async def load_trouble_codes(self, module_id: str):
        self.catalog.describe(module_id)
        session = self.sessions.require_active()
        if session.module(module_id) is None:
            raise UnknownModule(module_id, f"Module {module_id} is not part of session {session.id}")

        first_load = self.cache.peek(module_id, session.id) is None and not self.cache.in_flight(
            module_id, session.id
        )
        codes = await self.cache.get_or_load(module_id, session.id, self.data_source.fetch_trouble_codes)

        active = self.sessions.active
        if first_load and active is not None and active.id == session.id:
            self.sessions.record_module_codes(module_id, codes)
            self.sessions.record_activity("dtc_scan", {"module_id": module_id, "dtc_count": len(codes)})
        return codes

    @structured
    def clear_cache(self):
        self.cache.clear()

    # navigation

    @structured
    def navigate(self, route: str, params: dict | None = None):
        params = params or {}
        module_id = params.get("module_id")
        if module_id is not None:
            self.catalog.describe(module_id)

        previous = self.navigation.current
        entry = self.navigation.navigate(route, params)
        if entry is previous:
            return entry

        active_module = self.unlock.active_module
        if module_id is not None and (active_module is None or active_module.id != module_id):
            self.unlock.select_module(module_id)
        if self.sessions.active is not None:
            self.sessions.record_activity("page_navigation", {"page": route, "ecu_id": module_id})
        return entry

    @structured
    def back(self):
        return self.navigation.back()

    @structured
    def current_route(self):
        return self.navigation.current
