import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from ecu_console.config import settings
from ecu_console.errors import SessionNotActive, UnknownModule, VehicleInvalid
from ecu_console.models.diagnostic import Severity, TroubleCode
from ecu_console.models.module import ModuleDescriptor
from ecu_console.models.session import (
    DetectedModule,
    DiagnosticSession,
    ManagerState,
    SessionAction,
    SessionStatus,
    VehicleProfile,
)
from ecu_console.services.catalog import CapabilityCatalog
from ecu_console.services.result_cache import ResultCache
from ecu_console.services.unlock import UnlockStateMachine
from ecu_console.storage.gateway import (
    CURRENT_SESSION_KEY,
    CURRENT_VEHICLE_KEY,
    SESSION_HISTORY_KEY,
    StorageGateway,
    read_typed,
    write_json,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

CHECKPOINTS: tuple[tuple[str, int], ...] = (
    ("session_init", 10),
    ("ecu_discovery", 25),
    ("module_inventory", 50),
    ("protocol_negotiation", 75),
    ("session_created", 90),
    ("finalize", 100),
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_session_id() -> str:
    return f"DIAG_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6].upper()}"


class SessionManager:
    """Owns the single active diagnostic session and the session history."""

    def __init__(
        self,
        catalog: CapabilityCatalog,
        storage: StorageGateway,
        result_cache: ResultCache,
        unlock: UnlockStateMachine,
        history_limit: int | None = None,
        action_log_limit: int | None = None,
        checkpoint_delay: float | None = None,
    ):
        self._catalog = catalog
        self._storage = storage
        self._cache = result_cache
        self._unlock = unlock
        self._history_limit = settings.session_history_limit if history_limit is None else history_limit
        self._action_log_limit = settings.action_log_limit if action_log_limit is None else action_log_limit
        self._checkpoint_delay = (
            settings.checkpoint_delay_seconds if checkpoint_delay is None else checkpoint_delay
        )
        self._lock = asyncio.Lock()
        self.scan_progress = 0

        self.active: DiagnosticSession | None = read_typed(storage, CURRENT_SESSION_KEY, DiagnosticSession)
        if self.active is not None and self.active.status != SessionStatus.ACTIVE:
            logger.warning(f"Dropping persisted session {self.active.id} with status {self.active.status.value}")
            storage.delete(CURRENT_SESSION_KEY)
            self.active = None
        self.vehicle: VehicleProfile | None = read_typed(storage, CURRENT_VEHICLE_KEY, VehicleProfile)
        self._history: list[DiagnosticSession] = read_typed(
            storage, SESSION_HISTORY_KEY, list[DiagnosticSession], default=[]
        )
        self._state = ManagerState.ACTIVE if self.active else ManagerState.NONE
        if self.active:
            logger.info(f"Diagnostic session restored: {self.active.id}")

    @property
    def state(self) -> ManagerState:
        return self._state

    def require_active(self) -> DiagnosticSession:
        if self.active is None or self._state != ManagerState.ACTIVE:
            raise SessionNotActive()
        return self.active

    async def start(self, vehicle: VehicleProfile, on_progress: ProgressCallback | None = None) -> DiagnosticSession:
        async with self._lock:
            descriptors = self._resolve_modules(vehicle)

            if self.active is not None:
                logger.info(f"Ending session {self.active.id} before starting a new one")
                self.end()

            logger.info(f"Starting diagnostic session for vehicle: {vehicle.vin or vehicle.id}")
            self._state = ManagerState.STARTING
            try:
                session = await self._scan(vehicle, descriptors, on_progress)
                self._commit(session, vehicle)
            except Exception as e:
                logger.warning(f"Failed to start diagnostic session: {e}")
                self._state = ManagerState.NONE
                raise
            finally:
                self.scan_progress = 0

            self._state = ManagerState.ACTIVE
            logger.info(f"Diagnostic session started: {session.id} ({len(session.modules)} modules)")
            return session

    def _resolve_modules(self, vehicle: VehicleProfile) -> list[ModuleDescriptor]:
        descriptors = []
        for module_id in dict.fromkeys(vehicle.ecu_modules):
            if module_id in self._catalog:
                descriptors.append(self._catalog.describe(module_id))
            else:
                logger.warning(f"Vehicle {vehicle.id} lists unknown ECU module {module_id}, skipping")
        if not descriptors:
            raise VehicleInvalid(f"Vehicle {vehicle.id} has no resolvable ECU modules")
        return descriptors

    async def _checkpoint(self, percent: int, on_progress: ProgressCallback | None):
        self.scan_progress = percent
        if on_progress is not None:
            on_progress(percent)
        await asyncio.sleep(self._checkpoint_delay)

    async def _scan(
        self,
        vehicle: VehicleProfile,
        descriptors: list[ModuleDescriptor],
        on_progress: ProgressCallback | None,
    ) -> DiagnosticSession:
        steps = dict(CHECKPOINTS)

        session_id = _new_session_id()
        started = _now().isoformat()
        await self._checkpoint(steps["session_init"], on_progress)

        logger.info(f"Discovered {len(descriptors)} ECU modules: {', '.join(d.id for d in descriptors)}")
        await self._checkpoint(steps["ecu_discovery"], on_progress)

        modules = [
            DetectedModule(module_id=d.id, name=d.name, category=d.category, priority=d.priority)
            for d in descriptors
        ]
        await self._checkpoint(steps["module_inventory"], on_progress)

        protocols = sorted({p for d in descriptors for p in d.protocols})
        services = sorted({s for d in descriptors for s in d.supported_services})
        await self._checkpoint(steps["protocol_negotiation"], on_progress)

        session = DiagnosticSession(
            id=session_id,
            vehicle_id=vehicle.id,
            vehicle_vin=vehicle.vin,
            vehicle_model=vehicle.model,
            start_time=started,
            modules=modules,
            protocols_used=protocols,
            services_supported=services,
            last_activity=started,
        )
        await self._checkpoint(steps["session_created"], on_progress)

        await self._checkpoint(steps["finalize"], on_progress)
        return session

    def _commit(self, session: DiagnosticSession, vehicle: VehicleProfile):
        """Persist a scanned session. On failure no trace of it is left behind."""
        previous_history = self._history
        try:
            self._add_to_history(session)
            write_json(self._storage, CURRENT_VEHICLE_KEY, vehicle.model_dump(mode="json"))
            self._persist(session)
        except Exception:
            self._storage.delete(CURRENT_SESSION_KEY)
            self._storage.delete(CURRENT_VEHICLE_KEY)
            if self._history is not previous_history:
                self._history = previous_history
                self._write_history()
            raise
        self.vehicle = vehicle
        self.active = session

    def record_activity(self, action: str, details: dict | None = None) -> DiagnosticSession:
        session = self.require_active()
        now = _now().isoformat()
        session.actions.append(SessionAction(action=action, timestamp=now, details=details or {}))
        session.actions = session.actions[max(0, len(session.actions) - self._action_log_limit) :]
        session.last_activity = now
        page = (details or {}).get("page")
        if action == "page_navigation" and page and page not in session.pages_visited:
            session.pages_visited.append(page)
        self._persist(session)
        return session

    def record_module_codes(self, module_id: str, codes: list[TroubleCode]) -> DiagnosticSession:
        session = self.require_active()
        detected = session.module(module_id)
        if detected is None:
            raise UnknownModule(module_id, f"Module {module_id} is not part of session {session.id}")
        detected.dtc_count = len(codes)
        detected.critical_dtc_count = sum(1 for c in codes if c.severity == Severity.CRITICAL)
        session.total_dtcs = sum(m.dtc_count for m in session.modules)
        session.critical_dtcs = sum(m.critical_dtc_count for m in session.modules)
        self._persist(session)
        return session

    def end(self) -> DiagnosticSession:
        session = self.require_active()
        logger.info(f"Ending diagnostic session {session.id}")
        self._state = ManagerState.COMPLETED

        ended_at = _now()
        started_at = datetime.fromisoformat(session.start_time)
        ended = session.model_copy(
            update={
                "status": SessionStatus.COMPLETED,
                "end_time": ended_at.isoformat(),
                "duration_ms": int((ended_at - started_at).total_seconds() * 1000),
            }
        )
        self._add_to_history(ended)

        self.active = None
        self._storage.delete(CURRENT_SESSION_KEY)
        self._cache.invalidate_session(ended.id)
        self._unlock.reset()
        self._unlock.clear_active_module()

        self._state = ManagerState.NONE
        return ended

    def history(self) -> list[DiagnosticSession]:
        return list(self._history)

    def clear_history(self):
        self._history = []
        self._storage.delete(SESSION_HISTORY_KEY)

    def _add_to_history(self, session: DiagnosticSession):
        entries = [session.model_copy(deep=True), *(s for s in self._history if s.id != session.id)]
        entries = entries[: self._history_limit]
        write_json(self._storage, SESSION_HISTORY_KEY, [s.model_dump(mode="json") for s in entries])
        self._history = entries

    def _write_history(self):
        write_json(self._storage, SESSION_HISTORY_KEY, [s.model_dump(mode="json") for s in self._history])

    def _persist(self, session: DiagnosticSession):
        write_json(self._storage, CURRENT_SESSION_KEY, session.model_dump(mode="json"))
