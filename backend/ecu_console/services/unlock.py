import logging
from collections.abc import Callable
from datetime import datetime, timezone

from ecu_console.models.module import (
    ModuleCapabilities,
    ModuleDescriptor,
    ModuleHistoryEntry,
    ModuleProgress,
    ModuleSelection,
    ProgressUpdate,
    Tab,
    TabGateSet,
)
from ecu_console.services.catalog import CapabilityCatalog
from ecu_console.services.progress_store import ProgressStore
from ecu_console.storage.gateway import UNLOCKED_TABS_KEY, StorageGateway, read_typed, write_json

logger = logging.getLogger(__name__)

GateRule = Callable[[ModuleProgress, ModuleCapabilities], bool]

# The only place tab prerequisites are defined.
TAB_RULES: dict[Tab, GateRule] = {
    Tab.DTC: lambda progress, caps: True,
    Tab.ECU_ID: lambda progress, caps: progress.dtc_analyzed and len(progress.categories_viewed) > 0,
    Tab.LIVE_DATA: lambda progress, caps: progress.ecu_id_accessed and caps.live_data,
    Tab.ACTUATORS: lambda progress, caps: progress.ecu_id_accessed and caps.actuator_testing,
    Tab.ROUTINES: lambda progress, caps: progress.ecu_id_accessed and caps.diagnostic_routines,
}

_LIST_FIELDS = {"categories_viewed", "freeze_frames_viewed"}


def evaluate_gates(
    progress: ModuleProgress,
    capabilities: ModuleCapabilities,
    previous: TabGateSet | None = None,
) -> TabGateSet:
    """Apply the rule table. A tab already unlocked in ``previous`` stays unlocked."""
    previous = previous or {}
    return {
        tab: bool(previous.get(tab, False) or rule(progress, capabilities))
        for tab, rule in TAB_RULES.items()
    }


def merge_progress(current: ModuleProgress, update: ProgressUpdate) -> ModuleProgress:
    """Merge a partial update: scalars are last-write-wins, lists are unioned in order.

    Returns ``current`` itself when the update changes nothing.
    """
    changes = {}
    for field, value in update.model_dump(exclude_none=True).items():
        if field in _LIST_FIELDS:
            existing = getattr(current, field)
            value = existing + [v for v in dict.fromkeys(value) if v not in existing]
        changes[field] = value

    merged = current.model_copy(update=changes)
    if merged == current:
        return current
    merged.last_updated = datetime.now(timezone.utc).isoformat()
    return merged


class UnlockStateMachine:
    """Per-module tab gates derived from reported progress."""

    def __init__(self, catalog: CapabilityCatalog, progress_store: ProgressStore, storage: StorageGateway):
        self._catalog = catalog
        self._progress = progress_store
        self._storage = storage
        self._gates: dict[str, TabGateSet] = read_typed(
            storage, UNLOCKED_TABS_KEY, dict[str, dict[Tab, bool]], default={}
        )
        self.active_module: ModuleDescriptor | None = None

    def select_module(self, module_id: str) -> ModuleSelection:
        descriptor = self._catalog.describe(module_id)
        logger.info(f"Selected module: {descriptor.name} ({module_id})")

        progress = self._progress.get(module_id)
        if progress is None:
            progress = ModuleProgress(last_updated=datetime.now(timezone.utc).isoformat())
        progress.session_count += 1
        self._progress.put(module_id, progress)

        if module_id not in self._gates:
            self._gates[module_id] = evaluate_gates(progress, descriptor.capabilities)
            self._flush_gates()

        self.active_module = descriptor
        return ModuleSelection(module=descriptor, progress=progress, tabs=dict(self._gates[module_id]))

    def clear_active_module(self):
        self.active_module = None

    def report_progress(self, module_id: str, update: ProgressUpdate, session_id: str | None = None) -> TabGateSet:
        descriptor = self._catalog.describe(module_id)

        current = self._progress.get(module_id) or ModuleProgress()
        merged = merge_progress(current, update)
        if merged is not current:
            self._progress.put(module_id, merged)

        previous = self._gates.get(module_id, {})
        gates = evaluate_gates(merged, descriptor.capabilities, previous)
        newly_unlocked = [tab.value for tab, unlocked in gates.items() if unlocked and not previous.get(tab)]
        if newly_unlocked and previous:
            logger.info(f"Unlocked tabs for {module_id}: {', '.join(newly_unlocked)}")
        if gates != previous:
            self._gates[module_id] = gates
            self._flush_gates()

        self._progress.append_history(module_id, update.model_dump(exclude_none=True), session_id)
        return dict(gates)

    def is_unlocked(self, module_id: str, tab: Tab | str) -> bool:
        if module_id not in self._catalog:
            return False
        try:
            tab = Tab(tab)
        except ValueError:
            return False
        gates = self._gates.get(module_id)
        if gates is None:
            return tab == Tab.DTC
        return gates.get(tab, False)

    def gates(self, module_id: str) -> TabGateSet:
        descriptor = self._catalog.describe(module_id)
        gates = self._gates.get(module_id)
        if gates is None:
            return evaluate_gates(ModuleProgress(), descriptor.capabilities)
        return dict(gates)

    def progress(self, module_id: str) -> ModuleProgress | None:
        self._catalog.describe(module_id)
        return self._progress.get(module_id)

    def history(self, module_id: str) -> list[ModuleHistoryEntry]:
        self._catalog.describe(module_id)
        return self._progress.history(module_id)

    def reset(self, module_id: str | None = None):
        """Drop progress and gates for one module, or for all of them."""
        self._progress.reset(module_id)
        if module_id is None:
            self._gates.clear()
            self._storage.delete(UNLOCKED_TABS_KEY)
        else:
            self._gates.pop(module_id, None)
            self._flush_gates()

    def _flush_gates(self):
        write_json(
            self._storage,
            UNLOCKED_TABS_KEY,
            {mid: {tab.value: unlocked for tab, unlocked in gates.items()} for mid, gates in self._gates.items()},
        )
