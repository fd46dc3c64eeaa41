import logging
from datetime import datetime, timezone

from ecu_console.config import settings
from ecu_console.models.module import ModuleHistoryEntry, ModuleProgress
from ecu_console.storage.gateway import (
    MODULE_HISTORY_KEY,
    MODULE_PROGRESS_KEY,
    StorageGateway,
    read_typed,
    write_json,
)

logger = logging.getLogger(__name__)


class ProgressStore:
    """Durable record of the diagnostic steps each module has completed.

    Every mutation is written through the storage gateway before returning,
    so a reload right after ``put`` sees the update.
    """

    def __init__(self, storage: StorageGateway, history_limit: int | None = None):
        self._storage = storage
        self._history_limit = settings.module_history_limit if history_limit is None else history_limit
        self._progress: dict[str, ModuleProgress] = read_typed(
            storage, MODULE_PROGRESS_KEY, dict[str, ModuleProgress], default={}
        )
        self._history: dict[str, list[ModuleHistoryEntry]] = read_typed(
            storage, MODULE_HISTORY_KEY, dict[str, list[ModuleHistoryEntry]], default={}
        )

    def get(self, module_id: str) -> ModuleProgress | None:
        progress = self._progress.get(module_id)
        return progress.model_copy(deep=True) if progress else None

    def put(self, module_id: str, progress: ModuleProgress):
        self._progress[module_id] = progress.model_copy(deep=True)
        self._flush_progress()

    def all(self) -> dict[str, ModuleProgress]:
        return {mid: p.model_copy(deep=True) for mid, p in self._progress.items()}

    def reset(self, module_id: str | None = None):
        if module_id is None:
            logger.info("Resetting progress for all modules")
            self._progress.clear()
            self._history.clear()
            self._storage.delete(MODULE_PROGRESS_KEY)
            self._storage.delete(MODULE_HISTORY_KEY)
            return
        logger.info(f"Resetting progress for module: {module_id}")
        self._progress.pop(module_id, None)
        self._flush_progress()

    def append_history(self, module_id: str, activity: dict, session_id: str | None = None):
        entry = ModuleHistoryEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            activity=activity,
            session_id=session_id,
        )
        entries = [entry, *self._history.get(module_id, [])]
        self._history[module_id] = entries[: self._history_limit]
        write_json(
            self._storage,
            MODULE_HISTORY_KEY,
            {mid: [e.model_dump(mode="json") for e in items] for mid, items in self._history.items()},
        )

    def history(self, module_id: str) -> list[ModuleHistoryEntry]:
        return list(self._history.get(module_id, []))

    def _flush_progress(self):
        write_json(
            self._storage,
            MODULE_PROGRESS_KEY,
            {mid: p.model_dump(mode="json") for mid, p in self._progress.items()},
        )
