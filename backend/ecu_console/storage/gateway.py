import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

from pydantic import TypeAdapter, ValidationError

from ecu_console.errors import StorageCorrupt

logger = logging.getLogger(__name__)

CURRENT_VEHICLE_KEY = "current_vehicle"
CURRENT_SESSION_KEY = "current_session"
MODULE_PROGRESS_KEY = "module_progress"
UNLOCKED_TABS_KEY = "unlocked_tabs"
SESSION_HISTORY_KEY = "session_history"
MODULE_HISTORY_KEY = "module_history"
DTC_CACHE_PREFIX = "dtc_cache:"


class StorageGateway(ABC):
    """Durable key-value records holding JSON text.

    ``write`` must not return before the value is durable.
    """

    @abstractmethod
    def read(self, key: str) -> str | None:
        ...

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        ...


class MemoryStorage(StorageGateway):
    def __init__(self):
        self._records: dict[str, str] = {}

    def read(self, key: str) -> str | None:
        return self._records.get(key)

    def write(self, key: str, value: str) -> None:
        self._records[key] = value

    def delete(self, key: str) -> None:
        self._records.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return [k for k in self._records if k.startswith(prefix)]


class JsonFileStorage(StorageGateway):
    """One file per key under ``root``; writes are fsynced and renamed into place."""

    SUFFIX = ".json"

    def __init__(self, root: str | Path):
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self._root / f"{quote(key, safe='')}{self.SUFFIX}"

    def read(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, value: str) -> None:
        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=".tmp-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self, prefix: str = "") -> list[str]:
        found = []
        for path in self._root.glob(f"*{self.SUFFIX}"):
            key = unquote(path.name[: -len(self.SUFFIX)])
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)


def parse_record(key: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError as e:
        raise StorageCorrupt(key, e) from e


def read_json(storage: StorageGateway, key: str, default: Any = None) -> Any:
    """Read and decode one record. Missing or corrupt records yield ``default``.

    A corrupt record is deleted so the next write starts from a clean slate.
    """
    raw = storage.read(key)
    if raw is None:
        return default
    try:
        return parse_record(key, raw)
    except StorageCorrupt as e:
        logger.warning(f"Discarding corrupt record: {e.message}")
        storage.delete(key)
        return default


def read_typed(storage: StorageGateway, key: str, type_: Any, default: Any = None) -> Any:
    """Like ``read_json`` but also validates the record against a pydantic type."""
    data = read_json(storage, key)
    if data is None:
        return default
    try:
        return TypeAdapter(type_).validate_python(data)
    except ValidationError as e:
        logger.warning(f"Discarding record '{key}' with unexpected shape: {e.error_count()} errors")
        storage.delete(key)
        return default


def write_json(storage: StorageGateway, key: str, value: Any) -> None:
    storage.write(key, json.dumps(value, ensure_ascii=False))


def create_storage(backend: str, storage_dir: str) -> StorageGateway:
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return JsonFileStorage(storage_dir)
    raise ValueError(f"Unknown storage backend: {backend}")
