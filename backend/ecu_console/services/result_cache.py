import asyncio
import logging
from collections.abc import Awaitable, Callable

from ecu_console.errors import LoaderFailure
from ecu_console.models.diagnostic import TroubleCode
from ecu_console.storage.gateway import DTC_CACHE_PREFIX, StorageGateway, read_typed, write_json

logger = logging.getLogger(__name__)

Loader = Callable[[str], Awaitable[list[TroubleCode]]]


def _storage_key(module_id: str, session_id: str) -> str:
    return f"{DTC_CACHE_PREFIX}{session_id}:{module_id}"


class ResultCache:
    """Trouble-code results memoized per (module, session).

    A key is loaded at most once: concurrent callers share the in-flight load,
    and only successful loads are stored.
    """

    def __init__(self, storage: StorageGateway):
        self._storage = storage
        self._entries: dict[tuple[str, str], list[TroubleCode]] = {}
        self._in_flight: dict[tuple[str, str], asyncio.Task] = {}
        self._generations: dict[str, int] = {}

    def peek(self, module_id: str, session_id: str) -> list[TroubleCode] | None:
        key = (module_id, session_id)
        codes = self._entries.get(key)
        if codes is None:
            codes = read_typed(self._storage, _storage_key(module_id, session_id), list[TroubleCode])
            if codes is None:
                return None
            self._entries[key] = codes
        return [c.model_copy(deep=True) for c in codes]

    def in_flight(self, module_id: str, session_id: str) -> bool:
        return (module_id, session_id) in self._in_flight

    async def get_or_load(self, module_id: str, session_id: str, loader: Loader) -> list[TroubleCode]:
        cached = self.peek(module_id, session_id)
        if cached is not None:
            logger.info(f"Serving {len(cached)} cached trouble codes for {module_id} ({session_id})")
            return cached

        key = (module_id, session_id)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._load(module_id, session_id, loader))
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        # A caller that stops waiting must not cancel the load other callers share.
        codes = await asyncio.shield(task)
        return [c.model_copy(deep=True) for c in codes]

    async def _load(self, module_id: str, session_id: str, loader: Loader) -> list[TroubleCode]:
        generation = self._generations.get(session_id, 0)
        try:
            raw = await loader(module_id)
        except Exception as e:
            logger.warning(f"Trouble code loader failed for {module_id}: {e}")
            raise LoaderFailure(module_id, e) from e

        codes = [c if isinstance(c, TroubleCode) else TroubleCode.model_validate(c) for c in raw]
        if self._generations.get(session_id, 0) != generation:
            logger.info(f"Session {session_id} was invalidated during load, result for {module_id} not stored")
            return codes

        self._entries[(module_id, session_id)] = codes
        write_json(
            self._storage,
            _storage_key(module_id, session_id),
            [c.model_dump(mode="json") for c in codes],
        )
        logger.info(f"Cached {len(codes)} trouble codes for {module_id} ({session_id})")
        return codes

    def _forget(self, key: tuple[str, str], task: asyncio.Task):
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Marks a failure as retrieved even when every waiter has gone away.
            task.exception()
        self._prune_generation(key[1])

    def _prune_generation(self, session_id: str):
        """Generations only matter while a load for the session is running."""
        if not any(k[1] == session_id for k in self._in_flight):
            self._generations.pop(session_id, None)

    def invalidate_session(self, session_id: str):
        self._generations[session_id] = self._generations.get(session_id, 0) + 1
        for key in [k for k in self._entries if k[1] == session_id]:
            del self._entries[key]
        for storage_key in self._storage.keys(f"{DTC_CACHE_PREFIX}{session_id}:"):
            self._storage.delete(storage_key)
        self._prune_generation(session_id)
        logger.info(f"Invalidated cached results for session {session_id}")

    def clear(self):
        for session_id in {k[1] for k in [*self._entries, *self._in_flight]}:
            self._generations[session_id] = self._generations.get(session_id, 0) + 1
            self._prune_generation(session_id)
        self._entries.clear()
        for storage_key in self._storage.keys(DTC_CACHE_PREFIX):
            self._storage.delete(storage_key)
        logger.info("Cleared diagnostic result cache")
