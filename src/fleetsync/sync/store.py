"""Local persistence for cached records, the sync queue and dead letters.

The orchestrator and the sync queue receive a :class:`SyncStore`
explicitly; there is no module-level store. Two implementations ship:

* :class:`MemorySyncStore` keeps everything in process memory.
* :class:`JsonFileSyncStore` additionally writes a JSON document after
  every mutation (temp file + atomic rename) so pending mutations survive
  a restart.

Records are stored in their camelCase wire form, keyed by entity kind and
id. Aliases map a provisional local id onto the server-assigned id.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

from fleetsync.exceptions import StoreError
from fleetsync.models.sync import DeadLetter, EntityKind, SyncQueueItem

_logger = logging.getLogger(__name__)

_FORMAT_VERSION = 1


class SyncStore(Protocol):
    """Structural interface of the local store.

    Test doubles only need to implement these coroutines.
    """

    async def open(self) -> None: ...

    async def close(self) -> None: ...

    async def get_record(self, kind: EntityKind, record_id: str) -> dict[str, Any] | None: ...

    async def put_record(self, kind: EntityKind, record_id: str, record: dict[str, Any]) -> None: ...

    async def delete_record(self, kind: EntityKind, record_id: str) -> None: ...

    async def list_records(self, kind: EntityKind) -> list[dict[str, Any]]: ...

    async def set_alias(self, kind: EntityKind, alias: str, target_id: str) -> None: ...

    async def resolve_id(self, kind: EntityKind, record_id: str) -> str: ...

    async def put_item(self, item: SyncQueueItem) -> None: ...

    async def remove_item(self, item_id: str) -> None: ...

    async def list_items(self) -> list[SyncQueueItem]: ...

    async def put_dead_letter(self, letter: DeadLetter) -> None: ...

    async def remove_dead_letter(self, item_id: str) -> DeadLetter | None: ...

    async def list_dead_letters(self) -> list[DeadLetter]: ...


def _empty_state() -> dict[str, Any]:
    return {
        "version": _FORMAT_VERSION,
        "records": {kind.value: {} for kind in EntityKind},
        "aliases": {kind.value: {} for kind in EntityKind},
        "queue": {},
        "deadLetters": {},
    }


class MemorySyncStore:
    """In-process :class:`SyncStore`.

    Subclasses override :meth:`_load` and :meth:`_persist` to add
    durability; every mutating call ends with ``_persist``.
    """

    def __init__(self) -> None:
        self._state: dict[str, Any] = _empty_state()
        self._opened = False
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._opened

    async def open(self) -> None:
        if self._opened:
            return
        self._state = await self._load()
        self._opened = True

    async def close(self) -> None:
        self._opened = False

    async def _load(self) -> dict[str, Any]:
        return self._state

    async def _persist(self) -> None:
        return None

    def _require_open(self) -> dict[str, Any]:
        if not self._opened:
            raise StoreError(f"{type(self).__name__} is not open")
        return self._state

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    async def get_record(self, kind: EntityKind, record_id: str) -> dict[str, Any] | None:
        state = self._require_open()
        records = state["records"][kind.value]
        record = records.get(record_id)
        if record is None:
            record = records.get(state["aliases"][kind.value].get(record_id, record_id))
        return copy.deepcopy(record) if record is not None else None

    async def put_record(self, kind: EntityKind, record_id: str, record: dict[str, Any]) -> None:
        async with self._lock:
            state = self._require_open()
            state["records"][kind.value][record_id] = copy.deepcopy(record)
            await self._persist()

    async def delete_record(self, kind: EntityKind, record_id: str) -> None:
        async with self._lock:
            state = self._require_open()
            if state["records"][kind.value].pop(record_id, None) is not None:
                await self._persist()

    async def list_records(self, kind: EntityKind) -> list[dict[str, Any]]:
        state = self._require_open()
        return [copy.deepcopy(record) for record in state["records"][kind.value].values()]

    async def set_alias(self, kind: EntityKind, alias: str, target_id: str) -> None:
        if alias == target_id:
            return
        async with self._lock:
            state = self._require_open()
            state["aliases"][kind.value][alias] = target_id
            await self._persist()

    async def resolve_id(self, kind: EntityKind, record_id: str) -> str:
        state = self._require_open()
        return state["aliases"][kind.value].get(record_id, record_id)

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    async def put_item(self, item: SyncQueueItem) -> None:
        async with self._lock:
            state = self._require_open()
            state["queue"][item.id] = item.model_dump(mode="json", by_alias=True)
            await self._persist()

    async def remove_item(self, item_id: str) -> None:
        async with self._lock:
            state = self._require_open()
            if state["queue"].pop(item_id, None) is not None:
                await self._persist()

    async def list_items(self) -> list[SyncQueueItem]:
        state = self._require_open()
        return [SyncQueueItem.model_validate(raw) for raw in state["queue"].values()]

    async def put_dead_letter(self, letter: DeadLetter) -> None:
        async with self._lock:
            state = self._require_open()
            state["queue"].pop(letter.item.id, None)
            state["deadLetters"][letter.item.id] = letter.model_dump(mode="json", by_alias=True)
            await self._persist()

    async def remove_dead_letter(self, item_id: str) -> DeadLetter | None:
        async with self._lock:
            state = self._require_open()
            raw = state["deadLetters"].pop(item_id, None)
            if raw is None:
                return None
            await self._persist()
            return DeadLetter.model_validate(raw)

    async def list_dead_letters(self) -> list[DeadLetter]:
        state = self._require_open()
        return [DeadLetter.model_validate(raw) for raw in state["deadLetters"].values()]


class JsonFileSyncStore(MemorySyncStore):
    """:class:`SyncStore` backed by a single JSON file.

    Parameters
    ----------
    path : Path or str
        Location of the store file. Parent directories are created on
        first write.
    """

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def _load(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._read_file)

    async def _persist(self) -> None:
        snapshot = json.dumps(self._state, separators=(",", ":"))
        await asyncio.to_thread(self._write_file, snapshot)

    def _read_file(self) -> dict[str, Any]:
        if not self._path.exists():
            return _empty_state()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Cannot read sync store {self._path}: {exc}") from exc
        if not isinstance(data, dict) or data.get("version") != _FORMAT_VERSION:
            raise StoreError(f"Unsupported sync store format in {self._path}")
        state = _empty_state()
        for section in ("records", "aliases"):
            for kind, entries in data.get(section, {}).items():
                state[section].setdefault(kind, {}).update(entries)
        state["queue"].update(data.get("queue", {}))
        state["deadLetters"].update(data.get("deadLetters", {}))
        _logger.debug(
            "Loaded sync store %s: %d queued, %d dead-lettered",
            self._path,
            len(state["queue"]),
            len(state["deadLetters"]),
        )
        return state

    def _write_file(self, snapshot: str) -> None:
        tmp = self._path.with_name(f"{self._path.name}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(snapshot, encoding="utf-8")
            os.replace(tmp, self._path)
        except OSError as exc:
            raise StoreError(f"Cannot write sync store {self._path}: {exc}") from exc
