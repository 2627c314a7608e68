from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from fleetsync.exceptions import StoreError
from fleetsync.models.sync import DeadLetter, EntityKind, SyncOperation, SyncQueueItem
from fleetsync.sync.store import JsonFileSyncStore, MemorySyncStore

AT = datetime(2026, 11, 1, 8, 0, tzinfo=UTC)


def _item(entity_id: str = "SB1") -> SyncQueueItem:
    return SyncQueueItem(
        entity_kind=EntityKind.BOOKING,
        operation=SyncOperation.CREATE,
        entity_id=entity_id,
        payload={"customerName": "Asha Rao"},
        enqueued_at=AT,
    )


@pytest.mark.asyncio
async def test_pending_state_survives_reopen(tmp_path: Path) -> None:
    path = tmp_path / "state" / "fleetsync.json"
    store = JsonFileSyncStore(path)
    await store.open()
    queued, dead = _item("SB1"), _item("SB2")
    await store.put_item(queued)
    await store.put_item(dead)
    await store.put_dead_letter(DeadLetter(item=dead, reason="HTTP 422", dead_lettered_at=AT))
    await store.put_record(EntityKind.BOOKING, "BK1", {"bookingId": "BK1", "status": "pending"})
    await store.set_alias(EntityKind.BOOKING, "SB0", "BK1")
    await store.close()

    reopened = JsonFileSyncStore(path)
    await reopened.open()

    assert await reopened.list_items() == [queued]
    [letter] = await reopened.list_dead_letters()
    assert letter.item.entity_id == "SB2"
    assert await reopened.resolve_id(EntityKind.BOOKING, "SB0") == "BK1"
    assert (await reopened.get_record(EntityKind.BOOKING, "SB0"))["status"] == "pending"
    assert not path.with_name("fleetsync.json.tmp").exists()


@pytest.mark.asyncio
async def test_records_are_copied_in_and_out() -> None:
    store = MemorySyncStore()
    await store.open()
    record = {"bookingId": "BK1", "tags": ["a"]}
    await store.put_record(EntityKind.BOOKING, "BK1", record)

    record["tags"].append("b")
    fetched = await store.get_record(EntityKind.BOOKING, "BK1")
    fetched["tags"].append("c")

    assert (await store.get_record(EntityKind.BOOKING, "BK1"))["tags"] == ["a"]
    assert await store.get_record(EntityKind.DEPLOYMENT, "BK1") is None


@pytest.mark.asyncio
async def test_alias_to_itself_is_ignored() -> None:
    store = MemorySyncStore()
    await store.open()
    await store.set_alias(EntityKind.DEPLOYMENT, "DP1", "DP1")
    assert await store.resolve_id(EntityKind.DEPLOYMENT, "DP1") == "DP1"


@pytest.mark.asyncio
async def test_closed_store_raises() -> None:
    store = MemorySyncStore()
    with pytest.raises(StoreError):
        await store.list_items()
    await store.open()
    await store.close()
    with pytest.raises(StoreError):
        await store.put_item(_item())


@pytest.mark.asyncio
async def test_unknown_file_version_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "fleetsync.json"
    path.write_text(json.dumps({"version": 99, "queue": {}}), encoding="utf-8")

    with pytest.raises(StoreError, match="Unsupported"):
        await JsonFileSyncStore(path).open()


@pytest.mark.asyncio
async def test_corrupt_file_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "fleetsync.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreError, match="Cannot read"):
        await JsonFileSyncStore(path).open()
