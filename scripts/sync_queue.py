#!/usr/bin/env python3
"""Inspect and operate on a durable fleetsync store file.

Lists queued mutations and dead letters, moves dead letters back into
the queue or discards them, and can run a replay pass against the
configured backend.

Usage
-----
With the package installed (``pip install -e .``)::

    python scripts/sync_queue.py --store ~/.fleetsync/store.json list
    python scripts/sync_queue.py --store ~/.fleetsync/store.json dead-letters --json
    python scripts/sync_queue.py --store ~/.fleetsync/store.json requeue 3f9a0c1e2b4d5a67
    python scripts/sync_queue.py --store ~/.fleetsync/store.json discard 3f9a0c1e2b4d5a67

    export FLEETSYNC_BASE_URL="https://fleet.example.com/api"
    export FLEETSYNC_API_TOKEN="..."
    python scripts/sync_queue.py --store ~/.fleetsync/store.json replay

``--store`` defaults to ``$FLEETSYNC_STORE_PATH``.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any

from fleetsync import FleetClient, FleetSyncConfig, FleetSyncError, JsonFileSyncStore
from fleetsync.exceptions import TransientNetworkError
from fleetsync.models.sync import SyncQueueItem
from fleetsync.sync.queue import SyncQueue


async def _offline_dispatch(item: SyncQueueItem) -> dict[str, Any]:
    raise TransientNetworkError(f"{item.id}: inspection mode does not contact the backend")


def _item_line(item: SyncQueueItem) -> str:
    due = item.next_attempt_at.isoformat() if item.next_attempt_at else "now"
    return (
        f"{item.id}  {item.entity_kind.value:<10} {item.operation.value:<6} {item.entity_id:<24} "
        f"attempts={item.retry_count} due={due}"
        + (f"\n    last error: {item.last_error}" if item.last_error else "")
    )


async def _inspect(args: argparse.Namespace) -> int:
    store = JsonFileSyncStore(args.store)
    await store.open()
    try:
        queue = SyncQueue(store, _offline_dispatch)
        if args.command == "list":
            items = await queue.pending_items()
            if args.json_mode:
                print(json.dumps([item.to_wire() for item in items], indent=2))
            else:
                print(f"{len(items)} queued mutation(s)")
                for item in items:
                    print(_item_line(item))
        elif args.command == "dead-letters":
            letters = await queue.dead_letters()
            if args.json_mode:
                print(json.dumps([letter.to_wire() for letter in letters], indent=2))
            else:
                print(f"{len(letters)} dead letter(s)")
                for letter in letters:
                    print(_item_line(letter.item))
                    print(f"    dead-lettered {letter.dead_lettered_at.isoformat()}: {letter.reason}")
        elif args.command == "requeue":
            try:
                item = await queue.requeue_dead_letter(args.item_id)
            except KeyError:
                print(f"No dead letter {args.item_id}", file=sys.stderr)
                return 1
            print(f"Requeued {item.id} ({item.operation.value} {item.entity_kind.value} {item.entity_id})")
        elif args.command == "discard":
            if not await queue.discard_dead_letter(args.item_id):
                print(f"No dead letter {args.item_id}", file=sys.stderr)
                return 1
            print(f"Discarded {args.item_id}")
    finally:
        await store.close()
    return 0


async def _replay(args: argparse.Namespace) -> int:
    config = FleetSyncConfig.from_env(store_path=args.store)
    async with FleetClient(config) as client:
        report = await client.replay()
    print(
        f"delivered={report.succeeded} failed={report.failed} "
        f"dead_lettered={report.dead_lettered} remaining={report.remaining}"
    )
    return 0 if report.dead_lettered == 0 else 2


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect and operate on a fleetsync sync queue.")
    parser.add_argument(
        "--store",
        default=os.environ.get("FLEETSYNC_STORE_PATH"),
        help="Path of the store file (default: $FLEETSYNC_STORE_PATH)",
    )
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List queued mutations in delivery order")
    sub.add_parser("dead-letters", help="List dead-lettered mutations")
    requeue = sub.add_parser("requeue", help="Move a dead letter back into the queue")
    requeue.add_argument("item_id")
    discard = sub.add_parser("discard", help="Drop a dead letter permanently")
    discard.add_argument("item_id")
    sub.add_parser("replay", help="Run one replay pass against the configured backend")
    args = parser.parse_args(argv)
    if not args.store:
        parser.error("--store is required when FLEETSYNC_STORE_PATH is not set")
    return args


async def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)
    try:
        if args.command == "replay":
            return await _replay(args)
        return await _inspect(args)
    except FleetSyncError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
