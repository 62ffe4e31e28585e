#!/usr/bin/env python3
"""Operate an attendsync state directory from the command line.

Marks, removals and clears are applied locally and queued exactly like the
library does; ``sync`` and ``poll`` talk to the configured endpoint.

Configuration comes from ``ATTENDSYNC_*`` environment variables (see
``SyncConfig.from_env``); ``--state-dir`` and ``--url`` override them.

Examples::

    attendance_cli.py --url https://script.google.com/.../exec set-url
    attendance_cli.py mark "Alice Doe" a1 alice@example.com
    attendance_cli.py status A a1 b2
    attendance_cli.py sync --max-attempts 5
    attendance_cli.py poll
    attendance_cli.py list
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from attendsync import (  # noqa: E402
    AttendSyncError,
    JsonFileStorage,
    LocalValidationError,
    SyncConfig,
    SyncEngine,
)

_DEFAULT_STATE_DIR = ".attendsync"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument(
        "--state-dir",
        help=f"Storage directory (default: $ATTENDSYNC_STORAGE_DIR or {_DEFAULT_STATE_DIR})",
    )
    parser.add_argument("--url", help="Remote endpoint URL (overrides the stored one for this run)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    mark = sub.add_parser("mark", help="Mark one attendee")
    mark.add_argument("name")
    mark.add_argument("identifier")
    mark.add_argument("email", nargs="?", default="")
    mark.add_argument("--absent", action="store_true", help="Mark as absent instead of present")

    sub.add_parser("mark-test", help="Mark a synthetic test attendee")

    status = sub.add_parser("status", help="Set the status of existing records")
    status.add_argument("status", choices=["P", "A"])
    status.add_argument("identifiers", nargs="+")

    remove = sub.add_parser("remove", help="Remove records locally (remote data is kept)")
    remove.add_argument("identifiers", nargs="+")

    sub.add_parser("clear", help="Remove every local record (remote data is kept)")
    sub.add_parser("list", help="Print local records and pending sync count")
    sub.add_parser("set-url", help="Persist --url as the endpoint for future runs")

    sync = sub.add_parser("sync", help="Deliver queued writes now")
    sync.add_argument("--max-attempts", type=int, default=None, help="Give up after this many network attempts")

    sub.add_parser("poll", help="Merge the remote snapshot once")
    return parser


def _print_records(engine: SyncEngine) -> None:
    for record in engine.records:
        changed = datetime.fromtimestamp(record.last_changed_at / 1000, tz=UTC).isoformat(timespec="seconds")
        print(
            f"{record.status.value}  {record.identifier:<16} {record.display_name:<28} "
            f"{record.contact_address}  {changed}"
        )
    print(f"{len(engine.records)} records, {engine.pending_sync_count} pending sync, {len(engine.tombstones)} removed")


async def _run(args: argparse.Namespace) -> int:
    config = SyncConfig.from_env()
    state_dir = args.state_dir or config.storage_dir or _DEFAULT_STATE_DIR
    storage = JsonFileStorage(state_dir)

    async with SyncEngine(config, storage=storage) as engine:
        if args.url:
            if args.command == "set-url":
                engine.set_endpoint_url(args.url)
                print(f"Endpoint set to {engine.endpoint_url}")
                return 0
            engine.set_endpoint_url(args.url, persist=False)
        elif args.command == "set-url":
            print("set-url needs --url", file=sys.stderr)
            return 2

        if args.command == "mark":
            record = engine.mark(args.name, args.identifier, args.email, "A" if args.absent else "P")
            print(f"Recorded {record.identifier} ({engine.pending_sync_count} pending sync)")
        elif args.command == "mark-test":
            record = engine.mark_test()
            print(f"Recorded {record.identifier} ({engine.pending_sync_count} pending sync)")
        elif args.command == "status":
            tasks = engine.bulk_update_status(args.identifiers, args.status)
            print(f"Updated {len(tasks)} records")
        elif args.command == "remove":
            removed = engine.remove(args.identifiers)
            print(f"Removed {len(removed)} identifiers")
        elif args.command == "clear":
            cleared = engine.clear()
            print(f"Cleared {len(cleared)} records")
        elif args.command == "list":
            _print_records(engine)
        elif args.command == "sync":
            if not engine.has_valid_endpoint:
                print("No valid endpoint configured", file=sys.stderr)
                return 2
            delivered = await engine.flush(max_attempts=args.max_attempts)
            print(f"Delivered {delivered} tasks, {engine.pending_sync_count} still pending")
            return 0 if engine.pending_sync_count == 0 else 1
        elif args.command == "poll":
            if not engine.has_valid_endpoint:
                print("No valid endpoint configured", file=sys.stderr)
                return 2
            updated = await engine.refresh()
            print("Merged remote snapshot" if updated else "Poll failed; local view unchanged")
            return 0 if updated else 1
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except LocalValidationError as exc:
        print(f"Invalid input: {exc}", file=sys.stderr)
        return 2
    except AttendSyncError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
