from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest

from attendsync.config import SyncConfig
from attendsync.exceptions import SyncTransportError
from attendsync.models import AttendanceStatus, Record, RemoteRecord
from attendsync.state import RecordStore, TombstoneSet
from attendsync.storage import MemoryStorage
from attendsync.sync import Reconciler, merge_snapshot

_URL = "https://example.test/exec"
_NOW = 5_000


def _remote(identifier: str, **fields: Any) -> RemoteRecord:
    return RemoteRecord.model_validate({"studentId": identifier, **fields})


def _local(identifier: str, ts: int, status: AttendanceStatus = AttendanceStatus.PRESENT) -> Record:
    return Record(identifier=identifier, display_name="local", contact_address="local@x.com", status=status, last_changed_at=ts)


class _SnapshotTransport:
    def __init__(self, body: Any = None, error: Exception | None = None) -> None:
        self.body = body if body is not None else []
        self.error = error
        self.reads: list[dict[str, str]] = []
        self.gate: asyncio.Event | None = None

    async def post_form(self, url: str, fields: Mapping[str, str]) -> Any:
        raise AssertionError("reconciler never writes")

    async def get_json(self, url: str, params: Mapping[str, str]) -> Any:
        self.reads.append(dict(params))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.body


def _make(transport: _SnapshotTransport, url: str | None = _URL) -> tuple[Reconciler, RecordStore]:
    storage = MemoryStorage()
    store = RecordStore(storage, TombstoneSet(storage))
    reconciler = Reconciler(
        store,
        transport,
        endpoint=lambda: url,
        config=SyncConfig(),
        clock=lambda: _NOW,
    )
    return reconciler, store


def test_merge_excludes_tombstoned_identifiers() -> None:
    merged = merge_snapshot([], [_remote("A1"), _remote("B2")], {"A1"}, _NOW)
    assert [r.identifier for r in merged] == ["B2"]


def test_merge_timestamps_prefer_local_then_remote_then_now() -> None:
    merged = merge_snapshot(
        [_local("A1", ts=111)],
        [
            _remote("A1", timestamp=999_000_000_000),
            _remote("B2"),
            _remote("C3", timestamp=1_700_000_000),
        ],
        set(),
        _NOW,
    )

    by_id = {r.identifier: r for r in merged}
    assert by_id["A1"].last_changed_at == 111
    assert by_id["B2"].last_changed_at == _NOW
    assert by_id["C3"].last_changed_at == 1_700_000_000_000


def test_merge_takes_content_from_remote_uppercased() -> None:
    merged = merge_snapshot(
        [_local("A1", ts=1, status=AttendanceStatus.ABSENT)],
        [_remote("a1", name="Alice Doe", email="alice@x.com")],
        set(),
        _NOW,
    )

    assert len(merged) == 1
    record = merged[0]
    assert record.display_name == "ALICE DOE"
    assert record.contact_address == "ALICE@X.COM"
    # Remote status wins even over an unsent local change.
    assert record.status == AttendanceStatus.PRESENT


def test_merge_keeps_local_order_and_appends_new_remote_items() -> None:
    merged = merge_snapshot(
        [_local("A1", 1), _local("B2", 2)],
        [_remote("C3"), _remote("A1"), _remote("D4")],
        set(),
        _NOW,
    )
    assert [r.identifier for r in merged] == ["A1", "B2", "C3", "D4"]


def test_merge_keeps_local_only_records() -> None:
    merged = merge_snapshot([_local("A1", 1)], [], set(), _NOW)
    assert merged == [_local("A1", 1)]


@pytest.mark.asyncio
async def test_poll_once_installs_merge_and_busts_cache() -> None:
    transport = _SnapshotTransport([{"studentId": "a1", "name": "alice", "status": "A"}, {"studentId": "b2"}])
    reconciler, store = _make(transport)
    store.remove(["b2"])

    assert await reconciler.poll_once()

    assert [r.identifier for r in store.records] == ["A1"]
    assert store.records[0].status == AttendanceStatus.ABSENT
    assert transport.reads == [{"action": "read", "_": str(_NOW)}]
    assert reconciler.last_success_at == _NOW


@pytest.mark.asyncio
async def test_poll_failures_leave_store_untouched() -> None:
    for transport in (
        _SnapshotTransport(error=SyncTransportError("HTTP 500", status_code=500, url=_URL)),
        _SnapshotTransport({"result": "error"}),
    ):
        reconciler, store = _make(transport)
        store.upsert(_local("A1", 1))

        assert not await reconciler.poll_once()
        assert [r.identifier for r in store.records] == ["A1"]
        assert reconciler.last_success_at is None


@pytest.mark.asyncio
async def test_poll_skipped_without_endpoint() -> None:
    transport = _SnapshotTransport()
    reconciler, _ = _make(transport, url="")

    assert not await reconciler.poll_once()
    assert transport.reads == []


@pytest.mark.asyncio
async def test_local_changes_during_fetch_are_kept() -> None:
    transport = _SnapshotTransport([{"studentId": "A1"}])
    transport.gate = asyncio.Event()
    reconciler, store = _make(transport)

    poll = asyncio.create_task(reconciler.poll_once())
    await asyncio.sleep(0)
    store.upsert(_local("B2", 7))
    store.remove(["A1"])
    transport.gate.set()

    assert await poll
    assert [r.identifier for r in store.records] == ["B2"]


@pytest.mark.asyncio
async def test_no_merge_after_stop() -> None:
    transport = _SnapshotTransport([{"studentId": "A1"}])
    transport.gate = asyncio.Event()
    reconciler, store = _make(transport)

    poll = asyncio.create_task(reconciler.poll_once())
    await asyncio.sleep(0)
    reconciler.stop()
    transport.gate.set()

    assert not await poll
    assert len(store) == 0


@pytest.mark.asyncio
async def test_run_polls_then_sleeps_interval() -> None:
    transport = _SnapshotTransport([{"studentId": "A1"}])
    sleeps: list[float] = []
    storage = MemoryStorage()
    store = RecordStore(storage, TombstoneSet(storage))

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)
        if len(sleeps) == 2:
            reconciler.stop()

    reconciler = Reconciler(
        store,
        transport,
        endpoint=lambda: _URL,
        config=SyncConfig(poll_interval=3.0),
        clock=lambda: _NOW,
        sleep=_sleep,
    )

    await asyncio.wait_for(reconciler.run(), timeout=2.0)

    assert len(transport.reads) == 2
    assert sleeps == [3.0, 3.0]
    assert [r.identifier for r in store.records] == ["A1"]
