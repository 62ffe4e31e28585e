"""Offline-first attendance sync engine."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import aiohttp

from attendsync._constants import (
    ENDPOINT_URL_KEY,
    TEST_DISPLAY_NAME,
    TEST_EMAIL_DOMAIN,
    TEST_ID_PREFIX,
    is_valid_endpoint,
)
from attendsync._transport import HttpTransport, Transport
from attendsync.config import SyncConfig
from attendsync.exceptions import AttendSyncError, LocalValidationError
from attendsync.identity import normalize_identifier, normalize_identifiers
from attendsync.models import AttendanceStatus, MutationPayload, MutationTask, Record
from attendsync.state import MutationQueue, RecordStore, TombstoneSet
from attendsync.storage import KeyValueStorage, MemoryStorage
from attendsync.sync import Reconciler, SyncProcessor

_logger = logging.getLogger(__name__)


def _now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


class SyncEngine:
    """Local attendance state plus the two background loops that converge it with the remote store.

    User actions (:meth:`mark`, :meth:`bulk_update_status`, :meth:`remove`,
    :meth:`clear`) update local state synchronously, write it through to
    storage and, where the remote store must learn about the change,
    append tasks to the mutation queue.  They never wait on the network and
    never raise for remote failures.

    Usage::

        async with SyncEngine(config, storage=JsonFileStorage("state")) as engine:
            engine.start()
            engine.mark("Alice", "a1", "alice@example.com")
            ...
    """

    def __init__(
        self,
        config: SyncConfig | None = None,
        *,
        storage: KeyValueStorage | None = None,
        transport: Transport | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], int] = _now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config or SyncConfig()
        self._storage: KeyValueStorage = storage if storage is not None else MemoryStorage()
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport

        self._tombstones = TombstoneSet(self._storage)
        self._store = RecordStore(self._storage, self._tombstones)
        self._queue = MutationQueue(self._storage)
        self._endpoint_url = self._load_endpoint_url()

        self._processor: SyncProcessor | None = None
        self._reconciler: Reconciler | None = None
        self._loop_tasks: list[asyncio.Task[None]] = []
        self._closed = False
        if transport is not None:
            self._build_loops(transport)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> SyncEngine:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._http_session, timeout=self._config.request_timeout)
            self._build_loops(self._transport)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    def _build_loops(self, transport: Transport) -> None:
        self._processor = SyncProcessor(
            self._queue,
            transport,
            endpoint=lambda: self._endpoint_url,
            config=self._config,
            sleep=self._sleep,
            rng=self._rng,
        )
        self._reconciler = Reconciler(
            self._store,
            transport,
            endpoint=lambda: self._endpoint_url,
            config=self._config,
            clock=self._clock,
            sleep=self._sleep,
        )
        self._queue.on_enqueue = self._processor.notify

    def start(self) -> None:
        """Schedule the sync processor and, when enabled, the reconciler on the running loop."""
        if self._closed:
            raise AttendSyncError("Engine is closed")
        if self._loop_tasks:
            return
        processor = self._require_processor()
        self._loop_tasks.append(asyncio.create_task(processor.run(), name="attendsync-processor"))
        if self._config.polling_enabled:
            reconciler = self._require_reconciler()
            self._loop_tasks.append(asyncio.create_task(reconciler.run(), name="attendsync-reconciler"))
        _logger.debug("Sync loops started (%d pending tasks)", len(self._queue))

    async def stop(self) -> None:
        """Signal teardown and cancel both loops.

        After this returns neither loop mutates the queue or the store.
        Pending tasks stay persisted for the next start.
        """
        self._closed = True
        if self._processor is not None:
            self._processor.stop()
        if self._reconciler is not None:
            self._reconciler.stop()
        tasks, self._loop_tasks = self._loop_tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._queue:
            _logger.info("Engine stopped with %d unsynced tasks", len(self._queue))

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_processor(self) -> SyncProcessor:
        if self._processor is None:
            raise AttendSyncError("Engine not initialized. Use 'async with SyncEngine(...) as engine:'")
        return self._processor

    def _require_reconciler(self) -> Reconciler:
        if self._reconciler is None:
            raise AttendSyncError("Engine not initialized. Use 'async with SyncEngine(...) as engine:'")
        return self._reconciler

    def _require_open(self) -> None:
        if self._closed:
            raise AttendSyncError("Engine is closed")

    def _load_endpoint_url(self) -> str | None:
        saved = self._storage.get(ENDPOINT_URL_KEY)
        if saved is not None and saved.strip():
            return saved.strip()
        return self._config.endpoint_url

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def tombstones(self) -> TombstoneSet:
        return self._tombstones

    @property
    def queue(self) -> MutationQueue:
        return self._queue

    @property
    def processor(self) -> SyncProcessor:
        return self._require_processor()

    @property
    def reconciler(self) -> Reconciler:
        return self._require_reconciler()

    @property
    def records(self) -> tuple[Record, ...]:
        return self._store.records

    @property
    def pending_sync_count(self) -> int:
        """Number of writes not yet confirmed by the remote store."""
        return len(self._queue)

    @property
    def endpoint_url(self) -> str | None:
        return self._endpoint_url

    @property
    def has_valid_endpoint(self) -> bool:
        return is_valid_endpoint(self._endpoint_url)

    def set_endpoint_url(self, url: str | None, *, persist: bool = True) -> None:
        """Switch the remote endpoint; queued tasks are sent there from now on.

        With *persist* false the change lasts for this engine only.
        """
        value = (url or "").strip()
        self._endpoint_url = value or None
        if persist:
            self._storage.set(ENDPOINT_URL_KEY, value)
        if self._processor is not None:
            self._processor.notify()

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def mark(
        self,
        display_name: str,
        identifier: str,
        contact_address: str = "",
        status: AttendanceStatus | str = AttendanceStatus.PRESENT,
    ) -> Record:
        """Record an attendance mark locally and queue it for the remote store.

        The record replaces any previous record for the same identifier and
        moves to the front.  A tombstone for the identifier is lifted.

        Raises
        ------
        LocalValidationError
            If *identifier* is blank or *status* is not a known status code.
        """
        self._require_open()
        key = normalize_identifier(identifier)
        if not key:
            raise LocalValidationError("identifier is required")
        try:
            status = AttendanceStatus(status)
        except ValueError as exc:
            raise LocalValidationError(f"unknown status {status!r}") from exc

        now = self._clock()
        record = Record(
            identifier=key,
            display_name=display_name or "",
            contact_address=contact_address or "",
            status=status,
            last_changed_at=now,
        )
        self._store.upsert(record)
        self._queue.enqueue(MutationTask.create(MutationPayload.from_record(record), now))
        _logger.debug("Marked %s as %s (%d pending)", key, status.value, len(self._queue))
        return record

    def mark_test(self) -> Record:
        """Mark a synthetic attendee, handy for checking the remote round trip."""
        number = self._rng.randint(0, 999)
        return self.mark(
            TEST_DISPLAY_NAME,
            f"{TEST_ID_PREFIX}{number}",
            f"TEST{number}@{TEST_EMAIL_DOMAIN}",
            AttendanceStatus.PRESENT,
        )

    def bulk_update_status(self, identifiers: Iterable[str], status: AttendanceStatus | str) -> list[MutationTask]:
        """Change the status of every listed record that exists locally.

        One task is queued per updated record, carrying the record's stored
        name and contact address.  Unknown identifiers are ignored.

        Raises
        ------
        LocalValidationError
            If *status* is not a known status code.
        """
        self._require_open()
        try:
            status = AttendanceStatus(status)
        except ValueError as exc:
            raise LocalValidationError(f"unknown status {status!r}") from exc

        keys = normalize_identifiers(identifiers)
        updated = {record.identifier: record for record in self._store.bulk_update_status(keys, status)}
        now = self._clock()
        tasks = [
            MutationTask.create(MutationPayload.from_record(updated[key]), now) for key in keys if key in updated
        ]
        self._queue.extend(tasks)
        _logger.debug("Updated %d records to %s", len(tasks), status.value)
        return tasks

    def remove(self, identifiers: Iterable[str]) -> list[str]:
        """Remove records locally and keep the remote snapshot from bringing them back.

        Nothing is sent to the remote store.
        """
        self._require_open()
        removed = self._store.remove(identifiers)
        _logger.debug("Removed %d identifiers locally", len(removed))
        return removed

    def clear(self) -> list[str]:
        """Empty the local list.  The remote store keeps its data."""
        self._require_open()
        cleared = self._store.clear()
        _logger.info("Cleared %d local records", len(cleared))
        return cleared

    # ------------------------------------------------------------------
    # One-shot sync
    # ------------------------------------------------------------------

    async def flush(self, *, max_attempts: int | None = None) -> int:
        """Deliver queued tasks in the foreground; returns how many were acknowledged."""
        self._require_open()
        return await self._require_processor().drain(max_attempts=max_attempts)

    async def refresh(self) -> bool:
        """Poll the remote snapshot once; returns whether the local view was updated."""
        self._require_open()
        return await self._require_reconciler().poll_once()
