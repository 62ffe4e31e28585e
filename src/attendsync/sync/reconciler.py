"""Periodic merge of the remote snapshot into the local record store.

The remote store is authoritative for content fields (name, contact
address, status).  The local ``last_changed_at`` is kept as a recency hint
only.  A poll that completes before a pending local status change has been
delivered therefore shows the remote status until the next poll after
delivery.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Container, Iterable

from attendsync._api.read import fetch_snapshot
from attendsync._constants import is_valid_endpoint
from attendsync._transport import Transport
from attendsync.config import SyncConfig
from attendsync.exceptions import PollFailure
from attendsync.models import Record, RemoteRecord
from attendsync.state.store import RecordStore

_logger = logging.getLogger(__name__)


def merge_snapshot(
    local: Iterable[Record],
    remote: Iterable[RemoteRecord],
    tombstones: Container[str],
    now_ms: int,
) -> list[Record]:
    """Combine the local records with a remote snapshot.

    Tombstoned identifiers are skipped.  Remote items overwrite name,
    contact address (both uppercased) and status.  The timestamp is the
    pre-existing local one when there is one, otherwise the remote
    timestamp, otherwise *now_ms*.  Local order is kept; new identifiers
    are appended in snapshot order.
    """
    merged: dict[str, Record] = {record.identifier: record for record in local}
    for item in remote:
        if item.identifier in tombstones:
            continue
        existing = merged.get(item.identifier)
        if existing is not None:
            timestamp = existing.last_changed_at
        else:
            timestamp = item.timestamp or now_ms
        merged[item.identifier] = Record(
            identifier=item.identifier,
            display_name=item.display_name.upper(),
            contact_address=item.contact_address.upper(),
            status=item.status,
            last_changed_at=timestamp,
        )
    return list(merged.values())


class Reconciler:
    """Polls the read endpoint on a fixed interval and installs the merged view.

    Failed polls are logged and skipped; the next interval supersedes them.
    """

    def __init__(
        self,
        store: RecordStore,
        transport: Transport,
        *,
        endpoint: Callable[[], str | None],
        config: SyncConfig,
        clock: Callable[[], int],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._transport = transport
        self._endpoint = endpoint
        self._config = config
        self._clock = clock
        self._sleep = sleep
        self._stopped = False
        self.last_success_at: int | None = None

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        self._stopped = True

    async def poll_once(self) -> bool:
        """Fetch and merge one snapshot.  Returns whether the store was updated."""
        if self._stopped:
            return False
        url = self._endpoint()
        if url is None or not is_valid_endpoint(url):
            return False
        try:
            snapshot = await fetch_snapshot(self._transport, url, self._clock())
        except PollFailure as exc:
            _logger.warning("Polling failed: %s", exc)
            return False
        if self._stopped:
            return False

        # Read local state after the await so changes made during the fetch are kept.
        merged = merge_snapshot(self._store.records, snapshot, self._store.tombstones, self._clock())
        self._store.replace_all(merged)
        self.last_success_at = self._clock()
        _logger.debug("Merged %d remote items into %d local records", len(snapshot), len(merged))
        return True

    async def run(self) -> None:
        """Poll immediately, then every ``poll_interval`` seconds until stopped."""
        while not self._stopped:
            try:
                await self.poll_once()
            except Exception:
                _logger.warning("Unexpected error while polling", exc_info=True)
            if self._stopped:
                break
            await self._sleep(self._config.poll_interval)
