"""Local record store.

Holds the client's best-known view of every record, keyed by normalized
identifier, most recently touched first.  The store owns the tombstone set:
marking an identifier lifts its tombstone and removing an identifier adds
one, so visibility in the store and absence from the tombstone set can
never drift apart.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import ValidationError

from attendsync._constants import RECORDS_KEY
from attendsync.exceptions import StorageReadFailure
from attendsync.identity import normalize_identifier, normalize_identifiers
from attendsync.models import AttendanceStatus, Record
from attendsync.state.tombstones import TombstoneSet
from attendsync.storage import KeyValueStorage, dump_json, load_json

_logger = logging.getLogger(__name__)


class RecordStore:
    """Ordered, persisted collection of :class:`Record` objects.

    Every mutating call writes the new record list (and the tombstone set,
    when it changes) to storage before returning.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        tombstones: TombstoneSet,
        *,
        key: str = RECORDS_KEY,
    ) -> None:
        self._storage = storage
        self._key = key
        self._tombstones = tombstones
        self._records: list[Record] = self._load()

    def _load(self) -> list[Record]:
        try:
            raw = load_json(self._storage, self._key)
        except StorageReadFailure:
            _logger.warning("Discarding unreadable record list under %s", self._key, exc_info=True)
            return []
        if raw is None:
            return []
        if not isinstance(raw, list):
            _logger.warning("Discarding record list under %s: expected a list, got %s", self._key, type(raw).__name__)
            return []
        # Keep the first (most recent) entry when a blob holds duplicates.
        seen: set[str] = set()
        records: list[Record] = []
        for index, item in enumerate(raw):
            try:
                record = Record.model_validate(item)
            except ValidationError:
                _logger.warning("Skipping invalid record #%d under %s", index, self._key, exc_info=True)
                continue
            if record.identifier not in seen:
                seen.add(record.identifier)
                records.append(record)

        # A tombstoned identifier is never visible.
        visible = [record for record in records if record.identifier not in self._tombstones]
        if len(visible) != len(records):
            _logger.warning("Dropping %d tombstoned records under %s", len(records) - len(visible), self._key)
            dump_json(self._storage, self._key, [record.to_storage() for record in visible])
        return visible

    def _persist(self) -> None:
        dump_json(self._storage, self._key, [record.to_storage() for record in self._records])

    @property
    def tombstones(self) -> TombstoneSet:
        return self._tombstones

    @property
    def records(self) -> tuple[Record, ...]:
        return tuple(self._records)

    def get(self, identifier: str) -> Record | None:
        key = normalize_identifier(identifier)
        for record in self._records:
            if record.identifier == key:
                return record
        return None

    def __contains__(self, identifier: object) -> bool:
        return self.get(str(identifier)) is not None

    def __len__(self) -> int:
        return len(self._records)

    def upsert(self, record: Record) -> None:
        """Insert *record* at the front, replacing any record with the same identifier.

        The identifier's tombstone, if any, is lifted first.
        """
        self._tombstones.discard(record.identifier)
        self._records = [record, *(r for r in self._records if r.identifier != record.identifier)]
        self._persist()

    def bulk_update_status(self, identifiers: Iterable[str], status: AttendanceStatus) -> list[Record]:
        """Set *status* on every present record in *identifiers*, keeping order and other fields.

        Returns the updated records.  Identifiers not in the store are ignored.
        """
        wanted = set(normalize_identifiers(identifiers))
        updated: list[Record] = []
        records: list[Record] = []
        for record in self._records:
            if record.identifier in wanted:
                record = record.with_status(status)
                updated.append(record)
            records.append(record)
        if updated:
            self._records = records
            self._persist()
        return updated

    def remove(self, identifiers: Iterable[str]) -> list[str]:
        """Delete matching records and tombstone every given identifier.

        Returns the normalized identifiers that were tombstoned.
        """
        keys = normalize_identifiers(identifiers)
        if not keys:
            return []
        wanted = set(keys)
        remaining = [r for r in self._records if r.identifier not in wanted]
        if len(remaining) != len(self._records):
            self._records = remaining
            self._persist()
        self._tombstones.add(keys)
        return keys

    def clear(self) -> list[str]:
        """Tombstone every visible record and empty the store."""
        return self.remove([record.identifier for record in self._records])

    def replace_all(self, records: Iterable[Record]) -> None:
        """Install a freshly merged view.  Reserved for the reconciler."""
        self._records = list(records)
        self._persist()
