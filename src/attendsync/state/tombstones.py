"""Identifiers the local user explicitly removed.

The set is a pure filter consulted by the reconciler so a remote snapshot
cannot resurrect a locally removed record.  It is persisted under its own
key, independently of the record list.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from attendsync._constants import TOMBSTONES_KEY
from attendsync.exceptions import StorageReadFailure
from attendsync.identity import normalize_identifier, normalize_identifiers
from attendsync.storage import KeyValueStorage, dump_json, load_json

_logger = logging.getLogger(__name__)


class TombstoneSet:
    """Persisted set of normalized identifiers."""

    def __init__(self, storage: KeyValueStorage, *, key: str = TOMBSTONES_KEY) -> None:
        self._storage = storage
        self._key = key
        self._ids: set[str] = self._load()

    def _load(self) -> set[str]:
        try:
            raw = load_json(self._storage, self._key)
        except StorageReadFailure:
            _logger.warning("Discarding unreadable tombstone set under %s", self._key, exc_info=True)
            return set()
        if raw is None:
            return set()
        if not isinstance(raw, list):
            _logger.warning("Discarding tombstone set under %s: expected a list", self._key)
            return set()
        return set(normalize_identifiers(raw))

    def _persist(self) -> None:
        dump_json(self._storage, self._key, sorted(self._ids))

    def add(self, identifiers: Iterable[str]) -> list[str]:
        """Tombstone *identifiers*; returns the ones that were not already present."""
        added = [key for key in normalize_identifiers(identifiers) if key not in self._ids]
        if added:
            self._ids.update(added)
            self._persist()
        return added

    def discard(self, identifier: str) -> bool:
        """Lift the tombstone for *identifier*; returns whether one existed."""
        key = normalize_identifier(identifier)
        if key not in self._ids:
            return False
        self._ids.remove(key)
        self._persist()
        return True

    def __contains__(self, identifier: object) -> bool:
        return normalize_identifier(identifier) in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._ids))

    def __len__(self) -> int:
        return len(self._ids)
