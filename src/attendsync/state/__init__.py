"""State layer.

This package holds the engine's persisted state: the local record store,
the tombstone set and the mutation queue.  The sync processor and the
reconciler only ever communicate through these objects.
"""

from attendsync.state.queue import MutationQueue
from attendsync.state.store import RecordStore
from attendsync.state.tombstones import TombstoneSet

__all__ = ["MutationQueue", "RecordStore", "TombstoneSet"]
