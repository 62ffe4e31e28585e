"""Background loops: queue delivery and snapshot reconciliation."""

from attendsync.sync.processor import DrainOutcome, SyncProcessor
from attendsync.sync.reconciler import Reconciler, merge_snapshot

__all__ = ["DrainOutcome", "Reconciler", "SyncProcessor", "merge_snapshot"]
