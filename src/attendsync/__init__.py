"""attendsync - Offline-first attendance sync engine for a remote spreadsheet store."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("attendsync")
except PackageNotFoundError:
    __version__ = "0+local"
from attendsync.config import SyncConfig
from attendsync.engine import SyncEngine
from attendsync.exceptions import (
    AttendSyncError,
    DeliveryRejectedError,
    LocalValidationError,
    PollFailure,
    StorageReadFailure,
    SyncConfigError,
    SyncTransportError,
    TransientDeliveryError,
)
from attendsync.identity import normalize_identifier
from attendsync.models import AttendanceStatus, MutationPayload, MutationTask, Record, RemoteRecord
from attendsync.storage import JsonFileStorage, KeyValueStorage, MemoryStorage
from attendsync.sync import DrainOutcome, Reconciler, SyncProcessor, merge_snapshot

__all__ = [
    "__version__",
    "AttendSyncError",
    "AttendanceStatus",
    "DeliveryRejectedError",
    "DrainOutcome",
    "JsonFileStorage",
    "KeyValueStorage",
    "LocalValidationError",
    "MemoryStorage",
    "MutationPayload",
    "MutationTask",
    "PollFailure",
    "Reconciler",
    "Record",
    "RemoteRecord",
    "StorageReadFailure",
    "SyncConfig",
    "SyncConfigError",
    "SyncEngine",
    "SyncProcessor",
    "SyncTransportError",
    "TransientDeliveryError",
    "merge_snapshot",
    "normalize_identifier",
]
