"""Pydantic models for records, queued mutations and remote responses."""

from attendsync.models._base import AttendanceStatus, EpochMillis, StatusCode, SyncBaseModel, parse_epoch_ms
from attendsync.models.record import Record
from attendsync.models.remote import RemoteRecord, WriteResult
from attendsync.models.task import MutationPayload, MutationTask, new_task_id

__all__ = [
    "AttendanceStatus",
    "EpochMillis",
    "MutationPayload",
    "MutationTask",
    "Record",
    "RemoteRecord",
    "StatusCode",
    "SyncBaseModel",
    "WriteResult",
    "new_task_id",
    "parse_epoch_ms",
]
