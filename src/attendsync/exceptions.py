"""Custom exception hierarchy for attendsync."""

from __future__ import annotations


class AttendSyncError(Exception):
    """Base exception for all attendsync errors."""


class SyncConfigError(AttendSyncError):
    """Invalid or missing configuration."""


class LocalValidationError(AttendSyncError, ValueError):
    """A local action was rejected before anything was stored or queued."""


class StorageReadFailure(AttendSyncError):
    """A persisted blob could not be decoded at start-up."""

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class SyncTransportError(AttendSyncError):
    """HTTP-level failure (network, timeout, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class TransientDeliveryError(AttendSyncError):
    """A mutation task could not be confirmed by the remote store.

    Every failure of a write attempt is treated as transient: the task stays
    at the head of the queue and is retried after a jittered backoff.
    """

    def __init__(self, message: str, *, task_id: str = "") -> None:
        self.task_id = task_id
        super().__init__(message)


class DeliveryRejectedError(TransientDeliveryError):
    """The remote store answered with a non-success result envelope."""

    def __init__(self, message: str, *, task_id: str = "", remote_message: str | None = None) -> None:
        self.remote_message = remote_message
        super().__init__(message, task_id=task_id)


class PollFailure(AttendSyncError):
    """Fetching or parsing the remote snapshot failed."""
