"""Queued mutation task models."""

from __future__ import annotations

import secrets

from pydantic import Field, field_validator

from attendsync.identity import normalize_identifier
from attendsync.models._base import AttendanceStatus, StatusCode, SyncBaseModel
from attendsync.models.record import Record


def new_task_id(now_ms: int) -> str:
    """Opaque unique task id: random prefix plus the enqueue time."""
    return f"{secrets.token_hex(4)}{now_ms}"


class MutationPayload(SyncBaseModel):
    """Fields of one remote write, serialized as the form the remote store expects."""

    identifier: str = Field(..., alias="studentId")
    display_name: str = Field("", alias="name")
    contact_address: str = Field("", alias="email")
    status: StatusCode = AttendanceStatus.PRESENT

    @field_validator("identifier")
    @classmethod
    def _normalize(cls, value: str) -> str:
        key = normalize_identifier(value)
        if not key:
            raise ValueError("identifier must be non-empty")
        return key

    @classmethod
    def from_record(cls, record: Record, status: AttendanceStatus | None = None) -> MutationPayload:
        return cls(
            identifier=record.identifier,
            display_name=record.display_name,
            contact_address=record.contact_address,
            status=status if status is not None else record.status,
        )

    def to_form(self) -> dict[str, str]:
        """Return the form-encoded field mapping (``studentId, name, email, status``)."""
        return {
            "studentId": self.identifier,
            "name": self.display_name,
            "email": self.contact_address,
            "status": self.status.value,
        }


class MutationTask(SyncBaseModel):
    """One durable, queued write destined for the remote store."""

    id: str
    payload: MutationPayload = Field(..., alias="data")
    enqueued_at: int = Field(0, alias="timestamp", description="Epoch milliseconds at enqueue time")

    @classmethod
    def create(cls, payload: MutationPayload, now_ms: int) -> MutationTask:
        return cls(id=new_task_id(now_ms), payload=payload, enqueued_at=now_ms)

    def to_storage(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)
