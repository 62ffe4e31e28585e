"""Local attendance record model."""

from __future__ import annotations

from pydantic import Field, field_validator

from attendsync.identity import normalize_identifier
from attendsync.models._base import AttendanceStatus, StatusCode, SyncBaseModel


class Record(SyncBaseModel):
    """Best-known local view of one attendee.

    Serialized with the remote store's column names so the persisted blob
    matches what the snapshot endpoint returns.
    """

    identifier: str = Field(..., alias="studentId")
    display_name: str = Field("", alias="name")
    contact_address: str = Field("", alias="email")
    status: StatusCode = AttendanceStatus.PRESENT
    last_changed_at: int = Field(0, alias="timestamp", description="Epoch milliseconds of the last local change")

    @field_validator("identifier")
    @classmethod
    def _normalize(cls, value: str) -> str:
        key = normalize_identifier(value)
        if not key:
            raise ValueError("identifier must be non-empty")
        return key

    def with_status(self, status: AttendanceStatus) -> Record:
        """Return a copy with *status* replaced and every other field unchanged."""
        return self.model_copy(update={"status": status})

    def to_storage(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)
