"""Remote store response models."""

from __future__ import annotations

from pydantic import Field, field_validator

from attendsync._constants import WRITE_RESULT_SUCCESS
from attendsync.identity import normalize_identifier
from attendsync.models._base import AttendanceStatus, EpochMillis, StatusCode, SyncBaseModel


class RemoteRecord(SyncBaseModel):
    """One item of the snapshot returned by the read endpoint."""

    identifier: str = Field(..., alias="studentId")
    display_name: str = Field("", alias="name")
    contact_address: str = Field("", alias="email")
    status: StatusCode = AttendanceStatus.PRESENT
    timestamp: EpochMillis = None

    @field_validator("identifier", mode="before")
    @classmethod
    def _normalize(cls, value: object) -> str:
        key = normalize_identifier(value)
        if not key:
            raise ValueError("studentId must be non-empty")
        return key

    @field_validator("display_name", "contact_address", mode="before")
    @classmethod
    def _as_text(cls, value: object) -> str:
        return str(value)


class WriteResult(SyncBaseModel):
    """Response envelope of the write endpoint."""

    result: str = ""
    message: str | None = None

    @field_validator("message", mode="before")
    @classmethod
    def _message_as_text(cls, value: object) -> str:
        return str(value)

    @property
    def accepted(self) -> bool:
        return self.result.strip().lower() == WRITE_RESULT_SUCCESS
