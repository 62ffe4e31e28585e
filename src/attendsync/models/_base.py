"""Base model and status enum shared by all attendsync models.

Every model inherits from :class:`SyncBaseModel` which provides:

* frozen instances, so records and tasks can be shared between the store,
  the queue and the loops without defensive copies;
* ``populate_by_name`` so models can be built from Python field names or
  from the wire/storage aliases (``studentId``, ``name``, ...);
* a ``model_validator(mode="before")`` that drops ``None`` and blank string
  values so the field default is used instead.
"""

from __future__ import annotations

import math
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator

# Threshold to distinguish epoch seconds from milliseconds.
_MS_THRESHOLD = 100_000_000_000


def parse_epoch_ms(value: Any) -> int | None:
    """Convert an epoch timestamp (seconds **or** milliseconds) to milliseconds.

    Returns ``None`` for missing, non-numeric or non-positive values.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        ts = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(ts) or ts <= 0:
        return None
    if ts < _MS_THRESHOLD:
        ts *= 1000
    return int(ts)


EpochMillis = Annotated[int | None, BeforeValidator(parse_epoch_ms)]
"""Annotated type that coerces epoch seconds/ms (int, float or numeric str) to int ms."""


class AttendanceStatus(StrEnum):
    """Attendance status code as stored locally and sent to the remote store."""

    PRESENT = "P"
    ABSENT = "A"

    @classmethod
    def _missing_(cls, value: object) -> AttendanceStatus | None:
        if not isinstance(value, str):
            return None
        text = value.strip().upper()
        if text in ("P", "PRESENT"):
            return cls.PRESENT
        if text in ("A", "ABSENT"):
            return cls.ABSENT
        return None


def _coerce_status(value: Any) -> Any:
    if isinstance(value, str):
        return AttendanceStatus(value)
    return value


StatusCode = Annotated[AttendanceStatus, BeforeValidator(_coerce_status)]
"""Status field accepting ``"P"``/``"A"`` as well as ``"present"``/``"absent"`` in any case."""


class SyncBaseModel(BaseModel):
    """Base for attendsync models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_blank_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and not value.strip():
                continue
            cleaned[key] = value
        return cleaned
