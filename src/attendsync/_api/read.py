"""Snapshot read from the remote store."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from attendsync._constants import CACHE_BUST_PARAM, READ_ACTION
from attendsync._transport import Transport
from attendsync.exceptions import PollFailure, SyncTransportError
from attendsync.models.remote import RemoteRecord

_logger = logging.getLogger(__name__)


def build_read_params(now_ms: int) -> dict[str, str]:
    """Query parameters for a snapshot read; the timestamp defeats intermediate caches."""
    return {"action": READ_ACTION, CACHE_BUST_PARAM: str(now_ms)}


def parse_snapshot(items: list[Any]) -> list[RemoteRecord]:
    """Validate snapshot items, skipping entries without an identifier or with an unknown status."""
    records: list[RemoteRecord] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            records.append(RemoteRecord.model_validate(item))
        except ValidationError:
            _logger.debug("Skipping invalid snapshot item %r", item.get("studentId"))
    return records


async def fetch_snapshot(transport: Transport, url: str, now_ms: int) -> list[RemoteRecord]:
    """Fetch and parse the current remote snapshot.

    Raises
    ------
    PollFailure
        On any transport failure or when the body is not a JSON array.
    """
    endpoint = url.strip()
    try:
        body = await transport.get_json(endpoint, build_read_params(now_ms))
    except SyncTransportError as exc:
        raise PollFailure(f"Snapshot read failed: {exc}") from exc

    if not isinstance(body, list):
        raise PollFailure(f"Snapshot read returned a {type(body).__name__} instead of a list")
    return parse_snapshot(body)
