from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from attendsync._api.read import build_read_params, fetch_snapshot
from attendsync._api.write import deliver_task
from attendsync.exceptions import DeliveryRejectedError, PollFailure, SyncTransportError, TransientDeliveryError
from attendsync.models import AttendanceStatus, MutationPayload, MutationTask

_URL = "https://example.test/exec"


class _FakeTransport:
    def __init__(self, response: Any = None, error: Exception | None = None) -> None:
        self._response = response
        self._error = error
        self.calls: list[tuple[str, str, dict[str, str]]] = []

    async def post_form(self, url: str, fields: Mapping[str, str]) -> Any:
        self.calls.append(("POST", url, dict(fields)))
        if self._error is not None:
            raise self._error
        return self._response

    async def get_json(self, url: str, params: Mapping[str, str]) -> Any:
        self.calls.append(("GET", url, dict(params)))
        if self._error is not None:
            raise self._error
        return self._response


def _task() -> MutationTask:
    payload = MutationPayload(identifier="a1", display_name="Alice", contact_address="a@x.com", status="A")
    return MutationTask.create(payload, now_ms=1000)


@pytest.mark.asyncio
async def test_deliver_task_posts_form_fields_and_accepts_success() -> None:
    transport = _FakeTransport({"result": "success"})

    result = await deliver_task(transport, f"  {_URL} ", _task())

    assert result.accepted
    assert transport.calls == [
        ("POST", _URL, {"studentId": "A1", "name": "Alice", "email": "a@x.com", "status": "A"}),
    ]


@pytest.mark.asyncio
async def test_deliver_task_rejecting_envelope() -> None:
    task = _task()
    transport = _FakeTransport({"result": "error", "message": "Lock timeout"})

    with pytest.raises(DeliveryRejectedError) as exc_info:
        await deliver_task(transport, _URL, task)

    assert exc_info.value.task_id == task.id
    assert exc_info.value.remote_message == "Lock timeout"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [["success"], "success", None, {"status": "ok"}])
async def test_deliver_task_unexpected_bodies_are_transient(body: Any) -> None:
    with pytest.raises(TransientDeliveryError):
        await deliver_task(_FakeTransport(body), _URL, _task())


@pytest.mark.asyncio
async def test_deliver_task_wraps_transport_errors() -> None:
    error = SyncTransportError("HTTP 503", status_code=503, url=_URL)

    with pytest.raises(TransientDeliveryError) as exc_info:
        await deliver_task(_FakeTransport(error=error), _URL, _task())

    assert exc_info.value.__cause__ is error


def test_read_params_carry_action_and_cache_buster() -> None:
    assert build_read_params(1234) == {"action": "read", "_": "1234"}


@pytest.mark.asyncio
async def test_fetch_snapshot_skips_invalid_items() -> None:
    transport = _FakeTransport(
        [
            {"studentId": "a1", "name": "alice", "email": "a@x.com", "status": "A", "timestamp": 1_700_000_000_000},
            {"name": "no id"},
            {"studentId": "b2", "status": "LATE"},
            "garbage",
            {"studentId": "c3"},
        ]
    )

    snapshot = await fetch_snapshot(transport, _URL, now_ms=42)

    assert [item.identifier for item in snapshot] == ["A1", "C3"]
    assert snapshot[0].status == AttendanceStatus.ABSENT
    assert transport.calls == [("GET", _URL, {"action": "read", "_": "42"})]


@pytest.mark.asyncio
async def test_fetch_snapshot_failures_raise_poll_failure() -> None:
    with pytest.raises(PollFailure):
        await fetch_snapshot(_FakeTransport({"result": "error"}), _URL, now_ms=1)
    with pytest.raises(PollFailure):
        await fetch_snapshot(_FakeTransport(error=SyncTransportError("down", url=_URL)), _URL, now_ms=1)
