from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
import pytest

from attendsync._transport import HttpTransport
from attendsync.exceptions import SyncTransportError

_URL = "https://example.test/exec"


class _FakeResponse:
    def __init__(self, status: int, text: str) -> None:
        self.status = status
        self._text = text

    async def text(self) -> str:
        return self._text

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeSession:
    def __init__(self, response: _FakeResponse | None = None, error: BaseException | None = None) -> None:
        self._response = response
        self._error = error
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append((method, url, kwargs))
        if self._error is not None:
            raise self._error
        assert self._response is not None
        return self._response


def _transport(session: _FakeSession, timeout: float = 25.0) -> HttpTransport:
    return HttpTransport(session, timeout=timeout)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_post_form_sends_form_with_timeout() -> None:
    session = _FakeSession(_FakeResponse(200, '{"result": "success"}'))

    body = await _transport(session, timeout=12.0).post_form(_URL, {"studentId": "A1", "status": "P"})

    assert body == {"result": "success"}
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", _URL)
    assert kwargs["data"] == {"studentId": "A1", "status": "P"}
    assert kwargs["headers"]["content-type"] == "application/x-www-form-urlencoded"
    assert kwargs["timeout"].total == 12.0


@pytest.mark.asyncio
async def test_get_json_sends_params_and_no_store() -> None:
    session = _FakeSession(_FakeResponse(200, "[]"))

    body = await _transport(session).get_json(_URL, {"action": "read", "_": "1"})

    assert body == []
    _, _, kwargs = session.calls[0]
    assert kwargs["params"] == {"action": "read", "_": "1"}
    assert kwargs["headers"]["cache-control"] == "no-store"


@pytest.mark.asyncio
async def test_non_2xx_status_raises() -> None:
    session = _FakeSession(_FakeResponse(429, "Too many requests"))

    with pytest.raises(SyncTransportError) as exc_info:
        await _transport(session).post_form(_URL, {})

    assert exc_info.value.status_code == 429
    assert exc_info.value.url == _URL


@pytest.mark.asyncio
async def test_invalid_json_raises() -> None:
    session = _FakeSession(_FakeResponse(200, "<html>login</html>"))

    with pytest.raises(SyncTransportError, match="Invalid JSON"):
        await _transport(session).get_json(_URL, {})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()],
)
async def test_network_failures_raise(error: BaseException) -> None:
    with pytest.raises(SyncTransportError):
        await _transport(_FakeSession(error=error)).post_form(_URL, {})
