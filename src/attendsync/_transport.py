"""HTTP transport for the remote record store."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from attendsync._constants import USER_AGENT
from attendsync._redact import redact_for_log
from attendsync.exceptions import SyncTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the endpoint modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def post_form(self, url: str, fields: Mapping[str, str]) -> Any:
        ...

    async def get_json(self, url: str, params: Mapping[str, str]) -> Any:
        ...


class HttpTransport:
    """aiohttp-backed transport with a per-request timeout.

    Both calls return the decoded JSON body.  Network errors, timeouts,
    non-2xx statuses and undecodable bodies all raise
    :class:`SyncTransportError`.
    """

    def __init__(self, http_session: aiohttp.ClientSession, *, timeout: float) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def post_form(self, url: str, fields: Mapping[str, str]) -> Any:
        headers = {
            "content-type": "application/x-www-form-urlencoded",
            "user-agent": USER_AGENT,
        }
        _logger.debug("POST %s %s", url, redact_for_log(dict(fields)))
        return await self._request("POST", url, data=dict(fields), headers=headers)

    async def get_json(self, url: str, params: Mapping[str, str]) -> Any:
        headers = {
            "cache-control": "no-store",
            "pragma": "no-cache",
            "user-agent": USER_AGENT,
        }
        _logger.debug("GET %s %s", url, dict(params))
        return await self._request("GET", url, params=dict(params), headers=headers)

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            async with self._http.request(method, url, timeout=self._timeout, **kwargs) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise SyncTransportError(
                        f"HTTP {resp.status} from {method} {url}: {text[:200]}",
                        status_code=resp.status,
                        url=url,
                    )
        except SyncTransportError:
            raise
        except TimeoutError as exc:
            raise SyncTransportError(
                f"{method} {url} timed out after {self._timeout.total}s",
                url=url,
            ) from exc
        except aiohttp.ClientError as exc:
            raise SyncTransportError(f"{method} {url} failed: {exc}", url=url) from exc

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise SyncTransportError(
                f"Invalid JSON from {method} {url}: {text[:200]}",
                status_code=resp.status,
                url=url,
            ) from exc
