"""JSON-over-HTTPS transport for the remote authority."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from fleetsync._constants import IDEMPOTENCY_HEADER, TRANSIENT_STATUS_CODES, USER_AGENT
from fleetsync._redact import redact_for_log
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import TransientNetworkError

_logger = logging.getLogger(__name__)


class HttpResponse:
    """Status and decoded JSON body of a completed request."""

    __slots__ = ("status", "body", "endpoint")

    def __init__(self, status: int, body: Any, endpoint: str) -> None:
        self.status = status
        self.body = body
        self.endpoint = endpoint

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Tests pass doubles implementing ``request``; production code uses
    :class:`HttpTransport`.
    """

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json_body: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> HttpResponse: ...


class HttpTransport:
    """aiohttp transport with bearer auth and idempotency headers.

    Connection errors, timeouts and retryable statuses (408, 425, 429,
    5xx gateway errors) raise :class:`TransientNetworkError`; any other
    status is returned for the endpoint layer to map.
    """

    def __init__(self, config: FleetSyncConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _headers(self, idempotency_key: str | None) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }
        if self._config.api_token:
            headers["authorization"] = f"Bearer {self._config.api_token}"
        if idempotency_key:
            headers[IDEMPOTENCY_HEADER] = idempotency_key
        return headers

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json_body: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> HttpResponse:
        url = f"{self._config.base_url.rstrip('/')}{endpoint}"
        data = json.dumps(json_body, separators=(",", ":")) if json_body is not None else None

        _logger.debug(
            "%s %s params=%s body=%s key=%s",
            method,
            url,
            params,
            redact_for_log(json_body),
            idempotency_key,
        )

        try:
            async with self._http.request(
                method,
                url,
                data=data,
                params=dict(params) if params else None,
                headers=self._headers(idempotency_key),
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                status = resp.status
        except TimeoutError as exc:
            raise TransientNetworkError(
                f"Request to {endpoint} timed out after {self._config.request_timeout}s",
                endpoint=endpoint,
            ) from exc
        except aiohttp.ClientError as exc:
            raise TransientNetworkError(
                f"Request to {endpoint} failed: {exc}",
                endpoint=endpoint,
            ) from exc

        if status in TRANSIENT_STATUS_CODES or status >= 500:
            raise TransientNetworkError(
                f"HTTP {status} from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            )

        body: Any = None
        if text.strip():
            try:
                body = json.loads(text)
            except json.JSONDecodeError:
                body = {"message": text[:200]}

        _logger.debug("%s %s -> %d %s", method, endpoint, status, redact_for_log(body))
        return HttpResponse(status, body, endpoint)
