"""REST transport for single-row reads and writes (PostgREST dialect)."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any

import aiohttp

from rowsync._constants import DEFAULT_SCHEMA, PGRST_NO_SINGLE_ROW, PGRST_OBJECT_MEDIA_TYPE
from rowsync._redact import redact_for_log, redact_headers
from rowsync.config import RowSyncConfig
from rowsync.exceptions import RowNotFoundError, RowSyncApiError, RowSyncTransportError

_logger = logging.getLogger(__name__)


def _eq(value: Any) -> str:
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


class RestTransport:
    """HTTP transport that speaks the PostgREST row API.

    One instance is shared by every engine using the same client; it holds
    no per-row state.
    """

    def __init__(self, config: RowSyncConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session

    def _headers(self, *, schema: str, write: bool = False) -> dict[str, str]:
        headers: dict[str, str] = {
            "apikey": self._config.api_key,
            "authorization": f"Bearer {self._config.bearer_token}",
            "x-client-info": self._config.user_agent,
            "user-agent": self._config.user_agent,
        }
        # The default schema needs no profile header.
        if schema != DEFAULT_SCHEMA:
            headers["content-profile" if write else "accept-profile"] = schema
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: Mapping[str, str],
        headers: Mapping[str, str],
        body: Any = None,
    ) -> tuple[int, str]:
        endpoint = f"/{table}"
        url = f"{self._config.rest_url}{endpoint}"
        data = json.dumps(body, separators=(",", ":"), default=str) if body is not None else None

        _logger.debug(
            "%s %s params=%s headers=%s body=%s",
            method,
            url,
            dict(params),
            redact_headers(headers),
            redact_for_log(body),
        )

        try:
            async with self._http.request(
                method,
                url,
                params=dict(params),
                headers=dict(headers),
                data=data,
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout),
            ) as resp:
                text = await resp.text()
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise RowSyncTransportError(
                f"Request to {endpoint} failed: {exc!r}",
                endpoint=endpoint,
            ) from exc

        if status >= 400:
            self._raise_for_error(status, text, endpoint)
        return status, text

    @staticmethod
    def _raise_for_error(status: int, text: str, endpoint: str) -> None:
        try:
            body = json.loads(text) if text else None
        except json.JSONDecodeError:
            body = None

        if not isinstance(body, dict) or "message" not in body:
            raise RowSyncTransportError(
                f"HTTP {status} from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            )

        code = str(body.get("code") or "")
        message = str(body.get("message") or "")
        details = body.get("details")
        if details:
            message = f"{message} ({details})"
        if code == PGRST_NO_SINGLE_ROW:
            raise RowNotFoundError(message, code=code, endpoint=endpoint)
        raise RowSyncApiError(message, code=code, endpoint=endpoint)

    async def select_single(
        self,
        table: str,
        *,
        column: str,
        value: Any,
        columns: str = "*",
        schema: str = DEFAULT_SCHEMA,
    ) -> dict[str, Any]:
        """Fetch exactly one row, ``select <columns> from <table> where <column> = <value>``."""
        headers = self._headers(schema=schema)
        headers["accept"] = PGRST_OBJECT_MEDIA_TYPE
        _status, text = await self._request(
            "GET",
            table,
            params={"select": columns, column: _eq(value)},
            headers=headers,
        )

        try:
            row = json.loads(text)
        except json.JSONDecodeError as exc:
            raise RowSyncTransportError(
                f"Invalid JSON from /{table}: {text[:200]}",
                endpoint=f"/{table}",
            ) from exc
        if not isinstance(row, dict):
            raise RowSyncTransportError(
                f"Expected a single object from /{table}, got {type(row).__name__}",
                endpoint=f"/{table}",
            )
        return row

    async def update(
        self,
        table: str,
        values: dict[str, Any],
        *,
        column: str,
        value: Any,
        schema: str = DEFAULT_SCHEMA,
    ) -> None:
        """``update <table> set <values> where <column> = <value>``; no read-back."""
        headers = self._headers(schema=schema, write=True)
        headers["content-type"] = "application/json"
        headers["prefer"] = "return=minimal"
        await self._request(
            "PATCH",
            table,
            params={column: _eq(value)},
            headers=headers,
            body=values,
        )
