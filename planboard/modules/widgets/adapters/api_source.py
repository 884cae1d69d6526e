from __future__ import annotations

from typing import Any

import httpx

from planboard.modules.widgets.domain.resolution import DataSourceError


def extract_rows(body: Any) -> list[Any]:
    """Accepts a bare list or an object carrying the rows under ``data`` or ``rows``."""
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for key in ("data", "rows"):
            rows = body.get(key)
            if isinstance(rows, list):
                return rows
    raise DataSourceError("malformed_payload", "Response body does not contain a list of rows")


class HttpApiDataSource:
    def __init__(self, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    async def fetch(self, *, endpoint: str, payload: dict[str, Any], timeout_seconds: float) -> list[Any]:
        try:
            async with httpx.AsyncClient(timeout=timeout_seconds, transport=self._transport) as client:
                response = await client.post(endpoint, json=payload)
        except httpx.TimeoutException as exc:
            raise DataSourceError("timeout", f"Data endpoint timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise DataSourceError("request_error", f"Data endpoint unavailable: {exc}") from exc

        if response.status_code >= 400:
            raise DataSourceError("http_status", f"Data endpoint returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            raise DataSourceError("malformed_payload", "Data endpoint returned invalid JSON") from exc
        return extract_rows(body)


_api_data_source = HttpApiDataSource()


def get_api_data_source() -> HttpApiDataSource:
    return _api_data_source
