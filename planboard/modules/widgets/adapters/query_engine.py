from __future__ import annotations

from typing import Any

import httpx

from planboard.modules.widgets.adapters.api_source import extract_rows
from planboard.modules.widgets.domain.resolution import DataSourceError
from planboard.shared.infrastructure.settings import get_settings


class QueryEngineClient:
    """Sends query descriptors to the external query engine; the engine owns query semantics."""

    def __init__(self, *, base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = get_settings()
        self._base_url = base_url or self._settings.query_engine_base_url
        self._transport = transport

    async def execute(
        self,
        *,
        query: str | dict[str, Any],
        parameters: dict[str, Any],
        widget: dict[str, Any],
        timeout_seconds: float,
    ) -> list[Any]:
        timeout = min(float(timeout_seconds), float(self._settings.query_engine_timeout_seconds))
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    "/query/execute",
                    json={"query": query, "parameters": parameters, "widget": widget},
                )
        except httpx.TimeoutException as exc:
            raise DataSourceError("timeout", f"Query engine timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise DataSourceError("request_error", f"Query engine unavailable: {exc}") from exc

        if response.status_code >= 400:
            try:
                detail: Any = response.json()
                message = detail.get("error", {}).get("message") if isinstance(detail, dict) else None
            except ValueError:
                message = None
            raise DataSourceError("query_error", message or response.text or "Query execution failed")

        try:
            body = response.json()
        except ValueError as exc:
            raise DataSourceError("malformed_payload", "Query engine returned invalid JSON") from exc
        return extract_rows(body)


_query_engine_client = QueryEngineClient()


def get_query_engine_client() -> QueryEngineClient:
    return _query_engine_client
