from __future__ import annotations

from typing import Any, Protocol


class ApiDataSourcePort(Protocol):
    async def fetch(self, *, endpoint: str, payload: dict[str, Any], timeout_seconds: float) -> list[Any]:
        raise NotImplementedError


class QueryExecutorPort(Protocol):
    async def execute(
        self,
        *,
        query: str | dict[str, Any],
        parameters: dict[str, Any],
        widget: dict[str, Any],
        timeout_seconds: float,
    ) -> list[Any]:
        raise NotImplementedError
