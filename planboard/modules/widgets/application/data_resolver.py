from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from time import perf_counter
from typing import Any, Callable, Iterable

from planboard.modules.widgets.domain.config import ApiDataSource, QueryDataSource, StaticDataSource, Widget
from planboard.modules.widgets.domain.ports import ApiDataSourcePort, QueryExecutorPort
from planboard.modules.widgets.domain.resolution import (
    DataResolution,
    DataResolutionFailure,
    DataSourceError,
    FailureReason,
)
from planboard.shared.infrastructure.settings import get_settings
from planboard.shared.observability.widget_data_logging import log_widget_data_request

logger = logging.getLogger(__name__)

IsCurrent = Callable[[str, str], bool]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def widget_data_fingerprint(widget: Widget, filters: dict[str, Any]) -> str:
    """Identity of one resolution request: changes whenever source, config or filters change."""
    canonical = _canonical_json(
        {
            "kind": widget.kind,
            "config": widget.config.model_dump(mode="json"),
            "data_source": widget.data_source.model_dump(mode="json"),
            "filters": filters,
        }
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class _CacheEntry:
    fingerprint: str
    resolution: DataResolution
    expires_at: datetime


class WidgetDataCache:
    """Side table of the latest resolution per widget id, bounded and LRU-evicted."""

    def __init__(self, max_entries: int) -> None:
        self._max_entries = max_entries
        self._entries: "OrderedDict[str, _CacheEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, widget_id: object) -> bool:
        return widget_id in self._entries

    def latest(self, widget_id: str) -> DataResolution | None:
        entry = self._entries.get(widget_id)
        return entry.resolution if entry else None

    def reusable(self, widget_id: str, fingerprint: str, now: datetime) -> DataResolution | None:
        entry = self._entries.get(widget_id)
        if entry is None or entry.fingerprint != fingerprint or now >= entry.expires_at:
            return None
        self._entries.move_to_end(widget_id)
        return entry.resolution

    def put(self, widget_id: str, fingerprint: str, resolution: DataResolution, expires_at: datetime) -> None:
        self._entries[widget_id] = _CacheEntry(fingerprint=fingerprint, resolution=resolution, expires_at=expires_at)
        self._entries.move_to_end(widget_id)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def discard(self, widget_id: str) -> None:
        self._entries.pop(widget_id, None)

    def retain(self, widget_ids: Iterable[str]) -> None:
        keep = set(widget_ids)
        for widget_id in [key for key in self._entries if key not in keep]:
            del self._entries[widget_id]

    def clear(self) -> None:
        self._entries.clear()

    def widget_ids(self) -> list[str]:
        return list(self._entries.keys())


class WidgetDataResolver:
    def __init__(
        self,
        *,
        api_source: ApiDataSourcePort | None = None,
        query_executor: QueryExecutorPort | None = None,
        cache: WidgetDataCache | None = None,
        timeout_seconds: float | None = None,
        default_cache_minutes: int | None = None,
    ) -> None:
        settings = get_settings()
        self._api_source = api_source
        self._query_executor = query_executor
        self.cache = cache if cache is not None else WidgetDataCache(settings.widget_data_cache_max_entries)
        self._timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.widget_data_timeout_seconds
        self._default_cache_minutes = (
            default_cache_minutes if default_cache_minutes is not None else settings.widget_data_default_cache_minutes
        )

    def latest(self, widget_id: str) -> DataResolution | None:
        return self.cache.latest(widget_id)

    def discard(self, widget_id: str) -> None:
        self.cache.discard(widget_id)

    async def resolve(
        self,
        widget: Widget,
        filters: dict[str, Any] | None = None,
        *,
        is_current: IsCurrent | None = None,
    ) -> DataResolution | None:
        """Resolves one widget's rows; returns ``None`` when the result arrived for a widget no longer current."""
        active_filters = dict(filters or {})
        fingerprint = widget_data_fingerprint(widget, active_filters)
        now = _utcnow()
        cached = self.cache.reusable(widget.id, fingerprint, now)
        if cached is not None:
            return DataResolution(
                widget_id=widget.id,
                rows=list(cached.rows),
                cache_hit=True,
                execution_time_ms=0,
                resolved_at=cached.resolved_at,
            )

        started = perf_counter()
        try:
            rows = await self._fetch_rows(widget, active_filters)
            resolution = DataResolution(widget_id=widget.id, rows=rows)
        except DataSourceError as exc:
            resolution = self._failure(widget, exc.reason, exc.message)
        except asyncio.TimeoutError:
            resolution = self._failure(widget, "timeout", f"Timed out after {self._timeout_seconds}s")
        except Exception as exc:
            logger.exception("widget_data_resolution.unexpected_error | %s", {"widget_id": widget.id})
            reason: FailureReason = "query_error" if widget.data_source.type == "query" else "request_error"
            resolution = self._failure(widget, reason, repr(exc))
        resolution.execution_time_ms = int((perf_counter() - started) * 1000)

        if is_current is not None and not is_current(widget.id, fingerprint):
            logger.debug("widget_data_resolution.discarded | %s", {"widget_id": widget.id})
            return None

        self.cache.put(widget.id, fingerprint, resolution, self._expires_at(widget, resolution, now))
        logger.info(
            "widget_data_resolution | %s",
            {
                "widget_id": widget.id,
                "source": widget.data_source.type,
                "row_count": len(resolution.rows),
                "failure": resolution.failure.reason if resolution.failure else None,
                "execution_time_ms": resolution.execution_time_ms,
            },
        )
        return resolution

    async def resolve_many(
        self,
        widgets: list[Widget],
        filters: dict[str, Any] | None = None,
        *,
        is_current: IsCurrent | None = None,
    ) -> dict[str, DataResolution]:
        """Resolves every visible widget concurrently; one widget's failure never affects another."""
        visible = [widget for widget in widgets if widget.visible]
        outcomes = await asyncio.gather(
            *(self.resolve(widget, filters, is_current=is_current) for widget in visible)
        )
        return {widget.id: outcome for widget, outcome in zip(visible, outcomes) if outcome is not None}

    async def _fetch_rows(self, widget: Widget, filters: dict[str, Any]) -> list[Any]:
        source = widget.data_source
        if isinstance(source, StaticDataSource):
            return list(source.static_data)

        parameters = {**source.parameters, **filters}
        if isinstance(source, ApiDataSource):
            if self._api_source is None:
                raise DataSourceError("unsupported_source", "No API data source adapter configured")
            log_widget_data_request(widget_id=widget.id, source_type="api", target=source.api_endpoint, filters=filters)
            rows = await asyncio.wait_for(
                self._api_source.fetch(
                    endpoint=source.api_endpoint,
                    payload={"widget": widget.descriptor(), "filters": filters, "parameters": parameters},
                    timeout_seconds=self._timeout_seconds,
                ),
                timeout=self._timeout_seconds,
            )
        elif isinstance(source, QueryDataSource):
            if self._query_executor is None:
                raise DataSourceError("unsupported_source", "No query executor configured")
            log_widget_data_request(widget_id=widget.id, source_type="query", target=None, filters=filters)
            rows = await asyncio.wait_for(
                self._query_executor.execute(
                    query=source.query,
                    parameters=parameters,
                    widget=widget.descriptor(),
                    timeout_seconds=self._timeout_seconds,
                ),
                timeout=self._timeout_seconds,
            )
        else:
            raise DataSourceError("unsupported_source", f"Unsupported data source type: {source.type}")

        if not isinstance(rows, list):
            raise DataSourceError("malformed_payload", "Data source did not return a list of rows")
        return rows

    def _failure(self, widget: Widget, reason: FailureReason, message: str) -> DataResolution:
        logger.warning(
            "widget_data_resolution.degraded | %s",
            {"widget_id": widget.id, "source": widget.data_source.type, "reason": reason, "message": message},
        )
        return DataResolution(
            widget_id=widget.id,
            rows=[],
            failure=DataResolutionFailure(
                widget_id=widget.id,
                source_type=widget.data_source.type,
                reason=reason,
                message=message,
            ),
        )

    def _expires_at(self, widget: Widget, resolution: DataResolution, now: datetime) -> datetime:
        if not resolution.ok:
            return now
        minutes = widget.data_source.cache_time_minutes
        if minutes is None:
            minutes = self._default_cache_minutes
        return now + timedelta(minutes=minutes)
