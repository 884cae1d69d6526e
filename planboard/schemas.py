from __future__ import annotations

from dataclasses import asdict
from typing import Any

from pydantic import BaseModel, Field

from planboard.modules.dashboards.domain.layout import LayoutItem, breakpoint_for_width
from planboard.modules.widgets.application.renderer import RenderedWidget, TableSummary
from planboard.modules.widgets.domain.config import Widget
from planboard.modules.widgets.domain.resolution import DataResolution, DataResolutionFailure


class DataResolutionFailureResponse(BaseModel):
    widget_id: str
    source_type: str
    reason: str
    message: str

    @classmethod
    def from_failure(cls, failure: DataResolutionFailure | None) -> "DataResolutionFailureResponse | None":
        if failure is None:
            return None
        return cls(
            widget_id=failure.widget_id,
            source_type=failure.source_type,
            reason=failure.reason,
            message=failure.message,
        )


class WidgetDataRequest(BaseModel):
    widget: Widget
    filters: dict[str, Any] = Field(default_factory=dict)


class WidgetDataResponse(BaseModel):
    widget_id: str
    rows: list[Any]
    row_count: int
    ok: bool = True
    failure: DataResolutionFailureResponse | None = None
    cache_hit: bool = False
    execution_time_ms: int = 0

    @classmethod
    def from_resolution(cls, resolution: DataResolution) -> "WidgetDataResponse":
        return cls(
            widget_id=resolution.widget_id,
            rows=resolution.rows,
            row_count=len(resolution.rows),
            ok=resolution.ok,
            failure=DataResolutionFailureResponse.from_failure(resolution.failure),
            cache_hit=resolution.cache_hit,
            execution_time_ms=resolution.execution_time_ms,
        )


class DashboardRenderRequest(BaseModel):
    filters: dict[str, Any] = Field(default_factory=dict)
    breakpoint: str = "lg"
    viewport_width: int | None = Field(default=None, ge=0)

    def resolved_breakpoint(self) -> str:
        if self.viewport_width is not None:
            return breakpoint_for_width(self.viewport_width)
        return self.breakpoint


class RenderedWidgetResponse(BaseModel):
    widget_id: str
    kind: str
    title: str
    state: str
    summary: dict[str, Any]
    failure: DataResolutionFailureResponse | None = None

    @classmethod
    def from_rendered(cls, rendered: RenderedWidget) -> "RenderedWidgetResponse":
        summary = asdict(rendered.summary)
        if isinstance(rendered.summary, TableSummary):
            summary["columns"] = [column.model_dump(mode="json") for column in rendered.summary.columns]
        return cls(
            widget_id=rendered.widget_id,
            kind=rendered.kind,
            title=rendered.title,
            state=rendered.state,
            summary=summary,
            failure=DataResolutionFailureResponse.from_failure(rendered.failure),
        )


class DashboardRenderResponse(BaseModel):
    dashboard_id: str
    visible_count: int
    active_filter_count: int
    layout: list[LayoutItem]
    widgets: list[RenderedWidgetResponse]


class StaticDataParseRequest(BaseModel):
    raw: str


class StaticDataParseResponse(BaseModel):
    rows: list[Any]
    row_count: int


class DashboardFromTemplateRequest(BaseModel):
    name: str | None = None
    owner_id: str | None = None
