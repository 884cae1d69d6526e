from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union
from urllib.parse import urlparse

from pydantic import BaseModel, Field, model_validator

from planboard.errors import StaticDataError
from planboard.modules.filters.domain.definitions import FilterDefinition

WidgetKind = Literal["metric", "chart", "table", "gauge", "kpi", "progress"]
ValueFormat = Literal["number", "currency", "percentage"]
ChartType = Literal["bar", "line", "area", "pie", "donut"]
ColorScheme = Literal["default", "blue", "green", "purple"]
Aggregation = Literal["sum", "avg", "count", "min", "max"]
SortOrder = Literal["asc", "desc"]
TableColumnType = Literal["text", "number", "date", "currency", "percentage", "status", "link"]
DataSourceType = Literal["static", "api", "query"]

WIDGET_KINDS: tuple[WidgetKind, ...] = ("metric", "chart", "table", "gauge", "kpi", "progress")

DEFAULT_WIDGET_WIDTH = 6
DEFAULT_WIDGET_HEIGHT = 4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ==================== POSITION ====================


class WidgetPosition(BaseModel):
    """Grid position in grid units. ``y=None`` marks a widget not yet placed (append after content)."""

    x: int = Field(default=0, ge=0)
    y: int | None = Field(default=None, ge=0)
    width: int = Field(default=DEFAULT_WIDGET_WIDTH, ge=1)
    height: int = Field(default=DEFAULT_WIDGET_HEIGHT, ge=1)

    @property
    def is_placed(self) -> bool:
        return self.y is not None


# ==================== DATA SOURCES ====================


class _DataSourceBase(BaseModel):
    parameters: dict[str, Any] = Field(default_factory=dict)
    cache_time_minutes: int | None = Field(default=None, ge=0)


class StaticDataSource(_DataSourceBase):
    type: Literal["static"] = "static"
    static_data: list[Any] = Field(default_factory=list)


class ApiDataSource(_DataSourceBase):
    type: Literal["api"] = "api"
    api_endpoint: str


class QueryDataSource(_DataSourceBase):
    type: Literal["query"] = "query"
    # Opaque descriptor handed to the query execution collaborator as-is.
    query: str | dict[str, Any]


DataSourceConfig = Annotated[
    Union[StaticDataSource, ApiDataSource, QueryDataSource],
    Field(discriminator="type"),
]


# ==================== KIND CONFIGS ====================


class MetricWidgetConfig(BaseModel):
    kind: Literal["metric"] = "metric"
    value_field: str | None = None
    format: ValueFormat | None = None
    target: float | None = None


class ChartWidgetConfig(BaseModel):
    kind: Literal["chart"] = "chart"
    chart_type: ChartType = "bar"
    x_axis: str = "name"
    y_axis: str = "value"
    group_by: str | None = None
    aggregation: Aggregation | None = None
    color_scheme: ColorScheme = "default"
    show_legend: bool = False
    show_grid: bool = False
    show_labels: bool = False


class TableColumn(BaseModel):
    key: str = Field(min_length=1)
    label: str
    type: TableColumnType = "text"
    width: int | None = None
    sortable: bool = True
    format: ValueFormat | None = None


class TableWidgetConfig(BaseModel):
    kind: Literal["table"] = "table"
    columns: list[TableColumn] = Field(default_factory=list)
    page_size: int = Field(default=10, ge=1)
    sort_by: str | None = None
    sort_order: SortOrder = "asc"


class GaugeThresholds(BaseModel):
    warning: float = 70
    critical: float = 90


class GaugeWidgetConfig(BaseModel):
    kind: Literal["gauge"] = "gauge"
    value_field: str | None = None
    format: ValueFormat | None = None
    target: float | None = None
    thresholds: GaugeThresholds = Field(default_factory=GaugeThresholds)


class KpiWidgetConfig(BaseModel):
    kind: Literal["kpi"] = "kpi"
    value_field: str | None = None
    format: ValueFormat | None = None
    target: float | None = None


class ProgressWidgetConfig(BaseModel):
    kind: Literal["progress"] = "progress"
    completed_field: str = "completed"
    total_field: str = "total"


WidgetConfig = Annotated[
    Union[
        MetricWidgetConfig,
        ChartWidgetConfig,
        TableWidgetConfig,
        GaugeWidgetConfig,
        KpiWidgetConfig,
        ProgressWidgetConfig,
    ],
    Field(discriminator="kind"),
]

WIDGET_CONFIG_TYPES: dict[str, type[BaseModel]] = {
    "metric": MetricWidgetConfig,
    "chart": ChartWidgetConfig,
    "table": TableWidgetConfig,
    "gauge": GaugeWidgetConfig,
    "kpi": KpiWidgetConfig,
    "progress": ProgressWidgetConfig,
}


def default_config_for(kind: WidgetKind) -> BaseModel:
    try:
        return WIDGET_CONFIG_TYPES[kind]()
    except KeyError:
        raise ValueError(f"Unsupported widget kind '{kind}'") from None


# ==================== WIDGET ====================


class Widget(BaseModel):
    id: str = Field(min_length=1)
    kind: WidgetKind
    title: str
    description: str | None = None
    position: WidgetPosition = Field(default_factory=WidgetPosition)
    visible: bool = True
    config: WidgetConfig
    data_source: DataSourceConfig = Field(default_factory=StaticDataSource)
    filters: list[FilterDefinition] = Field(default_factory=list)
    refresh_interval_minutes: int | None = Field(default=None, ge=1)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="before")
    @classmethod
    def fill_default_config(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        next_values = dict(values)
        config = next_values.get("config")
        kind = next_values.get("kind")
        if kind in WIDGET_CONFIG_TYPES and (config is None or (isinstance(config, dict) and "kind" not in config)):
            next_values["config"] = {**(config or {}), "kind": kind}
        return next_values

    @model_validator(mode="after")
    def validate_kind(self) -> "Widget":
        if self.config.kind != self.kind:
            raise ValueError(f"Config kind '{self.config.kind}' does not match widget kind '{self.kind}'")
        return self

    def descriptor(self) -> dict[str, Any]:
        """Payload describing this widget to external data collaborators."""
        return {
            "id": self.id,
            "kind": self.kind,
            "config": self.config.model_dump(mode="json"),
            "data_source": self.data_source.model_dump(mode="json"),
        }


# ==================== SEMANTIC VALIDATION ====================


@dataclass
class WidgetConfigValidationError(Exception):
    field_errors: dict[str, list[str]]

    def to_detail(self) -> dict[str, Any]:
        return {
            "message": "Widget config validation failed",
            "field_errors": self.field_errors,
        }


def _add_error(errors: dict[str, list[str]], key: str, message: str) -> None:
    errors.setdefault(key, []).append(message)


def validate_widget(widget: Widget) -> None:
    errors: dict[str, list[str]] = {}

    if not widget.title.strip():
        _add_error(errors, "title", "Widget title is required")

    source = widget.data_source
    if isinstance(source, ApiDataSource):
        parsed = urlparse(source.api_endpoint)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            _add_error(errors, "data_source.api_endpoint", "API endpoint must be an absolute http(s) URL")
    elif isinstance(source, QueryDataSource):
        if isinstance(source.query, str) and not source.query.strip():
            _add_error(errors, "data_source.query", "Query descriptor is required")
        if isinstance(source.query, dict) and not source.query:
            _add_error(errors, "data_source.query", "Query descriptor is required")

    config = widget.config
    if isinstance(config, ChartWidgetConfig):
        if not config.x_axis.strip():
            _add_error(errors, "config.x_axis", "Chart x axis field is required")
        if not config.y_axis.strip():
            _add_error(errors, "config.y_axis", "Chart y axis field is required")
    elif isinstance(config, TableWidgetConfig):
        keys = [column.key for column in config.columns]
        duplicated = sorted({key for key in keys if keys.count(key) > 1})
        for key in duplicated:
            _add_error(errors, "config.columns", f"Column '{key}' is declared more than once")
    elif isinstance(config, GaugeWidgetConfig):
        if config.target is not None and config.target <= 0:
            _add_error(errors, "config.target", "Gauge target must be greater than zero")
        for name in ("warning", "critical"):
            bound = getattr(config.thresholds, name)
            if not 0 <= bound <= 100:
                _add_error(errors, f"config.thresholds.{name}", "Threshold must be between 0 and 100")
    elif isinstance(config, ProgressWidgetConfig):
        if config.completed_field == config.total_field:
            _add_error(errors, "config.total_field", "Completed and total fields must differ")

    filter_ids = [item.id for item in widget.filters]
    if len(filter_ids) != len(set(filter_ids)):
        _add_error(errors, "filters", "Widget filter ids must be unique")

    if errors:
        raise WidgetConfigValidationError(errors)


def parse_static_data(raw: str) -> list[Any]:
    """Parses user-typed static JSON; only a JSON array is accepted."""
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise StaticDataError(f"Static data is not valid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise StaticDataError("Static data must be a JSON array")
    return payload
