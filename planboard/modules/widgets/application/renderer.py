from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Literal, Union

from planboard.modules.widgets.domain.config import (
    ChartWidgetConfig,
    GaugeWidgetConfig,
    KpiWidgetConfig,
    MetricWidgetConfig,
    ProgressWidgetConfig,
    TableColumn,
    TableWidgetConfig,
    Widget,
)
from planboard.modules.widgets.domain.formatting import as_number, format_value
from planboard.modules.widgets.domain.resolution import DataResolution, DataResolutionFailure

TrendDirection = Literal["up", "down", "neutral"]
GaugeStatus = Literal["normal", "warning", "critical"]
ProgressStatus = Literal["behind", "in_progress", "near_completion", "complete"]
RenderState = Literal["ready", "empty", "loading"]

COLOR_SCHEMES: dict[str, list[str]] = {
    "default": ["#3b82f6", "#ef4444", "#10b981", "#f59e0b", "#8b5cf6", "#06b6d4", "#84cc16", "#f97316"],
    "blue": ["#dbeafe", "#bfdbfe", "#93c5fd", "#60a5fa", "#3b82f6", "#2563eb", "#1d4ed8", "#1e40af"],
    "green": ["#dcfce7", "#bbf7d0", "#86efac", "#4ade80", "#22c55e", "#16a34a", "#15803d", "#166534"],
    "purple": ["#f3e8ff", "#e9d5ff", "#d8b4fe", "#c084fc", "#a855f7", "#9333ea", "#7c3aed", "#6d28d9"],
}

TREND_NEUTRAL_BAND_PERCENT = 5.0
AUTO_TABLE_COLUMN_LIMIT = 4
NO_DATA_MESSAGE = "No data available"


# ==================== SUMMARIES ====================


@dataclass(slots=True)
class EmptySummary:
    message: str = NO_DATA_MESSAGE


@dataclass(slots=True)
class MetricSummary:
    value: float | str | None
    display_value: str
    trend: TrendDirection = "neutral"
    deviation_percent: float | None = None
    target: float | None = None
    display_target: str | None = None
    trend_label: str | None = None


@dataclass(slots=True)
class ChartPoint:
    label: Any
    value: float | None
    color: str


@dataclass(slots=True)
class ChartSeries:
    name: str
    color: str
    points: list[ChartPoint] = field(default_factory=list)


@dataclass(slots=True)
class ChartSummary:
    chart_type: str
    x_axis: str
    y_axis: str
    series: list[ChartSeries]
    show_legend: bool = False
    show_grid: bool = False
    show_labels: bool = False


@dataclass(slots=True)
class TableSummary:
    columns: list[TableColumn]
    rows: list[dict[str, str]]
    total_rows: int
    shown_rows: int
    footer: str | None = None


@dataclass(slots=True)
class GaugeSummary:
    value: float | None
    display_value: str
    max_value: float
    display_max: str
    percentage: float
    status: GaugeStatus


@dataclass(slots=True)
class KpiSummary:
    value: float | None
    display_value: str
    previous: float | None
    change_percent: float
    change_direction: TrendDirection
    target: float | None = None
    display_target: str | None = None
    target_progress: float | None = None
    target_progress_bounded: float | None = None


@dataclass(slots=True)
class ProgressSummary:
    completed: float
    total: float
    percentage: float
    bounded_percentage: float
    status: ProgressStatus


WidgetSummary = Union[
    EmptySummary,
    MetricSummary,
    ChartSummary,
    TableSummary,
    GaugeSummary,
    KpiSummary,
    ProgressSummary,
]


@dataclass(slots=True)
class RenderedWidget:
    widget_id: str
    kind: str
    title: str
    state: RenderState
    summary: WidgetSummary
    failure: DataResolutionFailure | None = None


# ==================== HELPERS ====================


def normalize_rows(rows: list[Any] | None) -> list[dict[str, Any]]:
    if not isinstance(rows, list):
        return []
    normalized: list[dict[str, Any]] = []
    for item in rows:
        if isinstance(item, dict):
            normalized.append(dict(item))
        else:
            normalized.append({"value": item})
    return normalized


def _first_row_value(rows: list[dict[str, Any]], field_name: str | None) -> Any:
    if not rows:
        return None
    row = rows[0]
    if field_name and field_name in row:
        return row[field_name]
    return row.get("value")


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def classify_trend(value: float | None, target: float | None) -> tuple[TrendDirection, float | None]:
    """Deviation from target with a +/-5% neutral band; strictly beyond the band counts as a trend."""
    if value is None or not target:
        return "neutral", None
    deviation = (value - target) * 100 / target
    if deviation > TREND_NEUTRAL_BAND_PERCENT:
        return "up", deviation
    if deviation < -TREND_NEUTRAL_BAND_PERCENT:
        return "down", deviation
    return "neutral", deviation


def classify_gauge(percentage: float, warning: float, critical: float) -> GaugeStatus:
    if percentage >= critical:
        return "critical"
    if percentage >= warning:
        return "warning"
    return "normal"


def classify_progress(percentage: float) -> ProgressStatus:
    if percentage >= 100:
        return "complete"
    if percentage >= 90:
        return "near_completion"
    if percentage < 25:
        return "behind"
    return "in_progress"


def percent_change(current: float | None, previous: float | None) -> float:
    if current is None or not previous:
        return 0.0
    return (current - previous) * 100 / previous


# ==================== PER-KIND RENDERERS ====================


def render_metric(rows: list[dict[str, Any]], config: MetricWidgetConfig) -> MetricSummary:
    raw = _first_row_value(rows, config.value_field)
    number = as_number(raw)
    trend, deviation = classify_trend(number, config.target)
    summary = MetricSummary(
        value=number if number is not None else raw,
        display_value=format_value(raw, config.format),
        trend=trend,
        deviation_percent=round(deviation, 1) if deviation is not None else None,
    )
    if config.target:
        summary.target = config.target
        summary.display_target = format_value(config.target, config.format)
        if trend == "neutral":
            summary.trend_label = "On target"
        else:
            summary.trend_label = f"{abs(deviation or 0.0):.1f}%"
    return summary


def _aggregate(values: list[float | None], aggregation: str) -> float | None:
    if aggregation == "count":
        return float(len(values))
    numbers = [value for value in values if value is not None]
    if not numbers:
        return None
    if aggregation == "sum":
        return sum(numbers)
    if aggregation == "avg":
        return sum(numbers) / len(numbers)
    if aggregation == "min":
        return min(numbers)
    return max(numbers)


def _chart_points(
    rows: list[dict[str, Any]],
    config: ChartWidgetConfig,
) -> list[tuple[Any, float | None]]:
    if config.aggregation is None:
        return [(row.get(config.x_axis), as_number(row.get(config.y_axis))) for row in rows]
    buckets: "OrderedDict[Any, list[float | None]]" = OrderedDict()
    for row in rows:
        key = row.get(config.x_axis)
        buckets.setdefault(key, []).append(as_number(row.get(config.y_axis)))
    return [(key, _aggregate(values, config.aggregation)) for key, values in buckets.items()]


def render_chart(rows: list[dict[str, Any]], config: ChartWidgetConfig) -> ChartSummary | EmptySummary:
    if not rows:
        return EmptySummary()
    colors = COLOR_SCHEMES.get(config.color_scheme, COLOR_SCHEMES["default"])

    series: list[ChartSeries] = []
    if config.chart_type in {"pie", "donut"}:
        points = [
            ChartPoint(label=label, value=value, color=colors[index % len(colors)])
            for index, (label, value) in enumerate(_chart_points(rows, config))
        ]
        series.append(ChartSeries(name=config.y_axis, color=colors[0], points=points))
    elif config.group_by:
        groups: "OrderedDict[str, list[dict[str, Any]]]" = OrderedDict()
        for row in rows:
            groups.setdefault(str(row.get(config.group_by)), []).append(row)
        for index, (name, group_rows) in enumerate(groups.items()):
            color = colors[index % len(colors)]
            points = [ChartPoint(label=label, value=value, color=color) for label, value in _chart_points(group_rows, config)]
            series.append(ChartSeries(name=name, color=color, points=points))
    else:
        color = colors[0]
        points = [ChartPoint(label=label, value=value, color=color) for label, value in _chart_points(rows, config)]
        series.append(ChartSeries(name=config.y_axis, color=color, points=points))

    return ChartSummary(
        chart_type=config.chart_type,
        x_axis=config.x_axis,
        y_axis=config.y_axis,
        series=series,
        show_legend=config.show_legend,
        show_grid=config.show_grid,
        show_labels=config.show_labels,
    )


def derive_table_columns(rows: list[dict[str, Any]]) -> list[TableColumn]:
    if not rows:
        return []
    keys = [key for key in rows[0].keys() if not str(key).startswith("_")]
    return [
        TableColumn(key=str(key), label=str(key)[:1].upper() + str(key)[1:], type="text")
        for key in keys[:AUTO_TABLE_COLUMN_LIMIT]
    ]


def _sorted_rows(rows: list[dict[str, Any]], config: TableWidgetConfig) -> list[dict[str, Any]]:
    if not config.sort_by:
        return rows
    sort_key = config.sort_by
    present = [row for row in rows if row.get(sort_key) is not None]
    missing = [row for row in rows if row.get(sort_key) is None]

    def _key(row: dict[str, Any]) -> tuple[int, Any]:
        value = row.get(sort_key)
        number = as_number(value)
        if number is not None:
            return (0, number)
        return (1, str(value))

    present.sort(key=_key, reverse=config.sort_order == "desc")
    return present + missing


def render_table(rows: list[dict[str, Any]], config: TableWidgetConfig) -> TableSummary | EmptySummary:
    if not rows:
        return EmptySummary()
    columns = list(config.columns) or derive_table_columns(rows)
    ordered = _sorted_rows(rows, config)
    visible = ordered[: config.page_size]
    formatted = [
        {column.key: format_value(row.get(column.key), column.format or column.type) for column in columns}
        for row in visible
    ]
    footer = None
    if len(rows) > config.page_size:
        footer = f"Showing {config.page_size} of {len(rows)} records"
    return TableSummary(
        columns=columns,
        rows=formatted,
        total_rows=len(rows),
        shown_rows=len(visible),
        footer=footer,
    )


def render_gauge(rows: list[dict[str, Any]], config: GaugeWidgetConfig) -> GaugeSummary:
    raw = _first_row_value(rows, config.value_field)
    number = as_number(raw)
    max_value = config.target or 100.0
    percentage = _clamp((number or 0.0) * 100 / max_value, 0.0, 100.0)
    return GaugeSummary(
        value=number,
        display_value=format_value(raw, config.format),
        max_value=max_value,
        display_max=format_value(max_value, config.format),
        percentage=percentage,
        status=classify_gauge(percentage, config.thresholds.warning, config.thresholds.critical),
    )


def render_kpi(rows: list[dict[str, Any]], config: KpiWidgetConfig) -> KpiSummary:
    row = rows[0] if rows else {}
    raw = row.get("current")
    if raw is None:
        raw = _first_row_value(rows, config.value_field)
    current = as_number(raw)
    previous = as_number(row.get("previous"))
    change = percent_change(current, previous)
    direction: TrendDirection = "up" if change > 0 else "down" if change < 0 else "neutral"

    target = as_number(row.get("target")) or config.target
    summary = KpiSummary(
        value=current,
        display_value=format_value(raw, config.format),
        previous=previous,
        change_percent=round(change, 1),
        change_direction=direction,
    )
    if target:
        progress = (current or 0.0) * 100 / target
        summary.target = target
        summary.display_target = format_value(target, config.format)
        summary.target_progress = progress
        summary.target_progress_bounded = _clamp(progress, 0.0, 100.0)
    return summary


def render_progress(rows: list[dict[str, Any]], config: ProgressWidgetConfig) -> ProgressSummary:
    row = rows[0] if rows else {}
    completed = as_number(row.get(config.completed_field)) or 0.0
    total = as_number(row.get(config.total_field)) or 100.0
    percentage = completed * 100 / total if total > 0 else 0.0
    return ProgressSummary(
        completed=completed,
        total=total,
        percentage=percentage,
        bounded_percentage=_clamp(percentage, 0.0, 100.0),
        status=classify_progress(percentage),
    )


_RENDERERS = {
    "metric": render_metric,
    "chart": render_chart,
    "table": render_table,
    "gauge": render_gauge,
    "kpi": render_kpi,
    "progress": render_progress,
}


def render_widget(widget: Widget, resolution: DataResolution | None) -> RenderedWidget:
    if resolution is None:
        return RenderedWidget(
            widget_id=widget.id,
            kind=widget.kind,
            title=widget.title,
            state="loading",
            summary=EmptySummary(message="Loading"),
        )
    if not resolution.ok:
        return RenderedWidget(
            widget_id=widget.id,
            kind=widget.kind,
            title=widget.title,
            state="empty",
            summary=EmptySummary(),
            failure=resolution.failure,
        )

    summary = _RENDERERS[widget.kind](normalize_rows(resolution.rows), widget.config)
    return RenderedWidget(
        widget_id=widget.id,
        kind=widget.kind,
        title=widget.title,
        state="empty" if isinstance(summary, EmptySummary) else "ready",
        summary=summary,
    )
