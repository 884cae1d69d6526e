import pytest

from conftest import build_widget
from planboard.modules.widgets.application.renderer import (
    COLOR_SCHEMES,
    ChartSummary,
    EmptySummary,
    TableSummary,
    classify_progress,
    render_chart,
    render_gauge,
    render_kpi,
    render_metric,
    render_progress,
    render_table,
    render_widget,
)
from planboard.modules.widgets.domain.config import (
    ChartWidgetConfig,
    GaugeWidgetConfig,
    KpiWidgetConfig,
    MetricWidgetConfig,
    ProgressWidgetConfig,
    TableWidgetConfig,
)
from planboard.modules.widgets.domain.resolution import DataResolution, DataResolutionFailure


@pytest.mark.parametrize(
    ("value", "expected"),
    [(105, "neutral"), (106, "up"), (94, "down"), (95, "neutral")],
)
def test_metric_trend_uses_strict_five_percent_band(value: int, expected: str) -> None:
    summary = render_metric([{"value": value}], MetricWidgetConfig(target=100))
    assert summary.trend == expected


def test_metric_reads_configured_field_and_formats() -> None:
    summary = render_metric([{"count": 1500}], MetricWidgetConfig(value_field="count", format="currency"))
    assert summary.display_value == "$1,500.00"
    assert summary.trend == "neutral"
    assert summary.target is None


def test_metric_without_rows_renders_missing_value() -> None:
    summary = render_metric([], MetricWidgetConfig(target=100))
    assert summary.display_value == "N/A"
    assert summary.trend == "neutral"


def test_gauge_classification_checks_critical_first() -> None:
    config = GaugeWidgetConfig(target=100)
    assert render_gauge([{"value": 89}], config).status == "warning"
    assert render_gauge([{"value": 90}], config).status == "critical"
    assert render_gauge([{"value": 10}], config).status == "normal"


def test_gauge_percentage_is_clamped() -> None:
    summary = render_gauge([{"value": 250}], GaugeWidgetConfig(target=200))
    assert summary.percentage == 100.0
    assert render_gauge([{"value": -5}], GaugeWidgetConfig()).percentage == 0.0


def test_kpi_change_with_zero_previous_is_zero() -> None:
    summary = render_kpi([{"current": 50, "previous": 0}], KpiWidgetConfig())
    assert summary.change_percent == 0.0
    assert summary.change_direction == "neutral"


def test_kpi_change_and_target_progress() -> None:
    summary = render_kpi([{"current": 120, "previous": 100, "target": 100}], KpiWidgetConfig(format="number"))
    assert summary.change_percent == 20.0
    assert summary.change_direction == "up"
    assert summary.target_progress == 120.0
    assert summary.target_progress_bounded == 100.0


@pytest.mark.parametrize(
    ("percentage", "expected"),
    [(10, "behind"), (25, "in_progress"), (89.9, "in_progress"), (90, "near_completion"), (100, "complete")],
)
def test_progress_status_bands(percentage: float, expected: str) -> None:
    assert classify_progress(percentage) == expected


def test_progress_defaults_total_to_hundred() -> None:
    summary = render_progress([{"completed": 45}], ProgressWidgetConfig())
    assert summary.total == 100.0
    assert summary.percentage == 45.0


def test_chart_empty_rows_render_empty_state() -> None:
    assert isinstance(render_chart([], ChartWidgetConfig()), EmptySummary)


def test_pie_chart_cycles_scheme_colors() -> None:
    rows = [{"department": f"D{index}", "budget": index} for index in range(10)]
    summary = render_chart(rows, ChartWidgetConfig(chart_type="pie", x_axis="department", y_axis="budget"))
    assert isinstance(summary, ChartSummary)
    colors = [point.color for point in summary.series[0].points]
    assert colors[0] == COLOR_SCHEMES["default"][0]
    assert colors[8] == COLOR_SCHEMES["default"][0]


def test_chart_group_by_and_aggregation() -> None:
    rows = [
        {"month": "Jan", "dept": "A", "value": 1},
        {"month": "Jan", "dept": "A", "value": 2},
        {"month": "Feb", "dept": "B", "value": 5},
    ]
    config = ChartWidgetConfig(x_axis="month", y_axis="value", group_by="dept", aggregation="sum", color_scheme="green")
    summary = render_chart(rows, config)
    assert [series.name for series in summary.series] == ["A", "B"]
    assert [(point.label, point.value) for point in summary.series[0].points] == [("Jan", 3.0)]
    assert summary.series[1].color == COLOR_SCHEMES["green"][1]


def test_table_auto_columns_skip_internal_keys_and_cap() -> None:
    rows = [{"_id": 1, "name": "Plan", "status": "open", "owner": "x", "budget": 5, "extra": 1} for _ in range(12)]
    summary = render_table(rows, TableWidgetConfig())
    assert isinstance(summary, TableSummary)
    assert [column.key for column in summary.columns] == ["name", "status", "owner", "budget"]
    assert summary.columns[0].label == "Name"
    assert summary.shown_rows == 10
    assert summary.footer == "Showing 10 of 12 records"


def test_table_sorts_before_truncating() -> None:
    rows = [{"name": name, "budget": budget} for name, budget in [("a", 3), ("b", 1), ("c", 2)]]
    config = TableWidgetConfig(
        columns=[{"key": "name", "label": "Name"}, {"key": "budget", "label": "Budget", "type": "currency"}],
        page_size=2,
        sort_by="budget",
        sort_order="desc",
    )
    summary = render_table(rows, config)
    assert [row["name"] for row in summary.rows] == ["a", "c"]
    assert summary.rows[0]["budget"] == "$3.00"


def test_render_widget_failure_renders_empty_state() -> None:
    widget = build_widget("w1", "gauge")
    failure = DataResolutionFailure(widget_id="w1", source_type="api", reason="http_status", message="HTTP 500")
    resolution = DataResolution(widget_id="w1", failure=failure)
    assert not resolution.ok
    rendered = render_widget(widget, resolution)
    assert rendered.state == "empty"
    assert rendered.failure is failure
    assert isinstance(rendered.summary, EmptySummary)


def test_render_widget_without_resolution_is_loading() -> None:
    rendered = render_widget(build_widget("w1", "metric"), None)
    assert rendered.state == "loading"


def test_render_widget_wraps_scalar_rows() -> None:
    rendered = render_widget(build_widget("w1", "metric"), DataResolution(widget_id="w1", rows=[42]))
    assert rendered.state == "ready"
    assert rendered.summary.display_value == "42"
