import json

import pytest
from pydantic import ValidationError

from conftest import build_widget
from planboard.errors import StaticDataError
from planboard.modules.dashboards.domain.document import DashboardDocument
from planboard.modules.dashboards.domain.layout import LayoutItem
from planboard.modules.dashboards.domain.models import Dashboard
from planboard.modules.dashboards.domain.templates import from_template, list_templates
from planboard.modules.filters.domain.definitions import FilterDefinition
from planboard.modules.widgets.domain.config import StaticDataSource, WidgetConfigValidationError


def _document() -> DashboardDocument:
    return DashboardDocument(Dashboard(name="Department overview"))


def test_added_widgets_get_unique_stable_ids() -> None:
    document = _document()
    widgets = [document.add_widget(kind) for kind in ("metric", "chart", "table", "gauge", "kpi", "progress")]

    ids = [widget.id for widget in widgets]
    assert len(set(ids)) == len(ids)

    chart = widgets[1]
    updated = document.update_widget(chart.model_copy(update={"title": "Budget by department"}))
    assert updated is not None
    assert updated.id == chart.id
    assert document.get_widget(chart.id).title == "Budget by department"


def test_new_widget_defaults() -> None:
    widget = _document().add_widget("chart")
    assert widget.title == "New Chart"
    assert widget.position.is_placed is False
    assert (widget.position.width, widget.position.height) == (6, 4)
    assert isinstance(widget.data_source, StaticDataSource)
    assert widget.data_source.static_data == []


def test_id_factory_collisions_are_retried() -> None:
    ids = iter(["w-1", "w-1", "w-2"])
    document = DashboardDocument(Dashboard(name="D"), id_factory=lambda: next(ids))
    first = document.add_widget("metric")
    second = document.add_widget("metric")
    assert (first.id, second.id) == ("w-1", "w-2")


def test_delete_removes_widget_and_layout_entry() -> None:
    document = _document()
    keep = document.add_widget("metric")
    drop = document.add_widget("table")
    document.compute_layout()
    assert set(document.layout) == {keep.id, drop.id}

    assert document.delete_widget(drop.id) is True

    assert document.dashboard.widget_ids() == [keep.id]
    assert set(document.layout) == {keep.id}


def test_unknown_widget_ids_are_no_ops() -> None:
    document = _document()
    document.add_widget("metric")
    before = document.dashboard

    assert document.delete_widget("missing") is False
    assert document.toggle_visibility("missing") is None
    assert document.update_widget(build_widget("missing")) is None
    assert document.edit_widget("missing", {"title": "x"}) is None
    assert document.dashboard is before


def test_kind_cannot_change_on_update() -> None:
    document = _document()
    widget = document.add_widget("metric")
    with pytest.raises(WidgetConfigValidationError) as exc:
        document.edit_widget(widget.id, {"kind": "chart"})
    assert "kind" in exc.value.field_errors


def test_edit_widget_merges_config_patch() -> None:
    document = _document()
    widget = document.add_widget("gauge")
    updated = document.edit_widget(widget.id, {"config": {"target": 200}, "title": "Spend"})
    assert updated.config.target == 200
    assert updated.config.thresholds.warning == 70
    assert updated.title == "Spend"
    assert updated.created_at == widget.created_at


def test_toggle_visibility_excludes_widget_from_visible_set() -> None:
    document = _document()
    first = document.add_widget("metric")
    document.add_widget("kpi")
    document.toggle_visibility(first.id)
    assert document.visible_count == 1
    assert first.id in document.dashboard.widget_ids()


def test_invalid_static_json_keeps_previous_rows() -> None:
    document = _document()
    widget = document.add_widget("table")
    document.update_static_data(widget.id, '[{"name": "A"}]')

    with pytest.raises(StaticDataError):
        document.update_static_data(widget.id, '{"name": "B"')

    assert document.get_widget(widget.id).data_source.static_data == [{"name": "A"}]


def test_layout_change_merges_by_id_and_places_new_widgets() -> None:
    document = _document()
    a = document.add_widget("metric")
    b = document.add_widget("metric")
    document.compute_layout()
    c = document.add_widget("metric")

    items = document.handle_layout_change(
        [LayoutItem(widget_id=b.id, x=0, y=0, width=6, height=4), LayoutItem(widget_id=a.id, x=6, y=0, width=6, height=4)]
    )

    positions = {widget.id: widget.position for widget in document.widgets}
    assert (positions[a.id].x, positions[b.id].x) == (6, 0)
    assert positions[c.id].is_placed
    assert positions[c.id].y == 4
    assert {item.widget_id for item in items} == {a.id, b.id, c.id}


def test_preview_mode_layout_is_pass_through() -> None:
    document = _document()
    widget = document.add_widget("metric")
    document.compute_layout()
    document.set_read_only(True)
    document.handle_layout_change([LayoutItem(widget_id=widget.id, x=6, y=6, width=2, height=2)])
    assert document.get_widget(widget.id).position.x == 0


def test_dashboard_rejects_duplicate_widget_and_filter_ids() -> None:
    with pytest.raises(ValidationError):
        Dashboard(name="D", widgets=[build_widget("w1"), build_widget("w1")])
    with pytest.raises(ValueError):
        _document().set_filters(
            [FilterDefinition(id="f", type="text", label="A"), FilterDefinition(id="f", type="text", label="B")]
        )


def test_filter_defaults_must_match_filter_type() -> None:
    with pytest.raises(ValidationError):
        Dashboard(name="D", filters=[{"id": "period", "type": "daterange", "label": "Period", "default_value": "2024"}])
    with pytest.raises(ValidationError):
        FilterDefinition(
            id="status",
            type="multiselect",
            label="Status",
            options=[{"value": "open", "label": "Open"}],
            default_value=["open", "archived"],
        )

    period = FilterDefinition(
        id="period", type="daterange", label="Period", default_value={"from": "2024-01-01", "to": "2024-12-31"}
    )
    status = FilterDefinition(
        id="status", type="multiselect", label="Status", options=[{"value": "open", "label": "Open"}], default_value="open"
    )
    assert period.default_value["to"] == "2024-12-31"
    assert status.default_value == "open"


def test_update_settings_validates_name() -> None:
    document = _document()
    document.update_settings(name="Renamed", layout_mode="tabs", tags=["finance"])
    assert document.dashboard.layout_mode == "tabs"
    with pytest.raises(ValidationError):
        document.update_settings(name="   ")
    with pytest.raises(ValueError):
        document.update_settings(widgets=[])


def test_export_json_contains_widgets() -> None:
    document = _document()
    widget = document.add_widget("progress")
    exported = json.loads(document.export_json())
    assert exported["name"] == "Department overview"
    assert exported["widgets"][0]["id"] == widget.id
    assert exported["widgets"][0]["config"]["kind"] == "progress"


def test_templates_create_fresh_unsaved_dashboards() -> None:
    templates = list_templates()
    assert [template.id for template in templates] == ["executive-overview"]

    dashboard = from_template("executive-overview", owner_id="user-1")
    assert dashboard.is_new
    assert dashboard.owner_id == "user-1"
    assert "template" not in dashboard.tags
    assert [widget.kind for widget in dashboard.widgets] == ["metric", "chart"]
    assert not {"total-plans", "budget-overview"} & set(dashboard.widget_ids())

    with pytest.raises(KeyError):
        from_template("missing")
