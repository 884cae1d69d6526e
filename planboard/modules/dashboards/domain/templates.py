from __future__ import annotations

from typing import Any, Callable

from planboard.modules.dashboards.domain.document import new_widget_id
from planboard.modules.dashboards.domain.models import NEW_DASHBOARD_ID, Dashboard
from planboard.modules.widgets.domain.config import utcnow

_TEMPLATES: dict[str, dict[str, Any]] = {
    "executive-overview": {
        "id": "executive-overview",
        "name": "Executive Overview",
        "description": "High-level metrics and KPIs for executives",
        "layout_mode": "grid",
        "is_public": True,
        "owner_id": "system",
        "tags": ["template", "executive"],
        "filters": [],
        "widgets": [
            {
                "id": "total-plans",
                "kind": "metric",
                "title": "Total Strategic Plans",
                "position": {"x": 0, "y": 0, "width": 3, "height": 2},
                "config": {"value_field": "count", "format": "number"},
                "data_source": {
                    "type": "query",
                    "query": {"resource": "plans", "metric": "count", "exclude_status": ["archived"]},
                },
            },
            {
                "id": "budget-overview",
                "kind": "chart",
                "title": "Budget Distribution",
                "position": {"x": 3, "y": 0, "width": 6, "height": 4},
                "config": {
                    "chart_type": "pie",
                    "x_axis": "department",
                    "y_axis": "budget",
                    "show_legend": True,
                },
                "data_source": {
                    "type": "query",
                    "query": {
                        "resource": "initiatives",
                        "metric": "sum",
                        "field": "expected_costs",
                        "group_by": "department",
                    },
                },
            },
        ],
    },
}


def list_templates() -> list[Dashboard]:
    return [Dashboard.model_validate(template) for template in _TEMPLATES.values()]


def get_template(template_id: str) -> Dashboard | None:
    template = _TEMPLATES.get(template_id)
    return Dashboard.model_validate(template) if template else None


def from_template(
    template_id: str,
    *,
    owner_id: str | None = None,
    name: str | None = None,
    id_factory: Callable[[], str] = new_widget_id,
) -> Dashboard:
    """New unsaved dashboard copied from a template, with fresh widget ids and timestamps."""
    template = get_template(template_id)
    if template is None:
        raise KeyError(template_id)

    now = utcnow()
    widgets = [
        widget.model_copy(update={"id": id_factory(), "created_at": now, "updated_at": now})
        for widget in template.widgets
    ]
    return template.model_copy(
        update={
            "id": NEW_DASHBOARD_ID,
            "name": name or template.name,
            "widgets": widgets,
            "owner_id": owner_id,
            "is_public": False,
            "tags": [tag for tag in template.tags if tag != "template"],
            "created_at": now,
            "updated_at": now,
        },
        deep=True,
    )
