from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Callable

from pydantic import ValidationError

from planboard.modules.dashboards.domain.layout import LayoutEngine, LayoutItem
from planboard.modules.dashboards.domain.models import Dashboard
from planboard.modules.filters.domain.definitions import FilterDefinition, ensure_unique_filter_ids
from planboard.modules.widgets.domain.config import (
    WIDGET_KINDS,
    StaticDataSource,
    Widget,
    WidgetConfigValidationError,
    WidgetKind,
    default_config_for,
    parse_static_data,
    utcnow,
    validate_widget,
)

logger = logging.getLogger(__name__)

SETTINGS_FIELDS = frozenset({"name", "description", "is_public", "owner_id", "tags", "layout_mode"})
_IMMUTABLE_WIDGET_FIELDS = frozenset({"id", "kind", "created_at", "updated_at"})


def new_widget_id() -> str:
    return f"widget-{uuid.uuid4().hex}"


def _validation_error_to_field_errors(exc: ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for item in exc.errors():
        key = ".".join(str(part) for part in item.get("loc", ())) or "widget"
        errors.setdefault(key, []).append(item.get("msg", "Invalid value"))
    return errors


class DashboardDocument:
    """In-memory dashboard being edited: widget list plus the layout map derived from it.

    Every operation replaces the held ``Dashboard`` instead of mutating it, so a previously
    taken ``snapshot()`` stays valid for restoring after a failed save.
    """

    def __init__(
        self,
        dashboard: Dashboard | None = None,
        *,
        breakpoint: str = "lg",
        read_only: bool = False,
        id_factory: Callable[[], str] = new_widget_id,
    ) -> None:
        self._dashboard = dashboard or Dashboard(name="Untitled Dashboard")
        self._layout_engine = LayoutEngine(breakpoint, read_only=read_only)
        self._layout: dict[str, LayoutItem] = {}
        self._id_factory = id_factory

    # ==================== STATE ====================

    @property
    def dashboard(self) -> Dashboard:
        return self._dashboard

    @property
    def widgets(self) -> list[Widget]:
        return list(self._dashboard.widgets)

    @property
    def layout(self) -> dict[str, LayoutItem]:
        return dict(self._layout)

    @property
    def read_only(self) -> bool:
        return self._layout_engine.read_only

    def set_read_only(self, read_only: bool) -> None:
        self._layout_engine.read_only = read_only

    def get_widget(self, widget_id: str) -> Widget | None:
        return self._dashboard.find_widget(widget_id)

    def visible_widgets(self) -> list[Widget]:
        return self._dashboard.visible_widgets()

    @property
    def visible_count(self) -> int:
        return len(self._dashboard.visible_widgets())

    def snapshot(self) -> tuple[Dashboard, dict[str, LayoutItem]]:
        return self._dashboard, dict(self._layout)

    def restore(self, snapshot: tuple[Dashboard, dict[str, LayoutItem]]) -> None:
        dashboard, layout = snapshot
        self._dashboard = dashboard
        self._layout = dict(layout)

    def replace_dashboard(self, dashboard: Dashboard) -> None:
        """Adopts a persisted copy of the document; layout entries for vanished widgets are dropped."""
        self._dashboard = dashboard
        known = set(dashboard.widget_ids())
        self._layout = {key: item for key, item in self._layout.items() if key in known}

    def _set_widgets(self, widgets: list[Widget]) -> None:
        self._dashboard = self._dashboard.model_copy(update={"widgets": widgets})

    # ==================== WIDGETS ====================

    def _unique_widget_id(self) -> str:
        existing = set(self._dashboard.widget_ids())
        widget_id = self._id_factory()
        while widget_id in existing:
            widget_id = self._id_factory()
        return widget_id

    def add_widget(self, kind: WidgetKind, *, title: str | None = None) -> Widget:
        if kind not in WIDGET_KINDS:
            raise WidgetConfigValidationError({"kind": [f"Unsupported widget kind '{kind}'"]})
        widget = Widget(
            id=self._unique_widget_id(),
            kind=kind,
            title=title or f"New {kind.capitalize()}",
            config=default_config_for(kind),
            data_source=StaticDataSource(),
        )
        self._set_widgets([*self._dashboard.widgets, widget])
        logger.info("dashboard_widget.added | %s", {"dashboard_id": self._dashboard.id, "widget_id": widget.id})
        return widget

    def update_widget(self, widget: Widget) -> Widget | None:
        """Replaces the widget with the same id; unknown ids are ignored and return ``None``."""
        existing = self._dashboard.find_widget(widget.id)
        if existing is None:
            logger.debug("dashboard_widget.update_unknown | %s", {"widget_id": widget.id})
            return None
        if widget.kind != existing.kind:
            raise WidgetConfigValidationError(
                {"kind": ["Widget kind cannot be changed; delete the widget and add a new one"]}
            )
        validate_widget(widget)

        updated = widget.model_copy(update={"created_at": existing.created_at, "updated_at": utcnow()})
        self._set_widgets([updated if item.id == updated.id else item for item in self._dashboard.widgets])
        self._sync_layout_entry(updated)
        return updated

    def edit_widget(self, widget_id: str, patch: dict[str, Any]) -> Widget | None:
        existing = self._dashboard.find_widget(widget_id)
        if existing is None:
            logger.debug("dashboard_widget.edit_unknown | %s", {"widget_id": widget_id})
            return None
        if "kind" in patch and patch["kind"] != existing.kind:
            raise WidgetConfigValidationError(
                {"kind": ["Widget kind cannot be changed; delete the widget and add a new one"]}
            )

        data = existing.model_dump()
        for key, value in patch.items():
            if key in _IMMUTABLE_WIDGET_FIELDS:
                continue
            if key in {"config", "position"} and isinstance(value, dict):
                data[key] = {**data[key], **value}
            elif key == "data_source" and isinstance(value, dict):
                current = data["data_source"]
                if value.get("type", current["type"]) == current["type"]:
                    data[key] = {**current, **value}
                else:
                    data[key] = value
            else:
                data[key] = value

        try:
            widget = Widget.model_validate(data)
        except ValidationError as exc:
            raise WidgetConfigValidationError(_validation_error_to_field_errors(exc)) from exc
        return self.update_widget(widget)

    def delete_widget(self, widget_id: str) -> bool:
        if self._dashboard.find_widget(widget_id) is None:
            logger.debug("dashboard_widget.delete_unknown | %s", {"widget_id": widget_id})
            return False
        self._set_widgets([item for item in self._dashboard.widgets if item.id != widget_id])
        self._layout.pop(widget_id, None)
        logger.info("dashboard_widget.deleted | %s", {"dashboard_id": self._dashboard.id, "widget_id": widget_id})
        return True

    def toggle_visibility(self, widget_id: str) -> Widget | None:
        existing = self._dashboard.find_widget(widget_id)
        if existing is None:
            logger.debug("dashboard_widget.toggle_unknown | %s", {"widget_id": widget_id})
            return None
        toggled = existing.model_copy(update={"visible": not existing.visible, "updated_at": utcnow()})
        self._set_widgets([toggled if item.id == widget_id else item for item in self._dashboard.widgets])
        return toggled

    def update_static_data(self, widget_id: str, raw: str) -> Widget | None:
        """Commits user-typed JSON rows; invalid input raises ``StaticDataError`` and changes nothing."""
        rows = parse_static_data(raw)
        existing = self._dashboard.find_widget(widget_id)
        if existing is None:
            logger.debug("dashboard_widget.static_data_unknown | %s", {"widget_id": widget_id})
            return None
        source = existing.data_source
        if isinstance(source, StaticDataSource):
            next_source = source.model_copy(update={"static_data": rows})
        else:
            next_source = StaticDataSource(static_data=rows)
        return self.update_widget(existing.model_copy(update={"data_source": next_source}))

    # ==================== LAYOUT ====================

    def _sync_layout_entry(self, widget: Widget) -> None:
        if widget.id not in self._layout:
            return
        position = widget.position
        if position.is_placed:
            self._layout[widget.id] = self._layout_engine.clamp(
                widget.id, position.x, position.y, position.width, position.height
            )
        else:
            self._layout.pop(widget.id, None)

    def compute_layout(self) -> list[LayoutItem]:
        """Resolves unplaced widgets to concrete positions and refreshes the layout map."""
        items = self._layout_engine.compute(self._dashboard.widgets)
        if not self.read_only:
            by_id = {item.widget_id: item for item in items}
            resolved = [
                widget
                if widget.position.is_placed
                else widget.model_copy(update={"position": by_id[widget.id].to_position()})
                for widget in self._dashboard.widgets
            ]
            self._set_widgets(resolved)
        self._layout = {item.widget_id: item for item in items}
        return items

    def handle_layout_change(self, layout: list[LayoutItem]) -> list[LayoutItem]:
        if self.read_only:
            logger.debug("dashboard_layout.read_only_ignored | %s", {"dashboard_id": self._dashboard.id})
            return list(self._layout.values())
        self._set_widgets(self._layout_engine.merge(self._dashboard.widgets, layout))
        return self.compute_layout()

    # ==================== SETTINGS & FILTERS ====================

    def update_settings(self, **changes: Any) -> Dashboard:
        unknown = sorted(set(changes) - SETTINGS_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported dashboard settings: {', '.join(unknown)}")
        data = {**self._dashboard.model_dump(), **changes}
        self._dashboard = Dashboard.model_validate(data)
        return self._dashboard

    def set_filters(self, definitions: list[FilterDefinition]) -> Dashboard:
        ensure_unique_filter_ids(definitions)
        self._dashboard = self._dashboard.model_copy(update={"filters": list(definitions)})
        return self._dashboard

    # ==================== EXPORT ====================

    def export_json(self) -> str:
        return json.dumps(self._dashboard.model_dump(mode="json"), indent=2)
