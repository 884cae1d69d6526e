from __future__ import annotations

import logging
from typing import Any

from planboard.errors import DashboardReadOnlyError, PlanboardError
from planboard.modules.dashboards.domain.document import DashboardDocument
from planboard.modules.dashboards.domain.layout import LayoutItem
from planboard.modules.dashboards.domain.models import Dashboard
from planboard.modules.dashboards.domain.ports import DashboardRepository
from planboard.modules.filters.application.filter_bar import FilterBar
from planboard.modules.filters.domain.definitions import FilterDefinition
from planboard.modules.widgets.application.data_resolver import WidgetDataResolver, widget_data_fingerprint
from planboard.modules.widgets.application.renderer import RenderedWidget, render_widget
from planboard.modules.widgets.domain.config import Widget, WidgetKind
from planboard.modules.widgets.domain.resolution import DataResolution

logger = logging.getLogger(__name__)


class DashboardBuilderSession:
    """One user's editing session over a dashboard.

    Mutations are synchronous and mark the widget data stale; ``refresh()`` re-resolves every
    visible widget against the current filter values. Results for widgets deleted or
    reconfigured while their request was in flight are dropped by the resolver.
    """

    def __init__(
        self,
        document: DashboardDocument,
        *,
        repository: DashboardRepository,
        resolver: WidgetDataResolver,
        read_only: bool = False,
    ) -> None:
        self.document = document
        self._repository = repository
        self._resolver = resolver
        self._read_only = read_only
        self._preview = read_only
        self._stale = True
        self.filter_bar = FilterBar(document.dashboard.filters)
        self.filter_bar.apply_defaults()
        document.set_read_only(self._preview)

    @property
    def is_stale(self) -> bool:
        return self._stale

    @property
    def is_preview(self) -> bool:
        return self._preview

    @property
    def read_only(self) -> bool:
        return self._read_only

    @property
    def visible_count(self) -> int:
        return self.document.visible_count

    def _ensure_editable(self) -> None:
        if self._read_only:
            raise DashboardReadOnlyError("Dashboard is open in read-only mode")

    def _invalidate(self) -> None:
        self._stale = True

    # ==================== MODE ====================

    def preview(self) -> None:
        self._preview = True
        self.document.set_read_only(True)

    def edit(self) -> None:
        self._ensure_editable()
        self._preview = False
        self.document.set_read_only(False)

    # ==================== WIDGET ACTIONS ====================

    def add_widget(self, kind: WidgetKind, *, title: str | None = None) -> Widget:
        self._ensure_editable()
        widget = self.document.add_widget(kind, title=title)
        self._invalidate()
        return widget

    def update_widget(self, widget: Widget) -> Widget | None:
        self._ensure_editable()
        updated = self.document.update_widget(widget)
        if updated is not None:
            self._invalidate()
        return updated

    def edit_widget(self, widget_id: str, patch: dict[str, Any]) -> Widget | None:
        self._ensure_editable()
        updated = self.document.edit_widget(widget_id, patch)
        if updated is not None:
            self._invalidate()
        return updated

    def delete_widget(self, widget_id: str) -> bool:
        self._ensure_editable()
        deleted = self.document.delete_widget(widget_id)
        if deleted:
            self._resolver.discard(widget_id)
            self._invalidate()
        return deleted

    def toggle_visibility(self, widget_id: str) -> Widget | None:
        self._ensure_editable()
        toggled = self.document.toggle_visibility(widget_id)
        if toggled is not None:
            self._invalidate()
        return toggled

    def update_static_data(self, widget_id: str, raw: str) -> Widget | None:
        self._ensure_editable()
        updated = self.document.update_static_data(widget_id, raw)
        if updated is not None:
            self._invalidate()
        return updated

    def change_layout(self, layout: list[LayoutItem]) -> list[LayoutItem]:
        if self._read_only:
            return list(self.document.layout.values())
        return self.document.handle_layout_change(layout)

    # ==================== SETTINGS & FILTERS ====================

    def update_settings(self, **changes: Any) -> Dashboard:
        self._ensure_editable()
        return self.document.update_settings(**changes)

    def set_filters(self, definitions: list[FilterDefinition]) -> Dashboard:
        self._ensure_editable()
        dashboard = self.document.set_filters(definitions)
        self.filter_bar.set_definitions(definitions)
        self._invalidate()
        return dashboard

    def change_filter_value(self, filter_id: str, value: Any) -> None:
        self.filter_bar.update_filter(filter_id, value)
        self._invalidate()

    def clear_filter(self, filter_id: str) -> None:
        self.filter_bar.clear_filter(filter_id)
        self._invalidate()

    def clear_all_filters(self) -> None:
        self.filter_bar.clear_all()
        self._invalidate()

    # ==================== DATA ====================

    def is_current(self, widget_id: str, fingerprint: str) -> bool:
        widget = self.document.get_widget(widget_id)
        if widget is None or not widget.visible:
            return False
        return widget_data_fingerprint(widget, self.filter_bar.values) == fingerprint

    async def refresh(self) -> dict[str, DataResolution]:
        self._resolver.cache.retain(self.document.dashboard.widget_ids())
        resolutions = await self._resolver.resolve_many(
            self.document.visible_widgets(),
            self.filter_bar.values,
            is_current=self.is_current,
        )
        self._stale = False
        return resolutions

    def render(self) -> list[RenderedWidget]:
        return [
            render_widget(widget, self._resolver.latest(widget.id))
            for widget in self.document.visible_widgets()
        ]

    # ==================== PERSISTENCE ====================

    def save(self) -> Dashboard:
        """Persists the whole document; on failure the in-memory document is left exactly as it was."""
        self._ensure_editable()
        snapshot = self.document.snapshot()
        try:
            saved = self._repository.save(self.document.dashboard)
        except PlanboardError as exc:
            self.document.restore(snapshot)
            logger.warning(
                "dashboard_builder.save_failed | %s",
                {"dashboard_id": snapshot[0].id, "code": exc.code, "error_id": exc.error_id},
            )
            raise
        self.document.replace_dashboard(saved)
        logger.info("dashboard_builder.saved | %s", {"dashboard_id": saved.id})
        return saved

    def export_json(self) -> str:
        return self.document.export_json()
