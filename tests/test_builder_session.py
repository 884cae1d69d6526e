import asyncio
from typing import Any

import pytest

from planboard.errors import DashboardPersistenceError, DashboardReadOnlyError
from planboard.modules.dashboards.adapters.memory_repository import InMemoryDashboardRepository
from planboard.modules.dashboards.application.builder import DashboardBuilderSession
from planboard.modules.dashboards.domain.document import DashboardDocument
from planboard.modules.dashboards.domain.layout import LayoutItem
from planboard.modules.dashboards.domain.models import Dashboard
from planboard.modules.filters.domain.definitions import FilterDefinition
from planboard.modules.widgets.application.data_resolver import WidgetDataResolver


class _FailingRepository(InMemoryDashboardRepository):
    def save(self, dashboard: Dashboard) -> Dashboard:
        raise DashboardPersistenceError("storage unavailable")


class _GatedApiSource:
    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.payloads: list[dict[str, Any]] = []

    async def fetch(self, *, endpoint: str, payload: dict[str, Any], timeout_seconds: float) -> list[Any]:
        self.payloads.append(payload)
        self.started.set()
        await self.release.wait()
        return [{"name": "A", "value": 1}]


def _session(repository=None, api_source=None, read_only: bool = False) -> DashboardBuilderSession:
    dashboard = Dashboard(
        name="Operations",
        filters=[FilterDefinition(id="year", type="number", label="Year", default_value=2024)],
    )
    return DashboardBuilderSession(
        DashboardDocument(dashboard),
        repository=repository or InMemoryDashboardRepository(),
        resolver=WidgetDataResolver(api_source=api_source),
        read_only=read_only,
    )


def test_save_assigns_id_and_keeps_widgets() -> None:
    session = _session()
    widget = session.add_widget("metric")

    saved = session.save()

    assert saved.id
    assert session.document.dashboard.id == saved.id
    assert session.document.dashboard.widget_ids() == [widget.id]


def test_failed_save_retains_document_unchanged() -> None:
    session = _session(repository=_FailingRepository())
    session.add_widget("kpi")
    before = session.document.dashboard

    with pytest.raises(DashboardPersistenceError):
        session.save()

    assert session.document.dashboard is before
    assert session.document.dashboard.updated_at == before.updated_at
    assert session.document.dashboard.is_new


def test_refresh_resolves_visible_widgets_and_renders() -> None:
    session = _session()
    metric = session.add_widget("metric")
    session.update_static_data(metric.id, '[{"value": 12}]')
    hidden = session.add_widget("table")
    session.toggle_visibility(hidden.id)

    resolutions = asyncio.run(session.refresh())

    assert list(resolutions) == [metric.id]
    assert session.is_stale is False
    rendered = session.render()
    assert [item.widget_id for item in rendered] == [metric.id]
    assert rendered[0].summary.display_value == "12"
    assert session.visible_count == 1


def test_filter_defaults_and_changes_reach_api_payload() -> None:
    api_source = _GatedApiSource()
    api_source.release.set()
    session = _session(api_source=api_source)
    widget = session.add_widget("chart")
    session.edit_widget(widget.id, {"data_source": {"type": "api", "api_endpoint": "https://reports.example.org/d"}})
    session.change_filter_value("year", "2025")

    asyncio.run(session.refresh())

    assert api_source.payloads[0]["filters"] == {"year": 2025.0}
    assert session.is_stale is False

    session.clear_all_filters()
    assert session.is_stale is True


def test_result_for_widget_deleted_mid_flight_is_discarded() -> None:
    async def scenario() -> tuple[dict, DashboardBuilderSession, str]:
        api_source = _GatedApiSource()
        session = _session(api_source=api_source)
        widget = session.add_widget("chart")
        session.edit_widget(widget.id, {"data_source": {"type": "api", "api_endpoint": "https://reports.example.org/d"}})

        task = asyncio.create_task(session.refresh())
        await api_source.started.wait()
        session.delete_widget(widget.id)
        api_source.release.set()
        return await task, session, widget.id

    resolutions, session, widget_id = asyncio.run(scenario())

    assert resolutions == {}
    assert session._resolver.latest(widget_id) is None
    assert session.render() == []


def test_read_only_session_blocks_mutations() -> None:
    session = _session(read_only=True)

    with pytest.raises(DashboardReadOnlyError):
        session.add_widget("metric")
    with pytest.raises(DashboardReadOnlyError):
        session.save()
    with pytest.raises(DashboardReadOnlyError):
        session.edit()
    assert session.change_layout([LayoutItem(widget_id="x", x=0, y=0, width=2, height=2)]) == []


def test_preview_toggle_freezes_layout() -> None:
    session = _session()
    widget = session.add_widget("gauge")
    session.document.compute_layout()

    session.preview()
    session.change_layout([LayoutItem(widget_id=widget.id, x=6, y=0, width=6, height=4)])
    assert session.document.get_widget(widget.id).position.x == 0

    session.edit()
    session.change_layout([LayoutItem(widget_id=widget.id, x=6, y=0, width=6, height=4)])
    assert session.document.get_widget(widget.id).position.x == 6
