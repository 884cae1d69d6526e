from __future__ import annotations

import uuid

from planboard.errors import DashboardNotFoundError
from planboard.modules.dashboards.domain.models import Dashboard
from planboard.modules.widgets.domain.config import utcnow


class InMemoryDashboardRepository:
    """Process-local store keeping serialized copies, so callers never share instances with it."""

    def __init__(self) -> None:
        self._documents: dict[str, dict] = {}

    def save(self, dashboard: Dashboard) -> Dashboard:
        now = utcnow()
        if dashboard.is_new:
            dashboard = dashboard.model_copy(update={"id": str(uuid.uuid4()), "created_at": now})
        dashboard = dashboard.model_copy(update={"updated_at": now})
        self._documents[dashboard.id] = dashboard.model_dump(mode="json")
        return dashboard

    def load(self, dashboard_id: str) -> Dashboard:
        document = self._documents.get(dashboard_id)
        if document is None:
            raise DashboardNotFoundError(dashboard_id)
        return Dashboard.model_validate(document)

    def list(self, owner_id: str | None = None) -> list[Dashboard]:
        dashboards = [Dashboard.model_validate(document) for document in self._documents.values()]
        if owner_id is not None:
            dashboards = [dashboard for dashboard in dashboards if dashboard.owner_id == owner_id]
        return sorted(dashboards, key=lambda dashboard: dashboard.updated_at, reverse=True)

    def delete(self, dashboard_id: str) -> None:
        if self._documents.pop(dashboard_id, None) is None:
            raise DashboardNotFoundError(dashboard_id)
