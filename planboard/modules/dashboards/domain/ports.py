from __future__ import annotations

from typing import Protocol

from planboard.modules.dashboards.domain.models import Dashboard


class DashboardRepository(Protocol):
    """Whole-document storage: a save replaces every persisted attribute at once."""

    def save(self, dashboard: Dashboard) -> Dashboard:
        raise NotImplementedError

    def load(self, dashboard_id: str) -> Dashboard:
        raise NotImplementedError

    def list(self, owner_id: str | None = None) -> list[Dashboard]:
        raise NotImplementedError

    def delete(self, dashboard_id: str) -> None:
        raise NotImplementedError
