from __future__ import annotations

import uuid


class PlanboardError(Exception):
    status_code: int = 500
    code: str = "planboard_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        error_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code or self.status_code
        self.code = code or self.code
        self.message = message
        self.error_id = error_id or str(uuid.uuid4())


class DashboardNotFoundError(PlanboardError):
    status_code = 404
    code = "dashboard_not_found"

    def __init__(self, dashboard_id: str) -> None:
        super().__init__(f"Dashboard '{dashboard_id}' not found")
        self.dashboard_id = dashboard_id


class DashboardPersistenceError(PlanboardError):
    """Storage rejected a save/delete; the in-memory document is left untouched."""

    status_code = 503
    code = "dashboard_persistence_failed"


class DashboardReadOnlyError(PlanboardError):
    status_code = 409
    code = "dashboard_read_only"


class StaticDataError(PlanboardError):
    status_code = 400
    code = "invalid_static_data"
