from __future__ import annotations

import logging
import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, String, Text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from planboard.errors import DashboardNotFoundError, DashboardPersistenceError
from planboard.modules.dashboards.domain.models import Dashboard
from planboard.modules.widgets.domain.config import utcnow
from planboard.shared.infrastructure.database import Base

logger = logging.getLogger(__name__)


class DashboardRecord(Base):
    __tablename__ = "dashboards"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    is_public = Column(Boolean, default=False, nullable=False)
    owner_id = Column(String(255), nullable=True, index=True)
    tags = Column(JSON, nullable=False, default=list)
    layout_mode = Column(String(20), nullable=False, default="grid")
    # Full serialized dashboard; the other columns are denormalized for listing.
    document = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("dashboard_owner_updated_idx", "owner_id", "updated_at"),
    )


class SqlAlchemyDashboardRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    def save(self, dashboard: Dashboard) -> Dashboard:
        now = utcnow()
        if dashboard.is_new:
            dashboard = dashboard.model_copy(update={"id": str(uuid.uuid4()), "created_at": now})
        dashboard = dashboard.model_copy(update={"updated_at": now})

        try:
            record = self._db.get(DashboardRecord, dashboard.id)
            if record is None:
                record = DashboardRecord(id=dashboard.id, created_at=dashboard.created_at)
                self._db.add(record)
            record.name = dashboard.name
            record.description = dashboard.description
            record.is_public = dashboard.is_public
            record.owner_id = dashboard.owner_id
            record.tags = list(dashboard.tags)
            record.layout_mode = dashboard.layout_mode
            record.document = dashboard.model_dump(mode="json")
            record.updated_at = dashboard.updated_at
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.warning("dashboard_persistence.save_failed | %s", {"dashboard_id": dashboard.id, "error": repr(exc)})
            raise DashboardPersistenceError(f"Failed to save dashboard '{dashboard.name}'") from exc

        logger.info(
            "dashboard_persistence.saved | %s",
            {"dashboard_id": dashboard.id, "widget_count": len(dashboard.widgets)},
        )
        return dashboard

    def load(self, dashboard_id: str) -> Dashboard:
        try:
            record = self._db.get(DashboardRecord, dashboard_id)
        except SQLAlchemyError as exc:
            raise DashboardPersistenceError(f"Failed to load dashboard '{dashboard_id}'") from exc
        if record is None:
            raise DashboardNotFoundError(dashboard_id)
        return Dashboard.model_validate(record.document)

    def list(self, owner_id: str | None = None) -> list[Dashboard]:
        query = self._db.query(DashboardRecord)
        if owner_id is not None:
            query = query.filter(DashboardRecord.owner_id == owner_id)
        try:
            records = query.order_by(DashboardRecord.updated_at.desc(), DashboardRecord.id.asc()).all()
        except SQLAlchemyError as exc:
            raise DashboardPersistenceError("Failed to list dashboards") from exc
        return [Dashboard.model_validate(record.document) for record in records]

    def delete(self, dashboard_id: str) -> None:
        record = self._db.get(DashboardRecord, dashboard_id)
        if record is None:
            raise DashboardNotFoundError(dashboard_id)
        try:
            self._db.delete(record)
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            raise DashboardPersistenceError(f"Failed to delete dashboard '{dashboard_id}'") from exc
        logger.info("dashboard_persistence.deleted | %s", {"dashboard_id": dashboard_id})
