from fastapi import Depends
from sqlalchemy.orm import Session

from planboard.modules.dashboards.adapters.sqlalchemy_repository import SqlAlchemyDashboardRepository
from planboard.modules.widgets.adapters.api_source import get_api_data_source
from planboard.modules.widgets.adapters.query_engine import get_query_engine_client
from planboard.modules.widgets.application.data_resolver import WidgetDataResolver
from planboard.shared.infrastructure.database import get_db


def get_dashboard_repository(db: Session = Depends(get_db)) -> SqlAlchemyDashboardRepository:
    return SqlAlchemyDashboardRepository(db)


def get_widget_data_resolver() -> WidgetDataResolver:
    """Fresh resolver per request; its cache lives as long as the dashboard being rendered."""
    return WidgetDataResolver(
        api_source=get_api_data_source(),
        query_executor=get_query_engine_client(),
    )
