import os

os.environ.setdefault("PLANBOARD_ENVIRONMENT", "test")
os.environ.setdefault("PLANBOARD_DATABASE_URL", "sqlite:///:memory:")

from collections.abc import Generator  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from planboard.modules.dashboards.adapters.sqlalchemy_repository import DashboardRecord  # noqa: E402,F401
from planboard.modules.widgets.domain.config import Widget  # noqa: E402
from planboard.shared.infrastructure.database import Base  # noqa: E402


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """In-memory database session for tests"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def build_widget(widget_id: str, kind: str = "metric", **overrides: Any) -> Widget:
    payload: dict[str, Any] = {
        "id": widget_id,
        "kind": kind,
        "title": overrides.pop("title", f"Widget {widget_id}"),
    }
    payload.update(overrides)
    return Widget.model_validate(payload)
