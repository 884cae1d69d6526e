from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from planboard.modules.filters.domain.definitions import FilterDefinition, ensure_unique_filter_ids
from planboard.modules.widgets.domain.config import Widget, utcnow

LayoutMode = Literal["grid", "masonry", "tabs"]

# Identity of a dashboard that has never been persisted.
NEW_DASHBOARD_ID = ""


class Dashboard(BaseModel):
    id: str = NEW_DASHBOARD_ID
    name: str = Field(min_length=1)
    description: str | None = None
    widgets: list[Widget] = Field(default_factory=list)
    filters: list[FilterDefinition] = Field(default_factory=list)
    layout_mode: LayoutMode = "grid"
    is_public: bool = False
    owner_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def validate_identities(self) -> "Dashboard":
        if not self.name.strip():
            raise ValueError("Dashboard name is required")
        seen: set[str] = set()
        for widget in self.widgets:
            if widget.id in seen:
                raise ValueError(f"Duplicate widget id '{widget.id}'")
            seen.add(widget.id)
        ensure_unique_filter_ids(self.filters)
        return self

    @property
    def is_new(self) -> bool:
        return self.id == NEW_DASHBOARD_ID

    def widget_ids(self) -> list[str]:
        return [widget.id for widget in self.widgets]

    def find_widget(self, widget_id: str) -> Widget | None:
        for widget in self.widgets:
            if widget.id == widget_id:
                return widget
        return None

    def visible_widgets(self) -> list[Widget]:
        return [widget for widget in self.widgets if widget.visible]
