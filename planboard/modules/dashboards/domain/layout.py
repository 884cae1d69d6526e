from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from planboard.modules.widgets.domain.config import Widget, WidgetPosition

logger = logging.getLogger(__name__)

# Minimum viewport width (px) at which each breakpoint applies, widest first.
BREAKPOINTS: dict[str, int] = {"lg": 1200, "md": 996, "sm": 768, "xs": 480, "xxs": 0}
COLUMNS: dict[str, int] = {"lg": 12, "md": 10, "sm": 6, "xs": 4, "xxs": 2}

MIN_WIDTH = 2
MIN_HEIGHT = 2


class LayoutItem(BaseModel):
    widget_id: str = Field(min_length=1)
    x: int = Field(default=0, ge=0)
    y: int = Field(default=0, ge=0)
    width: int = Field(default=MIN_WIDTH, ge=1)
    height: int = Field(default=MIN_HEIGHT, ge=1)

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def to_position(self) -> WidgetPosition:
        return WidgetPosition(x=self.x, y=self.y, width=self.width, height=self.height)


def breakpoint_for_width(width: int) -> str:
    for name, min_width in BREAKPOINTS.items():
        if width >= min_width:
            return name
    return "xxs"


class LayoutEngine:
    """Resolves widget positions for one breakpoint and merges grid changes back by widget id."""

    def __init__(self, breakpoint: str = "lg", *, read_only: bool = False) -> None:
        if breakpoint not in COLUMNS:
            raise ValueError(f"Unknown breakpoint '{breakpoint}'")
        self.breakpoint = breakpoint
        self.columns = COLUMNS[breakpoint]
        self.read_only = read_only

    def clamp(self, widget_id: str, x: int, y: int, width: int, height: int) -> LayoutItem:
        width = max(MIN_WIDTH, min(width, self.columns))
        height = max(MIN_HEIGHT, height)
        x = max(0, min(x, self.columns - width))
        return LayoutItem(widget_id=widget_id, x=x, y=max(0, y), width=width, height=height)

    def compute(self, widgets: list[Widget]) -> list[LayoutItem]:
        """Concrete layout for every widget; unplaced widgets are appended below existing content."""
        placed: dict[str, LayoutItem] = {}
        for widget in widgets:
            position = widget.position
            if position.is_placed:
                placed[widget.id] = self.clamp(widget.id, position.x, position.y, position.width, position.height)

        bottom = max((item.bottom for item in placed.values()), default=0)
        items: list[LayoutItem] = []
        for widget in widgets:
            item = placed.get(widget.id)
            if item is None:
                position = widget.position
                item = self.clamp(widget.id, position.x, bottom, position.width, position.height)
                bottom = item.bottom
            items.append(item)
        return items

    def merge(self, widgets: list[Widget], layout: list[LayoutItem]) -> list[Widget]:
        """Applies grid output onto widgets matched by id; array order of either side is irrelevant."""
        if self.read_only:
            return list(widgets)

        by_id = {item.widget_id: item for item in layout}
        known = {widget.id for widget in widgets}
        unknown = sorted(set(by_id) - known)
        if unknown:
            logger.debug("layout_merge.unknown_widgets | %s", {"widget_ids": unknown})

        merged: list[Widget] = []
        for widget in widgets:
            item = by_id.get(widget.id)
            if item is None:
                merged.append(widget)
                continue
            clamped = self.clamp(widget.id, item.x, item.y, item.width, item.height)
            position = clamped.to_position()
            if position == widget.position:
                merged.append(widget)
            else:
                merged.append(widget.model_copy(update={"position": position}))
        return merged
