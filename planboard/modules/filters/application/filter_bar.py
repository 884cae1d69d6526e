from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from planboard.modules.filters.domain.definitions import FilterDefinition, ensure_unique_filter_ids
from planboard.modules.widgets.domain.formatting import as_number

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class FilterChip:
    filter_id: str
    label: str
    display_value: str


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _iso(value: Any) -> str | None:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _date_part(value: str) -> str:
    return value.split("T", 1)[0]


class FilterBar:
    """Live filter values keyed by filter id; chips and counts are derived from the same map."""

    def __init__(self, definitions: list[FilterDefinition] | None = None) -> None:
        self._definitions: dict[str, FilterDefinition] = {}
        self._values: dict[str, Any] = {}
        self.set_definitions(definitions or [])

    @property
    def definitions(self) -> list[FilterDefinition]:
        return list(self._definitions.values())

    @property
    def values(self) -> dict[str, Any]:
        return dict(self._values)

    def set_definitions(self, definitions: list[FilterDefinition]) -> None:
        ensure_unique_filter_ids(definitions)
        self._definitions = {definition.id: definition for definition in definitions}
        # Values for filters that no longer exist are dropped.
        self._values = {key: value for key, value in self._values.items() if key in self._definitions}

    def apply_defaults(self) -> None:
        for definition in self._definitions.values():
            if definition.default_value is not None and definition.id not in self._values:
                self.update_filter(definition.id, definition.default_value)

    def update_filter(self, filter_id: str, value: Any) -> None:
        definition = self._definitions.get(filter_id)
        if definition is None:
            logger.debug("filter_bar.unknown_filter | %s", {"filter_id": filter_id})
            return
        coerced = self._coerce(definition, value)
        if _is_empty(coerced):
            self._values.pop(filter_id, None)
            return
        self._values[filter_id] = coerced

    def add_multiselect_value(self, filter_id: str, value: str) -> None:
        current = list(self._values.get(filter_id) or [])
        if value in current:
            return
        self.update_filter(filter_id, [*current, value])

    def remove_multiselect_value(self, filter_id: str, value: str) -> None:
        current = list(self._values.get(filter_id) or [])
        self.update_filter(filter_id, [item for item in current if item != value])

    def clear_filter(self, filter_id: str) -> None:
        self._values.pop(filter_id, None)

    def clear_all(self) -> None:
        self._values.clear()

    @property
    def active_count(self) -> int:
        return len(self._values)

    @property
    def has_active_filters(self) -> bool:
        return bool(self._values)

    def chips(self) -> list[FilterChip]:
        chips: list[FilterChip] = []
        for filter_id, value in self._values.items():
            definition = self._definitions[filter_id]
            chips.append(
                FilterChip(
                    filter_id=filter_id,
                    label=definition.label,
                    display_value=self._display(definition, value),
                )
            )
        return chips

    def _coerce(self, definition: FilterDefinition, value: Any) -> Any:
        if value is None:
            return None
        if definition.type == "multiselect":
            items = value if isinstance(value, (list, tuple)) else [value]
            deduplicated: list[Any] = []
            for item in items:
                if item not in deduplicated:
                    deduplicated.append(item)
            return deduplicated
        if definition.type == "number":
            return as_number(value)
        if definition.type == "date":
            return _iso(value)
        if definition.type == "daterange":
            if not isinstance(value, dict):
                logger.debug("filter_bar.invalid_daterange | %s", {"filter_id": definition.id})
                return None
            bounds = {key: _iso(value.get(key)) for key in ("from", "to")}
            return {key: bound for key, bound in bounds.items() if bound is not None}
        if isinstance(value, str):
            return value
        return str(value)

    def _display(self, definition: FilterDefinition, value: Any) -> str:
        if definition.type == "multiselect":
            return f"{len(value)} selected"
        if definition.type == "daterange":
            start = _date_part(value["from"]) if value.get("from") else "?"
            end = _date_part(value["to"]) if value.get("to") else "?"
            return f"{start} - {end}"
        if definition.type == "date":
            return _date_part(value)
        if definition.type == "select":
            return definition.option_label(value)
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
