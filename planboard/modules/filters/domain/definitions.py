from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

FilterType = Literal["text", "select", "multiselect", "number", "date", "daterange"]

OPTION_FILTER_TYPES: frozenset[str] = frozenset({"select", "multiselect"})


class FilterOption(BaseModel):
    value: str
    label: str


class FilterDefinition(BaseModel):
    id: str = Field(min_length=1)
    type: FilterType
    label: str = Field(min_length=1)
    field: str | None = None
    options: list[FilterOption] = Field(default_factory=list)
    default_value: Any | None = None
    required: bool = False

    @model_validator(mode="after")
    def validate_options(self) -> "FilterDefinition":
        if self.options and self.type not in OPTION_FILTER_TYPES:
            raise ValueError(f"Filter type '{self.type}' does not support options")
        values = [option.value for option in self.options]
        if len(values) != len(set(values)):
            raise ValueError("Filter option values must be unique")
        if self.default_value is not None:
            self._validate_default(set(values))
        return self

    def _validate_default(self, option_values: set[str]) -> None:
        default = self.default_value
        if self.type == "daterange":
            if not isinstance(default, dict) or not default or set(default) - {"from", "to"}:
                raise ValueError("Date range default must be an object with 'from' and/or 'to'")
            return
        if self.type == "multiselect":
            items = default if isinstance(default, list) else [default]
            if any(isinstance(item, (dict, list)) for item in items):
                raise ValueError("Multiselect default must be a value or a list of values")
        elif self.type == "select":
            items = [default]
        else:
            return
        if option_values:
            unknown = [item for item in items if item not in option_values]
            if unknown:
                raise ValueError(f"Default value {unknown!r} is not one of the filter options")

    def option_label(self, value: Any) -> str:
        for option in self.options:
            if option.value == value:
                return option.label
        return str(value)


def ensure_unique_filter_ids(definitions: list[FilterDefinition]) -> None:
    seen: set[str] = set()
    for definition in definitions:
        if definition.id in seen:
            raise ValueError(f"Duplicate filter id '{definition.id}'")
        seen.add(definition.id)
