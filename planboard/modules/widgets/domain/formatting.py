from __future__ import annotations

import math
from typing import Any

MISSING_VALUE = "N/A"


def as_number(value: Any) -> float | None:
    """Numeric view of a cell value; ``None`` when the value is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def _plain(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_number(number: float) -> str:
    text = f"{number:,.3f}".rstrip("0").rstrip(".")
    return "0" if text in {"-0", ""} else text


def format_currency(number: float) -> str:
    sign = "-" if number < 0 else ""
    return f"{sign}${abs(number):,.2f}"


def format_percentage(number: float) -> str:
    return f"{number:.1f}%"


_FORMATTERS = {
    "number": format_number,
    "currency": format_currency,
    "percentage": format_percentage,
}


def format_value(value: Any, fmt: str | None = None) -> str:
    if value is None:
        return MISSING_VALUE
    number = as_number(value)
    if number is None:
        return str(value)
    formatter = _FORMATTERS.get(fmt or "")
    if formatter is None:
        return _plain(value)
    return formatter(number)
