import logging
from typing import Any

from planboard.shared.infrastructure.settings import get_settings

logger = logging.getLogger("uvicorn.error")

MAX_LOGGED_VALUE_LENGTH = 200


def _safe_filters(filters: dict[str, Any]) -> dict[str, str]:
    normalized: dict[str, str] = {}
    for key, value in filters.items():
        if value is None:
            normalized[key] = "NULL"
            continue
        text = str(value)
        if len(text) > MAX_LOGGED_VALUE_LENGTH:
            text = text[:MAX_LOGGED_VALUE_LENGTH] + "...(truncated)"
        normalized[key] = text
    return normalized


def log_widget_data_request(
    *,
    widget_id: str,
    source_type: str,
    target: str | None,
    filters: dict[str, Any] | None = None,
) -> None:
    """
    Emits observability logs for data requests sent to remote widget sources.
    Controlled via PLANBOARD_LOG_WIDGET_DATA_REQUESTS and PLANBOARD_LOG_WIDGET_DATA_FILTERS.
    """
    settings = get_settings()
    if not settings.log_widget_data_requests:
        return

    payload: dict[str, Any] = {
        "widget_id": widget_id,
        "source": source_type,
        "target": target,
    }
    if settings.log_widget_data_filters and filters:
        payload["filters"] = _safe_filters(filters)

    logger.info("widget_data_request | %s", payload)
