from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

FailureReason = Literal[
    "request_error",
    "http_status",
    "malformed_payload",
    "query_error",
    "timeout",
    "unsupported_source",
]


@dataclass(slots=True, frozen=True)
class DataResolutionFailure:
    widget_id: str
    source_type: str
    reason: FailureReason
    message: str


@dataclass(slots=True)
class DataResolution:
    widget_id: str
    rows: list[Any] = field(default_factory=list)
    failure: DataResolutionFailure | None = None
    cache_hit: bool = False
    execution_time_ms: int = 0
    resolved_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return self.failure is None


class DataSourceError(Exception):
    """Raised by data-source adapters; the resolver turns it into a ``DataResolutionFailure``."""

    def __init__(self, reason: FailureReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message
