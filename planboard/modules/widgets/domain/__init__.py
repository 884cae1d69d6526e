from planboard.modules.widgets.domain.config import (
    DataSourceConfig,
    Widget,
    WidgetConfig,
    WidgetConfigValidationError,
    WidgetPosition,
    parse_static_data,
    validate_widget,
)
from planboard.modules.widgets.domain.resolution import DataResolution, DataResolutionFailure

__all__ = [
    "DataResolution",
    "DataResolutionFailure",
    "DataSourceConfig",
    "Widget",
    "WidgetConfig",
    "WidgetConfigValidationError",
    "WidgetPosition",
    "parse_static_data",
    "validate_widget",
]
