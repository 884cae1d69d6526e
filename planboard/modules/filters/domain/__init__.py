from planboard.modules.filters.domain.definitions import FilterDefinition, FilterOption, ensure_unique_filter_ids

__all__ = ["FilterDefinition", "FilterOption", "ensure_unique_filter_ids"]
