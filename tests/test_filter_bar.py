from datetime import date

from planboard.modules.filters.application.filter_bar import FilterBar
from planboard.modules.filters.domain.definitions import FilterDefinition


def _filter_bar() -> FilterBar:
    return FilterBar(
        [
            FilterDefinition(id="search", type="text", label="Search"),
            FilterDefinition(
                id="department",
                type="select",
                label="Department",
                options=[{"value": "fin", "label": "Finance"}, {"value": "ops", "label": "Operations"}],
            ),
            FilterDefinition(
                id="status",
                type="multiselect",
                label="Status",
                options=[{"value": "open", "label": "Open"}, {"value": "closed", "label": "Closed"}],
            ),
            FilterDefinition(id="budget", type="number", label="Budget"),
            FilterDefinition(id="due", type="date", label="Due"),
            FilterDefinition(id="period", type="daterange", label="Period"),
        ]
    )


def test_multiselect_add_is_idempotent() -> None:
    bar = _filter_bar()
    bar.add_multiselect_value("status", "open")
    bar.add_multiselect_value("status", "open")
    assert bar.values["status"] == ["open"]

    bar.update_filter("status", ["open", "closed", "open"])
    assert bar.values["status"] == ["open", "closed"]


def test_removing_last_multiselect_value_clears_entry() -> None:
    bar = _filter_bar()
    bar.add_multiselect_value("status", "open")
    bar.remove_multiselect_value("status", "open")
    assert "status" not in bar.values
    assert bar.active_count == 0


def test_update_and_clear_filters() -> None:
    bar = _filter_bar()
    bar.update_filter("search", "roads")
    bar.update_filter("department", "fin")
    assert bar.active_count == 2

    bar.clear_filter("search")
    assert bar.values == {"department": "fin"}

    bar.clear_all()
    assert bar.values == {}
    assert bar.has_active_filters is False


def test_empty_values_remove_the_entry() -> None:
    bar = _filter_bar()
    bar.update_filter("search", "roads")
    bar.update_filter("search", "")
    assert "search" not in bar.values


def test_number_and_date_coercion() -> None:
    bar = _filter_bar()
    bar.update_filter("budget", "1500.5")
    bar.update_filter("due", date(2024, 3, 1))
    bar.update_filter("period", {"from": "2024-01-01T00:00:00Z"})
    assert bar.values["budget"] == 1500.5
    assert bar.values["due"] == "2024-03-01"
    assert bar.values["period"] == {"from": "2024-01-01T00:00:00Z"}

    bar.update_filter("budget", "not a number")
    assert "budget" not in bar.values


def test_non_object_daterange_is_dropped() -> None:
    bar = _filter_bar()
    bar.update_filter("period", {"from": "2024-01-01"})
    bar.update_filter("period", "2024-01-01")
    assert "period" not in bar.values
    assert bar.active_count == 0


def test_unusable_stored_default_is_skipped() -> None:
    stored = FilterDefinition.model_construct(
        id="period", type="daterange", label="Period", options=[], default_value="2024", required=False
    )
    bar = FilterBar([stored])
    bar.apply_defaults()
    assert bar.values == {}


def test_chips_are_derived_from_values() -> None:
    bar = _filter_bar()
    bar.update_filter("department", "ops")
    bar.update_filter("status", ["open", "closed"])
    bar.update_filter("period", {"from": "2024-01-01T00:00:00Z"})
    bar.update_filter("budget", 2000)

    chips = {chip.filter_id: chip.display_value for chip in bar.chips()}
    assert chips == {
        "department": "Operations",
        "status": "2 selected",
        "period": "2024-01-01 - ?",
        "budget": "2000",
    }
    assert len(bar.chips()) == bar.active_count


def test_unknown_filter_is_ignored_and_defaults_apply() -> None:
    bar = FilterBar([FilterDefinition(id="year", type="number", label="Year", default_value=2024)])
    bar.update_filter("missing", "x")
    bar.apply_defaults()
    assert bar.values == {"year": 2024.0}


def test_redefining_filters_drops_orphaned_values() -> None:
    bar = _filter_bar()
    bar.update_filter("search", "roads")
    bar.update_filter("budget", 10)
    bar.set_definitions([FilterDefinition(id="budget", type="number", label="Budget")])
    assert bar.values == {"budget": 10.0}
