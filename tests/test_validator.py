"""
Unit tests for chart request validation.
"""
import pytest
from chartkit.core.errors import ErrorCodes
from chartkit.core.schemas import ChartParameters
from chartkit.services.profiler import profile_dataset
from chartkit.services.validator import (
    validate_chart_request,
    check_category_limits,
    suggest_alternative_chart_types,
    generate_recovery_suggestions,
    get_type_conversion_suggestion,
)


COLUMN_TYPES = {
    "region": "categorical",
    "product": "categorical",
    "sales": "numeric",
    "units": "numeric",
    "price": "numeric",
    "order_date": "datetime",
}


def codes(violations):
    return [(v.parameter, v.code) for v in violations]


@pytest.mark.unit
def test_valid_bar_request():
    params = ChartParameters(x_axis="region", y_axis="sales", aggregation="sum")

    assert validate_chart_request("bar", params, COLUMN_TYPES, 100) == []


@pytest.mark.unit
def test_bubble_without_size_is_rejected():
    params = ChartParameters(x_axis="sales", y_axis="units")

    violations = validate_chart_request("bubble", params, COLUMN_TYPES, 100)

    assert codes(violations) == [("size_by", ErrorCodes.MISSING_REQUIRED_PARAMETER)]
    assert violations[0].category == "validation"
    assert "size" in violations[0].suggestion


@pytest.mark.unit
def test_valid_bubble_request():
    params = ChartParameters(x_axis="sales", y_axis="units", size_by="price")

    assert validate_chart_request("bubble", params, COLUMN_TYPES, 100) == []


@pytest.mark.unit
def test_reports_every_violation_in_check_order():
    params = ChartParameters(y_axis="region", color_by="missing_col", bins=2)

    violations = validate_chart_request("scatter", params, COLUMN_TYPES, 1)

    assert codes(violations) == [
        ("x_axis", ErrorCodes.MISSING_REQUIRED_PARAMETER),
        ("y_axis", ErrorCodes.INVALID_DATA_TYPE),
        ("color_by", ErrorCodes.MISSING_COLUMN),
        ("data", ErrorCodes.INSUFFICIENT_DATA),
        ("bins", ErrorCodes.PARAMETER_OUT_OF_RANGE),
    ]


@pytest.mark.unit
def test_blank_role_counts_as_missing():
    params = ChartParameters(x_axis="   ")

    violations = validate_chart_request("pie", params, COLUMN_TYPES, 10)

    assert codes(violations) == [("x_axis", ErrorCodes.MISSING_REQUIRED_PARAMETER)]


@pytest.mark.unit
def test_type_mismatch_carries_conversion_hint():
    params = ChartParameters(x_axis="region")

    violations = validate_chart_request("histogram", params, COLUMN_TYPES, 50)

    assert codes(violations) == [("x_axis", ErrorCodes.INVALID_DATA_TYPE)]
    assert violations[0].category == "data"
    assert violations[0].suggestion == "Convert text values to numbers, or check for non-numeric data"


@pytest.mark.unit
def test_untyped_roles_accept_any_existing_column():
    # opacity_by has no declared type for scatter
    params = ChartParameters(x_axis="sales", y_axis="units", opacity_by="order_date")

    assert validate_chart_request("scatter", params, COLUMN_TYPES, 10) == []


@pytest.mark.unit
def test_insufficient_data():
    params = ChartParameters(x_axis="sales")

    violations = validate_chart_request("histogram", params, COLUMN_TYPES, 9)

    assert codes(violations) == [("data", ErrorCodes.INSUFFICIENT_DATA)]
    assert "at least 10" in violations[0].message


@pytest.mark.unit
def test_stacked_and_grouped_require_their_series_column():
    stacked = validate_chart_request(
        "stacked_bar", ChartParameters(x_axis="region", y_axis="sales"), COLUMN_TYPES, 10
    )
    grouped = validate_chart_request(
        "grouped_bar", ChartParameters(x_axis="region", y_axis="sales"), COLUMN_TYPES, 10
    )

    assert codes(stacked) == [("stack_by", ErrorCodes.MISSING_REQUIRED_PARAMETER)]
    assert codes(grouped) == [("group_by", ErrorCodes.MISSING_REQUIRED_PARAMETER)]


@pytest.mark.unit
def test_normalize_only_for_stacked_and_pie_family():
    params = ChartParameters(x_axis="region", normalize=True)

    assert codes(validate_chart_request("bar", params, COLUMN_TYPES, 10)) == [
        ("normalize", ErrorCodes.INCOMPATIBLE_PARAMETERS)
    ]
    assert validate_chart_request("pie", params, COLUMN_TYPES, 10) == []


@pytest.mark.unit
def test_rolling_window_needs_x_axis():
    params = ChartParameters(y_axis="sales", rolling_window=3)

    violations = validate_chart_request("line", params, COLUMN_TYPES, 10)

    assert ("rolling_window", ErrorCodes.INCOMPATIBLE_PARAMETERS) in codes(violations)


@pytest.mark.unit
@pytest.mark.parametrize("params, parameter", [
    (ChartParameters(x_axis="sales", bins=101), "bins"),
    (ChartParameters(x_axis="sales", limit=0), "limit"),
    (ChartParameters(x_axis="sales", rolling_window=1), "rolling_window"),
    (ChartParameters(x_axis="sales", inner_radius=1.0), "inner_radius"),
])
def test_value_ranges(params, parameter):
    violations = validate_chart_request("histogram", params, COLUMN_TYPES, 50)

    assert codes(violations) == [(parameter, ErrorCodes.PARAMETER_OUT_OF_RANGE)]


@pytest.mark.unit
def test_enum_settings():
    params = ChartParameters(x_axis="region", sort_order="sideways", aggregation="mode")

    violations = validate_chart_request("bar", params, COLUMN_TYPES, 10)

    assert codes(violations) == [
        ("sort_order", ErrorCodes.INVALID_PARAMETER_TYPE),
        ("aggregation", ErrorCodes.INVALID_PARAMETER_TYPE),
    ]


@pytest.mark.unit
def test_unsupported_chart_type():
    violations = validate_chart_request("pie3d", ChartParameters(limit=5000), COLUMN_TYPES, 10)

    assert codes(violations) == [
        ("chart_type", ErrorCodes.UNSUPPORTED_CHART_TYPE),
        ("limit", ErrorCodes.PARAMETER_OUT_OF_RANGE),
    ]


@pytest.mark.unit
def test_category_limit_warning():
    rows = [{"name": f"item {i}", "value": str(i)} for i in range(12)]
    profile = profile_dataset(rows)

    warnings = check_category_limits("pie", ChartParameters(x_axis="name"), profile)

    assert codes(warnings) == [("x_axis", ErrorCodes.TOO_MANY_CATEGORIES)]
    assert check_category_limits("bar", ChartParameters(x_axis="name"), profile) == []


@pytest.mark.unit
def test_alternatives_exclude_requested_type():
    violations = validate_chart_request("bubble", ChartParameters(x_axis="sales", y_axis="units"), COLUMN_TYPES, 10)

    alternatives = suggest_alternative_chart_types("bubble", violations)

    assert alternatives == ["pie", "histogram", "bar", "scatter", "heatmap"]
    assert "bubble" not in alternatives


@pytest.mark.unit
def test_recovery_suggestions_are_deduplicated():
    violations = validate_chart_request("scatter", ChartParameters(), COLUMN_TYPES, 10)

    suggestions = generate_recovery_suggestions(violations)

    assert suggestions[0] == "Review required parameters for your chosen chart type"
    assert len(suggestions) == len(set(suggestions))
    assert generate_recovery_suggestions([]) == []


@pytest.mark.unit
def test_type_conversion_fallback():
    assert get_type_conversion_suggestion("boolean", "numeric") == "Convert boolean column to numeric format"
