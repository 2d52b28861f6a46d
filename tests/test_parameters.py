"""
Unit tests for default parameter synthesis.
"""
import pytest
from chartkit.core.schemas import ChartParameters
from chartkit.services.parameters import synthesize_parameters, find_suitable_column


COLUMNS = ["region", "product", "sales", "units", "order_date"]
TYPES = {
    "region": "categorical",
    "product": "categorical",
    "sales": "numeric",
    "units": "numeric",
    "order_date": "datetime",
}


@pytest.mark.unit
def test_find_suitable_column_skips_taken_columns():
    assert find_suitable_column(COLUMNS, TYPES, "numeric", set()) == "sales"
    assert find_suitable_column(COLUMNS, TYPES, "numeric", {"sales"}) == "units"
    assert find_suitable_column(COLUMNS, TYPES, "numeric", {"sales", "units"}) is None


@pytest.mark.unit
def test_bar_defaults():
    params = synthesize_parameters("bar", COLUMNS, TYPES)

    assert params.x_axis == "region"
    # y_axis is optional for bar, so it stays unbound
    assert params.y_axis is None
    assert params.aggregation == "sum"
    assert params.sort_order == "desc"


@pytest.mark.unit
def test_scatter_binds_distinct_numeric_columns():
    params = synthesize_parameters("scatter", COLUMNS, TYPES)

    assert params.x_axis == "sales"
    assert params.y_axis == "units"


@pytest.mark.unit
def test_bubble_leaves_size_unbound_without_third_numeric():
    params = synthesize_parameters("bubble", COLUMNS, TYPES)

    assert (params.x_axis, params.y_axis) == ("sales", "units")
    assert params.size_by is None


@pytest.mark.unit
def test_line_uses_datetime_axis():
    params = synthesize_parameters("line", COLUMNS, TYPES)

    assert params.x_axis == "order_date"
    assert params.y_axis == "sales"


@pytest.mark.unit
def test_gantt_unsatisfied_without_datetime():
    types = {k: v for k, v in TYPES.items() if k != "order_date"}
    params = synthesize_parameters("gantt", COLUMNS[:-1], types)

    assert params.x_axis is None
    assert params.y_axis == "region"


@pytest.mark.unit
def test_histogram_and_pie_defaults():
    assert synthesize_parameters("histogram", COLUMNS, TYPES).bins == 20
    pie = synthesize_parameters("pie", COLUMNS, TYPES)
    assert pie.limit == 8
    assert pie.sort_order == "desc"


@pytest.mark.unit
def test_stacked_bar_binds_stack_column():
    params = synthesize_parameters("stacked_bar", COLUMNS, TYPES)

    assert params.x_axis == "region"
    assert params.y_axis == "sales"
    assert params.stack_by == "product"


@pytest.mark.unit
def test_radar_has_nothing_to_bind():
    assert synthesize_parameters("radar", COLUMNS, TYPES).bound() == {}


@pytest.mark.unit
def test_unknown_chart_type():
    assert synthesize_parameters("pie3d", COLUMNS, TYPES) == ChartParameters()


@pytest.mark.unit
def test_synthesis_is_deterministic():
    first = synthesize_parameters("heatmap", COLUMNS, TYPES)
    second = synthesize_parameters("heatmap", COLUMNS, TYPES)

    assert first == second
    assert (first.x_axis, first.y_axis) == ("region", "product")
