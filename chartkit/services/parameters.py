import logging
from typing import Dict, Mapping, Optional, Sequence, Set
from chartkit.core.schemas import ChartParameters
from chartkit.services.registry import get_requirement, is_compatible_type

logger = logging.getLogger(__name__)


def find_suitable_column(
    columns: Sequence[str],
    column_types: Mapping[str, str],
    expected_type: str,
    taken: Set[str],
) -> Optional[str]:
    """First column, in the given order, whose type fits and that no other role uses."""
    for column in columns:
        if column in taken:
            continue
        if is_compatible_type(column_types.get(column), expected_type):
            return column
    return None


def synthesize_parameters(
    chart_type: str,
    available_columns: Sequence[str],
    column_types: Mapping[str, str],
) -> ChartParameters:
    """
    Propose a default parameter set for a chart type.

    Each required role with a declared type gets the first compatible
    column not already bound to another role. Roles without a candidate
    stay unset, so the result may still fail validation.
    """
    requirement = get_requirement(chart_type)
    if requirement is None:
        return ChartParameters()

    bindings: Dict[str, object] = {}
    taken: Set[str] = set()
    for role in requirement.required_parameters:
        expected = requirement.data_types.get(role)
        if expected is None:
            continue
        column = find_suitable_column(available_columns, column_types, expected, taken)
        if column is not None:
            bindings[role] = column
            taken.add(column)

    # Deterministic defaults for well-known optional settings
    if chart_type == "histogram":
        bindings["bins"] = 20
    if chart_type == "pie":
        bindings["limit"] = 8
    if chart_type in ("bar", "stacked_bar", "grouped_bar"):
        bindings["aggregation"] = "sum"
    if chart_type in ("bar", "pie"):
        bindings["sort_order"] = "desc"

    return ChartParameters(**bindings)
