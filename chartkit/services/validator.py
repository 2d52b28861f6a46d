"""
Compatibility validation for chart requests.

`validate_chart_request` runs every check and reports every violation;
nothing short-circuits. An empty list means the request is valid.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional
from chartkit.core.errors import DATA_CODES, ErrorCodes
from chartkit.core.schemas import ChartParameters, DatasetProfile, Violation
from chartkit.services.registry import (
    CHART_TYPES,
    COLUMN_ROLES,
    NORMALIZABLE_TYPES,
    TIME_SERIES_TYPES,
    get_requirement,
    is_compatible_type,
)

logger = logging.getLogger(__name__)

ALLOWED_AGGREGATIONS = ("count", "sum", "mean", "median", "min", "max", "std", "var")
ALLOWED_SORT_ORDERS = ("asc", "desc", "none")

PARAMETER_SUGGESTIONS = {
    "x_axis": "Specify a column name for the X-axis. For {chart_type} charts, this should be a categorical or datetime column.",
    "y_axis": "Specify a column name for the Y-axis. This should typically be a numeric column.",
    "size_by": "Specify a numeric column to control the size of bubbles or points.",
    "color_by": "Specify a categorical column to color-code your data points.",
    "stack_by": "Specify a categorical column to create stacked segments.",
    "group_by": "Specify a categorical column to group your data series.",
}

TYPE_CONVERSION_SUGGESTIONS = {
    "numeric": {
        "categorical": "Convert text values to numbers, or check for non-numeric data",
        "datetime": "Extract numeric components from dates (year, month, etc.)",
    },
    "categorical": {
        "numeric": "Convert numbers to text categories or use binning",
        "datetime": "Format dates as text or extract categorical components",
    },
    "datetime": {
        "categorical": "Parse text as dates using proper date format",
        "numeric": "Convert timestamps to datetime objects",
    },
}

# Extra chart types worth trying, keyed by the chart that failed
CHART_ALTERNATIVES = {
    "bubble": ["scatter", "bar", "heatmap"],
    "violin": ["box", "histogram", "density"],
    "radar": ["bar", "line", "area"],
    "treemap": ["pie", "bar", "sunburst"],
    "sankey": ["bar", "heatmap", "chord"],
    "stacked_bar": ["bar", "grouped_bar", "pie"],
    "multi_line": ["line", "area", "bar"],
    "heatmap": ["scatter", "bar", "bubble"],
    "candlestick": ["line", "area", "bar"],
    "waterfall": ["bar", "line", "area"],
}


def make_violation(parameter: str, code: str, message: str, suggestion: str) -> Violation:
    category = "data" if code in DATA_CODES else "validation"
    return Violation(
        parameter=parameter,
        code=code,
        message=message,
        suggestion=suggestion,
        category=category,
    )


def get_parameter_suggestion(parameter: str, chart_type: str) -> str:
    template = PARAMETER_SUGGESTIONS.get(parameter)
    if template is None:
        return f"Provide a valid value for the {parameter} parameter."
    return template.format(chart_type=chart_type)


def get_type_conversion_suggestion(actual: Optional[str], expected: str) -> str:
    suggestion = TYPE_CONVERSION_SUGGESTIONS.get(expected, {}).get(actual or "")
    return suggestion or f"Convert {actual} column to {expected} format"


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def check_required_parameters(chart_type: str, parameters: ChartParameters) -> List[Violation]:
    requirement = get_requirement(chart_type)
    violations = []
    for role in requirement.required_parameters:
        if _is_empty(parameters.get(role)):
            violations.append(make_violation(
                role,
                ErrorCodes.MISSING_REQUIRED_PARAMETER,
                f'Parameter "{role}" is required for {chart_type} charts',
                get_parameter_suggestion(role, chart_type),
            ))
    return violations


def check_column_types(
    chart_type: str,
    parameters: ChartParameters,
    column_types: Mapping[str, str],
) -> List[Violation]:
    requirement = get_requirement(chart_type)
    violations = []
    for role in COLUMN_ROLES:
        column = parameters.get(role)
        if _is_empty(column):
            continue

        if column not in column_types:
            available = ", ".join(column_types) or "none"
            violations.append(make_violation(
                role,
                ErrorCodes.MISSING_COLUMN,
                f'Column "{column}" not found in dataset',
                f"Available columns: {available}",
            ))
            continue

        expected = requirement.data_types.get(role)
        if expected is None or expected == "any":
            continue
        actual = column_types[column]
        if not is_compatible_type(actual, expected):
            violations.append(make_violation(
                role,
                ErrorCodes.INVALID_DATA_TYPE,
                f'Column "{column}" has type "{actual}" but "{expected}" is required',
                get_type_conversion_suggestion(actual, expected),
            ))
    return violations


def check_row_count(chart_type: str, row_count: int) -> List[Violation]:
    requirement = get_requirement(chart_type)
    if row_count >= requirement.min_data_points:
        return []
    return [make_violation(
        "data",
        ErrorCodes.INSUFFICIENT_DATA,
        f"{chart_type} charts require at least {requirement.min_data_points} data points, "
        f"but only {row_count} available",
        "Collect more data or use a simpler chart type like bar or pie",
    )]


def check_combinations(chart_type: str, parameters: ChartParameters) -> List[Violation]:
    violations = []

    if chart_type == "bubble" and _is_empty(parameters.size_by):
        violations.append(make_violation(
            "size_by",
            ErrorCodes.MISSING_REQUIRED_PARAMETER,
            "Bubble charts require a size_by parameter",
            "Add a numeric column to control bubble sizes",
        ))

    if chart_type in ("stacked_bar", "stacked_area") and _is_empty(parameters.stack_by):
        violations.append(make_violation(
            "stack_by",
            ErrorCodes.MISSING_REQUIRED_PARAMETER,
            f"{chart_type} charts require a stack_by parameter",
            "Add a categorical column for stacking",
        ))

    if chart_type in ("grouped_bar", "multi_line") and _is_empty(parameters.group_by):
        violations.append(make_violation(
            "group_by",
            ErrorCodes.MISSING_REQUIRED_PARAMETER,
            f"{chart_type} charts require a group_by parameter",
            "Add a categorical column for grouping",
        ))

    if chart_type in TIME_SERIES_TYPES and parameters.rolling_window and _is_empty(parameters.x_axis):
        violations.append(make_violation(
            "rolling_window",
            ErrorCodes.INCOMPATIBLE_PARAMETERS,
            "rolling_window requires x_axis to be specified",
            "Specify x_axis parameter for time series analysis",
        ))

    if parameters.normalize and chart_type not in NORMALIZABLE_TYPES:
        violations.append(make_violation(
            "normalize",
            ErrorCodes.INCOMPATIBLE_PARAMETERS,
            f"normalize parameter is not applicable for {chart_type} charts",
            "Remove normalize parameter or use a stacked chart type",
        ))

    return violations


def check_value_ranges(parameters: ChartParameters) -> List[Violation]:
    violations = []

    if parameters.bins is not None and not 5 <= parameters.bins <= 100:
        violations.append(make_violation(
            "bins",
            ErrorCodes.PARAMETER_OUT_OF_RANGE,
            "bins parameter must be an integer between 5 and 100",
            "Use a value between 10-30 for most histograms",
        ))

    if parameters.limit is not None and not 1 <= parameters.limit <= 1000:
        violations.append(make_violation(
            "limit",
            ErrorCodes.PARAMETER_OUT_OF_RANGE,
            "limit parameter must be an integer between 1 and 1000",
            "Use 10-50 for most visualizations",
        ))

    if parameters.rolling_window is not None and parameters.rolling_window < 2:
        violations.append(make_violation(
            "rolling_window",
            ErrorCodes.PARAMETER_OUT_OF_RANGE,
            "rolling_window must be an integer >= 2",
            "Use 3-30 depending on your data frequency",
        ))

    if parameters.inner_radius is not None and not 0 <= parameters.inner_radius < 1:
        violations.append(make_violation(
            "inner_radius",
            ErrorCodes.PARAMETER_OUT_OF_RANGE,
            "inner_radius must be between 0 and 1",
            "Use 0.3-0.6 for donut charts",
        ))

    if parameters.sort_order is not None and parameters.sort_order not in ALLOWED_SORT_ORDERS:
        violations.append(make_violation(
            "sort_order",
            ErrorCodes.INVALID_PARAMETER_TYPE,
            "sort_order must be 'asc', 'desc', or 'none'",
            "Use 'desc' for ranking, 'asc' for alphabetical",
        ))

    if parameters.aggregation is not None and parameters.aggregation not in ALLOWED_AGGREGATIONS:
        violations.append(make_violation(
            "aggregation",
            ErrorCodes.INVALID_PARAMETER_TYPE,
            "Invalid aggregation function",
            "Use 'sum' for totals, 'mean' for averages, 'count' for frequencies",
        ))

    return violations


def validate_chart_request(
    chart_type: str,
    parameters: ChartParameters,
    column_types: Mapping[str, str],
    row_count: int,
) -> List[Violation]:
    """
    Check a chart type and parameter set against the registry and the dataset shape.

    Returns every violation found, in check order: required roles, column
    existence and types, row count, combination rules, then value ranges.
    """
    if get_requirement(chart_type) is None:
        return [make_violation(
            "chart_type",
            ErrorCodes.UNSUPPORTED_CHART_TYPE,
            f'Chart type "{chart_type}" is not supported',
            f"Use one of the supported chart types: {', '.join(CHART_TYPES)}",
        )] + check_value_ranges(parameters)

    violations = check_required_parameters(chart_type, parameters)
    violations += check_column_types(chart_type, parameters, column_types)
    violations += check_row_count(chart_type, row_count)

    # A combination rule restating an already-missing required role adds nothing
    reported = {(v.parameter, v.code) for v in violations}
    violations += [
        v for v in check_combinations(chart_type, parameters)
        if (v.parameter, v.code) not in reported
    ]
    violations += check_value_ranges(parameters)

    if violations:
        logger.debug(f"Chart request {chart_type} has {len(violations)} violation(s): {[v.code for v in violations]}")
    return violations


def check_category_limits(
    chart_type: str,
    parameters: ChartParameters,
    profile: DatasetProfile,
) -> List[Violation]:
    """Warnings for categorical axes with more distinct values than the chart shows well."""
    requirement = get_requirement(chart_type)
    if requirement is None or requirement.max_categories is None:
        return []

    warnings = []
    for role in ("x_axis", "y_axis"):
        column = profile.get_column(parameters.get(role) or "")
        if column is None or column.type_tag != "categorical":
            continue
        if column.unique_value_count > requirement.max_categories:
            warnings.append(make_violation(
                role,
                ErrorCodes.TOO_MANY_CATEGORIES,
                f"{column.name} has {column.unique_value_count} categories, "
                f"more than the {requirement.max_categories} a {chart_type} chart shows clearly",
                f"Use the limit parameter if {column.name} has more than "
                f"{requirement.max_categories} categories",
            ))
    return warnings


def suggest_alternative_chart_types(chart_type: str, violations: List[Violation]) -> List[str]:
    """Chart types worth trying instead, based on what went wrong."""
    codes = {v.code for v in violations}
    alternatives: List[str] = []

    if ErrorCodes.INSUFFICIENT_DATA in codes:
        alternatives += ["bar", "pie", "line"]
    if ErrorCodes.INVALID_DATA_TYPE in codes:
        alternatives += ["bar", "scatter", "histogram"]
    if ErrorCodes.MISSING_REQUIRED_PARAMETER in codes:
        alternatives += ["pie", "histogram", "bar"]
    alternatives += CHART_ALTERNATIVES.get(chart_type, [])

    return list(dict.fromkeys(a for a in alternatives if a != chart_type))


def generate_recovery_suggestions(violations: List[Violation]) -> List[str]:
    """High-level recovery strategies followed by each violation's own hint, deduplicated."""
    counts: Dict[str, int] = {}
    for violation in violations:
        counts[violation.code] = counts.get(violation.code, 0) + 1

    suggestions: List[str] = []
    if counts.get(ErrorCodes.MISSING_REQUIRED_PARAMETER):
        suggestions += [
            "Review required parameters for your chosen chart type",
            "Check the chart documentation for parameter requirements",
        ]
    if counts.get(ErrorCodes.INVALID_DATA_TYPE):
        suggestions += [
            "Verify column data types match chart requirements",
            "Consider data preprocessing or type conversion",
        ]
    if counts.get(ErrorCodes.INSUFFICIENT_DATA):
        suggestions += [
            "Try a simpler chart type that requires less data",
            "Aggregate or filter your data to meet minimum requirements",
        ]
    if counts.get(ErrorCodes.INCOMPATIBLE_PARAMETERS):
        suggestions += [
            "Review parameter combinations for compatibility",
            "Remove conflicting parameters or adjust chart type",
        ]

    suggestions += [v.suggestion for v in violations if v.suggestion]
    return list(dict.fromkeys(suggestions))
