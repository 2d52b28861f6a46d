"""
Aggregation pipeline.

Turns raw rows plus one validated parameter set into a chart-ready
payload. Every routine is a pure function: the same rows and parameters
always give the same payload, and the input rows are never modified.
"""
import logging
import math
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
import pandas as pd
from chartkit.core.errors import ChartDataError, ChartValidationError, ErrorCodes
from chartkit.core.schemas import ChartParameters, ChartPayload
from chartkit.services.profiler import coerce_numeric, collect_columns, is_missing, nearest_rank
from chartkit.services.registry import CHART_TYPES, DEFAULT_CHART_PARAMETERS

logger = logging.getLogger(__name__)

Rows = Sequence[Mapping[str, Any]]

NO_DATA = "No data available for interpretation."

REDUCERS: Dict[str, Callable[[pd.Series], float]] = {
    "sum": lambda s: s.sum(),
    "mean": lambda s: s.mean(),
    "median": lambda s: s.median(),
    "min": lambda s: s.min(),
    "max": lambda s: s.max(),
    "std": lambda s: s.std(ddof=0),
    "var": lambda s: s.var(ddof=0),
}


def humanize(name: Optional[str]) -> str:
    return name.replace("_", " ") if name else ""


def _number(value: Any) -> Any:
    """Plain Python number for JSON; whole floats stay floats."""
    if isinstance(value, bool):
        return value
    if hasattr(value, "item"):
        value = value.item()
    return value


def _fmt(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.2f}".rstrip("0").rstrip(".")
    return str(value)


def category_key(value: Any) -> Optional[str]:
    """Grouping key for a cell: stripped text, or None when the cell is missing."""
    if is_missing(value):
        return None
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def setting(parameters: ChartParameters, chart_type: str, name: str, fallback: Any = None) -> Any:
    """A parameter's value, else the registry default for the chart type, else `fallback`."""
    value = parameters.get(name)
    if value is not None:
        return value
    return DEFAULT_CHART_PARAMETERS.get(chart_type, {}).get(name, fallback)


def reduce_numbers(numbers: pd.Series, aggregation: str, default: str) -> float:
    reducer = REDUCERS.get(aggregation) or REDUCERS[default]
    return float(reducer(numbers))


def require(parameters: ChartParameters, chart_type: str, *roles: str) -> None:
    missing = [role for role in roles if not parameters.get(role)]
    if missing:
        raise ChartValidationError(
            ErrorCodes.MISSING_REQUIRED_PARAMETER,
            f"{chart_type} charts require {', '.join(missing)}",
        )


def check_rows(rows: Rows, parameters: ChartParameters, chart_type: str) -> None:
    if not rows:
        raise ChartDataError(
            ErrorCodes.INSUFFICIENT_DATA,
            f"No rows to aggregate for a {chart_type} chart",
        )

    present = set(collect_columns(rows))
    for role in ("x_axis", "y_axis", "color_by", "size_by", "group_by", "stack_by", "value_column"):
        column = parameters.get(role)
        if column and column not in present:
            raise ChartDataError(
                ErrorCodes.MISSING_COLUMN,
                f'Column "{column}" bound to {role} not found in dataset',
                f"Available columns: {', '.join(present)}",
            )


def group_frame(rows: Rows, key_column: Optional[str], value_column: Optional[str]) -> pd.DataFrame:
    """
    Two-column frame of grouping keys and numeric values.

    Rows whose key is missing are dropped. Without a key column every row
    falls into a single "All" group.
    """
    keys = [category_key(row.get(key_column)) if key_column else "All" for row in rows]
    values = coerce_numeric(row.get(value_column) for row in rows) if value_column else pd.Series(
        [math.nan] * len(rows), dtype=float
    )
    frame = pd.DataFrame({"key": pd.Series(keys, dtype=object), "value": values.to_numpy()})
    return frame[frame["key"].notna()]


def sort_records(records: List[Dict[str, Any]], value_key: str, sort_order: str) -> List[Dict[str, Any]]:
    if sort_order == "none":
        return list(records)
    return sorted(records, key=lambda r: r[value_key], reverse=(sort_order != "asc"))


def categorical_values(frame: pd.DataFrame, aggregation: str, has_values: bool, default: str):
    """(key, aggregated value) per group in first-seen order, falling back to count per group."""
    for key, group in frame.groupby("key", sort=False)["value"]:
        count = int(len(group))
        numbers = group.dropna()
        if aggregation == "count" or not has_values or numbers.empty:
            yield key, count
        else:
            yield key, reduce_numbers(numbers, aggregation, default)


def aggregate_bar(rows: Rows, parameters: ChartParameters, chart_type: str = "bar") -> ChartPayload:
    require(parameters, chart_type, "x_axis")
    x_axis, y_axis = parameters.x_axis, parameters.y_axis
    aggregation = setting(parameters, chart_type, "aggregation", "count")
    sort_order = setting(parameters, chart_type, "sort_order", "desc")
    limit = setting(parameters, chart_type, "limit", 10)

    value_key = y_axis or "value"
    if value_key == x_axis:
        # The label column keeps its name; the measure moves aside
        value_key = f"{x_axis}_{aggregation}"
    frame = group_frame(rows, x_axis, y_axis)
    records = [
        {x_axis: key, value_key: value}
        for key, value in categorical_values(frame, aggregation, bool(y_axis), "mean")
    ]
    data = sort_records(records, value_key, sort_order)[:limit]

    if y_axis:
        title = f"{humanize(x_axis)} vs {humanize(y_axis)}"
        insight = (f"This bar chart shows the {aggregation} of {humanize(y_axis)} by "
                   f"{humanize(x_axis)}, with {len(data)} categories displayed.")
    else:
        title = f"{humanize(x_axis)} Distribution"
        insight = (f"This bar chart shows the distribution of {humanize(x_axis)} values, "
                   f"with {len(data)} categories displayed.")

    if data:
        unit = humanize(y_axis) if y_axis else "occurrences"
        interpretation = f'The highest value is "{data[0][x_axis]}" with {_fmt(data[0][value_key])} {unit}.'
        if len(data) > 1 and sort_order != "none":
            direction = "decreasing" if sort_order != "asc" else "increasing"
            interpretation += f" The data shows {direction} values across categories."
    else:
        interpretation = NO_DATA

    metadata = {
        "x_column": x_axis,
        "y_column": y_axis,
        "value_key": value_key,
        "total_points": len(data),
        "total_categories": len(records),
        "aggregation": aggregation,
        "sort_order": sort_order,
    }
    if parameters.stack_by:
        metadata["stack_column"] = parameters.stack_by

    return ChartPayload(
        chart_type=chart_type,
        data=data,
        metadata=metadata,
        title=title,
        insight=insight,
        interpretation=interpretation,
    )


def aggregate_pie(rows: Rows, parameters: ChartParameters, chart_type: str = "pie") -> ChartPayload:
    require(parameters, chart_type, "x_axis")
    x_axis, y_axis = parameters.x_axis, parameters.y_axis
    aggregation = setting(parameters, chart_type, "aggregation", "count")
    show_percentage = setting(parameters, chart_type, "percentage", True)
    sort_order = setting(parameters, chart_type, "sort_order", "desc")
    limit = setting(parameters, chart_type, "limit", 7)

    frame = group_frame(rows, x_axis, y_axis)
    slices = list(categorical_values(frame, aggregation, bool(y_axis), "sum"))
    total = sum(value for _, value in slices)

    records = [
        {
            "name": key,
            "value": value,
            "percentage": round(value / total * 100, 2) if total else 0.0,
        }
        for key, value in slices
    ]
    data = sort_records(records, "value", sort_order)[:limit]

    if y_axis:
        title = f"{humanize(x_axis)} vs {humanize(y_axis)}"
        insight = f"This {chart_type} chart shows the {aggregation} of {humanize(y_axis)} by {humanize(x_axis)} categories."
    else:
        title = f"{humanize(x_axis)} Composition"
        insight = f"This {chart_type} chart shows the proportional breakdown of {humanize(x_axis)} categories."

    if data:
        of_what = f" {humanize(y_axis)}" if y_axis else ""
        interpretation = (f'The largest segment is "{data[0]["name"]}" representing '
                          f'{_fmt(data[0]["percentage"])}% of the total{of_what}.')
        if len(data) > 1:
            interpretation += f" The distribution shows {len(data)} different categories."
    else:
        interpretation = NO_DATA

    metadata = {
        "x_column": x_axis,
        "y_column": y_axis,
        "total_points": len(data),
        "total_categories": len(records),
        "total_value": total,
        "show_percentage": show_percentage,
        "aggregation": aggregation,
    }
    if chart_type == "donut":
        metadata["inner_radius"] = setting(parameters, chart_type, "inner_radius", 0.4)

    return ChartPayload(
        chart_type=chart_type,
        data=data,
        metadata=metadata,
        title=title,
        insight=insight,
        interpretation=interpretation,
    )


def _line_sort_key(all_numeric: bool):
    if all_numeric:
        return lambda record_key: float(record_key)
    return lambda record_key: record_key


def aggregate_line(rows: Rows, parameters: ChartParameters, chart_type: str = "line") -> ChartPayload:
    require(parameters, chart_type, "x_axis", "y_axis")
    x_axis, y_axis = parameters.x_axis, parameters.y_axis
    aggregation = setting(parameters, chart_type, "aggregation", "mean")
    if aggregation not in ("mean", "sum"):
        aggregation = "mean"

    frame = group_frame(rows, x_axis, y_axis).dropna(subset=["value"])
    points = [
        (key, reduce_numbers(group, aggregation, "mean"))
        for key, group in frame.groupby("key", sort=False)["value"]
    ]

    keys = [key for key, _ in points]
    all_numeric = bool(keys) and bool(coerce_numeric(keys).notna().all())
    sort_key = _line_sort_key(all_numeric)
    data = [
        {x_axis: key, y_axis: value}
        for key, value in sorted(points, key=lambda p: sort_key(p[0]))
    ]

    return ChartPayload(
        chart_type=chart_type,
        data=data,
        metadata={
            "x_column": x_axis,
            "y_column": y_axis,
            "total_points": len(data),
            "aggregation": aggregation,
            "x_order": "numeric" if all_numeric else "lexicographic",
        },
        title=f"{humanize(y_axis)} Trends Over {humanize(x_axis)}",
        insight=(f"This {chart_type} chart displays the trend of {humanize(y_axis)} over "
                 f"{humanize(x_axis)} using {aggregation} aggregation."),
        interpretation=(
            f"The chart shows {len(data)} data points. Look for trends, patterns, seasonality, "
            "or sudden changes in the line progression."
            if data else NO_DATA
        ),
    )


def aggregate_scatter(rows: Rows, parameters: ChartParameters, chart_type: str = "scatter") -> ChartPayload:
    required = ("x_axis", "y_axis", "size_by") if chart_type == "bubble" else ("x_axis", "y_axis")
    require(parameters, chart_type, *required)
    x_axis, y_axis = parameters.x_axis, parameters.y_axis
    color_by, size_by = parameters.color_by, parameters.size_by

    xs = coerce_numeric(row.get(x_axis) for row in rows)
    ys = coerce_numeric(row.get(y_axis) for row in rows)
    sizes = coerce_numeric(row.get(size_by) for row in rows) if size_by else None

    data = []
    for i, row in enumerate(rows):
        x, y = xs.iat[i], ys.iat[i]
        if pd.isna(x) or pd.isna(y):
            continue
        point: Dict[str, Any] = {"x": float(x), "y": float(y)}
        if color_by:
            point["color"] = category_key(row.get(color_by))
        if sizes is not None:
            size = sizes.iat[i]
            if pd.isna(size):
                continue
            point["size"] = float(size)
        data.append(point)

    interpretation = NO_DATA
    if data:
        interpretation = f"The chart displays {len(data)} data points."
        if color_by:
            interpretation += f" Points are colored by {humanize(color_by)} for additional insight."
        if size_by:
            interpretation += f" Point size encodes {humanize(size_by)}."
        interpretation += " Look for patterns, clusters, or correlations in the data distribution."

    return ChartPayload(
        chart_type=chart_type,
        data=data,
        metadata={
            "x_column": x_axis,
            "y_column": y_axis,
            "color_column": color_by,
            "size_column": size_by,
            "total_points": len(data),
            "dropped_points": len(rows) - len(data),
        },
        title=f"{humanize(x_axis)} vs {humanize(y_axis)}",
        insight=f"This {chart_type} chart shows the relationship between {humanize(x_axis)} and {humanize(y_axis)}.",
        interpretation=interpretation,
    )


def bin_index(value: float, low: float, high: float, bins: int) -> int:
    """
    Bucket of `value` among `bins` equal-width buckets over [low, high].

    A zero-width range puts everything in the first bucket and the top edge
    clamps into the last. Ranges wider than the largest float are binned on
    halved values so the span stays finite.
    """
    if high == low:
        return 0
    width = (high - low) / bins
    if math.isfinite(width):
        offset = (value - low) / width
    else:
        offset = (value / 2 - low / 2) / (high / 2 - low / 2) * bins
    return min(max(int(math.floor(offset)), 0), bins - 1)


def bin_edge(low: float, high: float, i: int, bins: int) -> float:
    """Lower edge of bucket `i`; bucket `bins` gives the upper edge of the last one."""
    width = (high - low) / bins
    if math.isfinite(width):
        return low + i * width
    t = i / bins
    return low * (1 - t) + high * t


def aggregate_histogram(rows: Rows, parameters: ChartParameters, chart_type: str = "histogram") -> ChartPayload:
    require(parameters, chart_type, "x_axis")
    x_axis = parameters.x_axis
    bins = setting(parameters, chart_type, "bins", 20)
    if bins < 1:
        raise ChartValidationError(
            ErrorCodes.PARAMETER_OUT_OF_RANGE,
            f"bins must be a positive integer, got {bins}",
        )

    values = coerce_numeric(row.get(x_axis) for row in rows).dropna()
    if values.empty:
        raise ChartDataError(
            ErrorCodes.INSUFFICIENT_DATA,
            f'Column "{x_axis}" has no numeric values to bin',
        )

    low, high = float(values.min()), float(values.max())

    counts = [0] * bins
    for value in values:
        counts[bin_index(float(value), low, high, bins)] += 1

    data = []
    for i, count in enumerate(counts):
        start, end = bin_edge(low, high, i, bins), bin_edge(low, high, i + 1, bins)
        data.append({
            "bin": f"{start:.1f}-{end:.1f}",
            "count": count,
            "bin_start": start,
            "bin_end": end,
        })

    return ChartPayload(
        chart_type=chart_type,
        data=data,
        metadata={
            "x_column": x_axis,
            "total_points": len(data),
            "total_count": int(values.size),
            "bins": bins,
            "min": low,
            "max": high,
        },
        title=f"{humanize(x_axis)} Distribution",
        insight=f"This histogram shows the frequency distribution of {humanize(x_axis)} values across {bins} bins.",
        interpretation=(f"The data ranges from {low:.2f} to {high:.2f}. The histogram reveals the shape of the "
                        "distribution and can help identify patterns like normal distribution, skewness, or outliers."),
    )


def box_summary(values: Sequence[float], show_outliers: bool) -> Dict[str, Any]:
    """Nearest-rank quartiles with whiskers clipped to the 1.5 x IQR fence."""
    ordered = sorted(values)
    q1 = nearest_rank(ordered, 0.25)
    median = nearest_rank(ordered, 0.5)
    q3 = nearest_rank(ordered, 0.75)
    iqr = q3 - q1
    low = max(ordered[0], q1 - 1.5 * iqr)
    high = min(ordered[-1], q3 + 1.5 * iqr)
    return {
        "min": low,
        "q1": q1,
        "median": median,
        "q3": q3,
        "max": high,
        "count": len(ordered),
        "outliers": [v for v in ordered if v < low or v > high] if show_outliers else [],
    }


def aggregate_box(rows: Rows, parameters: ChartParameters, chart_type: str = "box") -> ChartPayload:
    require(parameters, chart_type, "y_axis")
    x_axis, y_axis = parameters.x_axis, parameters.y_axis
    show_outliers = setting(parameters, chart_type, "show_outliers", True)

    frame = group_frame(rows, x_axis, y_axis).dropna(subset=["value"])
    data = [
        {"category": key, **box_summary(group.tolist(), show_outliers)}
        for key, group in frame.groupby("key", sort=False)["value"]
    ]

    by = f" by {humanize(x_axis)}" if x_axis else ""
    return ChartPayload(
        chart_type=chart_type,
        data=data,
        metadata={
            "x_column": x_axis,
            "y_column": y_axis,
            "total_points": len(data),
            "show_outliers": show_outliers,
            "quartile_method": "nearest_rank",
        },
        title=f"{humanize(y_axis)}{by}",
        insight=(f"This box plot compares the distribution of {humanize(y_axis)} across different "
                 f"{humanize(x_axis)} categories." if x_axis
                 else f"This box plot summarizes the distribution of {humanize(y_axis)}."),
        interpretation=(
            f"The chart shows statistical summaries (median, quartiles, outliers) for {len(data)} "
            "categories. Compare the box positions and sizes to understand differences between groups."
            if data else NO_DATA
        ),
    )


def aggregate_heatmap(rows: Rows, parameters: ChartParameters, chart_type: str = "heatmap") -> ChartPayload:
    require(parameters, chart_type, "x_axis", "y_axis")
    x_axis, y_axis, value_column = parameters.x_axis, parameters.y_axis, parameters.value_column

    frame = pd.DataFrame({
        "x": pd.Series([category_key(row.get(x_axis)) for row in rows], dtype=object),
        "y": pd.Series([category_key(row.get(y_axis)) for row in rows], dtype=object),
    })
    if value_column:
        frame["v"] = coerce_numeric(row.get(value_column) for row in rows).fillna(0.0).to_numpy()
    frame = frame.dropna(subset=["x", "y"])

    x_categories = sorted(frame["x"].unique().tolist())
    y_categories = sorted(frame["y"].unique().tolist())

    if value_column:
        cells = frame.groupby(["x", "y"])["v"].sum()
    else:
        cells = frame.groupby(["x", "y"]).size()
    lookup = {key: _number(value) for key, value in cells.items()}

    data = [
        {
            "x": x,
            "y": y,
            "value": lookup.get((x, y), 0.0 if value_column else 0),
            "x_index": xi,
            "y_index": yi,
        }
        for xi, x in enumerate(x_categories)
        for yi, y in enumerate(y_categories)
    ]
    values = [cell["value"] for cell in data]
    min_value = min(values) if values else None
    max_value = max(values) if values else None

    if value_column:
        insight = (f"This heatmap shows the distribution of {humanize(value_column)} across "
                   f"{humanize(x_axis)} and {humanize(y_axis)} combinations.")
    else:
        insight = (f"This heatmap shows the frequency of occurrences for each combination of "
                   f"{humanize(x_axis)} and {humanize(y_axis)}.")

    if data:
        interpretation = (f"The heatmap displays {len(x_categories)} x {len(y_categories)} cells with values "
                          f"ranging from {_fmt(min_value)} to {_fmt(max_value)}. ")
        if max_value and max_value > 0:
            what = "significant values" if value_column else "frequent combinations"
            interpretation += f"The highest intensity areas indicate the most {what}."
        else:
            interpretation += "Most combinations show zero or minimal activity."
        interpretation += " Look for patterns, clusters, or gaps in the data distribution."
    else:
        interpretation = NO_DATA

    return ChartPayload(
        chart_type=chart_type,
        data=data,
        metadata={
            "x_column": x_axis,
            "y_column": y_axis,
            "value_column": value_column,
            "aggregation": "sum" if value_column else "count",
            "x_categories": x_categories,
            "y_categories": y_categories,
            "total_points": len(data),
            "min_value": min_value,
            "max_value": max_value,
        },
        title=f"{humanize(x_axis)} vs {humanize(y_axis)}",
        insight=insight,
        interpretation=interpretation,
    )


def radar_numeric_columns(rows: Rows, exclude: Optional[str]) -> List[str]:
    """Columns with at least one finite numeric cell, in first-seen order."""
    return [
        column for column in collect_columns(rows)
        if column != exclude and coerce_numeric(row.get(column) for row in rows).notna().any()
    ]


def _profile(rows: Rows, columns: Sequence[str], aggregation: str) -> Dict[str, Optional[float]]:
    profile: Dict[str, Optional[float]] = {}
    for column in columns:
        numbers = coerce_numeric(row.get(column) for row in rows).dropna()
        profile[column] = reduce_numbers(numbers, aggregation, "mean") if not numbers.empty else None
    return profile


def aggregate_radar(rows: Rows, parameters: ChartParameters, chart_type: str = "radar") -> ChartPayload:
    group_by = parameters.group_by
    aggregation = setting(parameters, chart_type, "aggregation", "mean")
    limit = setting(parameters, chart_type, "limit", 6)

    numeric_columns = radar_numeric_columns(rows, group_by)
    # The label moves aside rather than letting a numeric "group" column overwrite it
    label_key = "group"
    while label_key in numeric_columns:
        label_key = f"_{label_key}"

    if group_by:
        groups: Dict[str, List[Mapping[str, Any]]] = {}
        for row in rows:
            key = category_key(row.get(group_by))
            if key is not None:
                groups.setdefault(key, []).append(row)
        data = [
            {label_key: key, **_profile(members, numeric_columns, aggregation)}
            for key, members in list(groups.items())[:limit]
        ]
    else:
        data = [{label_key: "Overall", **_profile(rows, numeric_columns, aggregation)}]

    grouped = f" grouped by {humanize(group_by)}" if group_by else ""
    plural = "s" if len(data) > 1 else ""
    return ChartPayload(
        chart_type=chart_type,
        data=data,
        metadata={
            "group_column": group_by,
            "label_key": label_key,
            "numeric_columns": numeric_columns,
            "total_points": len(data),
            "aggregation": aggregation,
        },
        title="Multi-dimensional Profile Analysis",
        insight=f"This radar chart provides a multi-dimensional view of {len(numeric_columns)} numeric variables{grouped}.",
        interpretation=(
            f"The chart displays {len(data)} profile{plural} across {len(numeric_columns)} dimensions. "
            "Compare the shapes and sizes of the radar areas to identify patterns and differences between groups."
            if data else NO_DATA
        ),
    )


AGGREGATORS: Dict[str, Callable[..., ChartPayload]] = {
    "bar": aggregate_bar,
    "stacked_bar": aggregate_bar,
    "pie": aggregate_pie,
    "donut": aggregate_pie,
    "line": aggregate_line,
    "area": aggregate_line,
    "scatter": aggregate_scatter,
    "bubble": aggregate_scatter,
    "histogram": aggregate_histogram,
    "box": aggregate_box,
    "heatmap": aggregate_heatmap,
    "radar": aggregate_radar,
}


def aggregate(rows: Rows, chart_type: str, parameters: Optional[ChartParameters] = None) -> ChartPayload:
    """
    Build the chart payload for one chart type from raw rows.

    Raises ChartValidationError for chart types without an aggregation
    routine or missing required axes, and ChartDataError when the rows
    can't support the chart (no rows, unknown columns, nothing to bin).
    """
    parameters = parameters or ChartParameters()
    routine = AGGREGATORS.get(chart_type)
    if routine is None:
        supported = ", ".join(t for t in CHART_TYPES if t in AGGREGATORS)
        raise ChartValidationError(
            ErrorCodes.UNSUPPORTED_CHART_TYPE,
            f'No aggregation is available for chart type "{chart_type}"',
            f"Use one of: {supported}",
        )

    check_rows(rows, parameters, chart_type)
    payload = routine(rows, parameters, chart_type)
    logger.debug(f"Aggregated {len(rows)} rows into {len(payload.data)} {chart_type} records")
    return payload
