import logging
import math
import re
from datetime import datetime
import pandas as pd
import numpy as np
from chartkit.core.schemas import ColumnProfile, DatasetProfile, SummaryStatistic
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

NUMERIC = "numeric"
CATEGORICAL = "categorical"
DATETIME = "datetime"

# A column is tagged datetime when strictly more than this share of its
# present values look like a calendar date.
DATETIME_THRESHOLD = 0.8

# (pattern, strptime format) pairs. Searched, not anchored, so
# "2024-01-15 10:30" still counts as a date.
DATE_PATTERNS = [
    (re.compile(r"\d{4}-\d{2}-\d{2}"), "%Y-%m-%d"),
    (re.compile(r"\d{2}/\d{2}/\d{4}"), "%m/%d/%Y"),
    (re.compile(r"\d{2}-\d{2}-\d{4}"), "%m-%d-%Y"),
]


def is_missing(value: Any) -> bool:
    """None, NaN, and empty or whitespace-only strings count as missing."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _as_cell(value: Any) -> Any:
    if is_missing(value):
        return None
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float, np.integer, np.floating)):
        return value
    return str(value).strip()


def coerce_numeric(values: Iterable[Any]) -> pd.Series:
    """
    Parse every cell as a number.

    Unparseable, missing and non-finite cells come back as NaN so callers
    can drop them with a single `dropna()`.
    """
    cells = pd.Series([_as_cell(v) for v in values], dtype=object)
    numbers = pd.to_numeric(cells, errors="coerce").astype(float)
    return numbers.where(np.isfinite(numbers))


def looks_like_date(value: Any) -> bool:
    text = str(value)
    for pattern, fmt in DATE_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        try:
            datetime.strptime(match.group(0), fmt)
        except ValueError:
            continue
        return True
    return False


def infer_type_tag(values: Sequence[Any]) -> str:
    """
    Classify one column's raw cells as numeric, datetime or categorical.

    Missing cells are ignored. Every present cell has to parse as a finite
    number for the column to be numeric. Otherwise more than 80% of the
    present cells have to look like a valid calendar date for it to be
    datetime. An all-missing column is categorical.
    """
    present = [v for v in values if not is_missing(v)]
    if not present:
        return CATEGORICAL

    numbers = coerce_numeric(present)
    if numbers.notna().all():
        return NUMERIC

    date_like = sum(1 for v in present if looks_like_date(v))
    if date_like > len(present) * DATETIME_THRESHOLD:
        return DATETIME

    return CATEGORICAL


def infer_numeric_kind(values: Sequence[Any]) -> Optional[str]:
    """'integer' when every parsed value is whole, else 'fractional'."""
    numbers = coerce_numeric(values).dropna()
    if numbers.empty:
        return None
    if bool((numbers == np.floor(numbers)).all()):
        return "integer"
    return "fractional"


def nearest_rank(sorted_values: Sequence[float], p: float) -> float:
    """Percentile by indexing at floor(count * p), without interpolation."""
    index = min(int(math.floor(len(sorted_values) * p)), len(sorted_values) - 1)
    return sorted_values[index]


def mean_and_std(ordered: Sequence[float]) -> Tuple[float, float]:
    """
    Mean and population standard deviation of sorted finite values.

    Both stay finite for values near the float limits: the mean falls back
    to summing pre-divided terms when the plain sum overflows, and the
    deviations are taken on values scaled by the largest magnitude.
    """
    n = len(ordered)
    try:
        total = math.fsum(ordered)
    except OverflowError:
        total = math.inf
    mean = total / n if math.isfinite(total) else math.fsum(v / n for v in ordered)

    scale = max(abs(ordered[0]), abs(ordered[-1]))
    if scale == 0:
        return mean, 0.0
    variance = math.fsum((v / scale - mean / scale) ** 2 for v in ordered) / n
    return mean, math.sqrt(variance) * scale


def compute_summary_statistics(values: Iterable[Any]) -> Optional[SummaryStatistic]:
    """
    Descriptive statistics over the finite numeric cells of a column.

    The standard deviation is the population one (divides by count) and
    the quartiles use the nearest-rank rule, so p50 of [1..10] is 6, not 5.5.
    Returns None when no finite value remains.
    """
    numbers = coerce_numeric(values).dropna()
    if numbers.empty:
        return None

    ordered = sorted(float(v) for v in numbers)
    mean, std = mean_and_std(ordered)
    return SummaryStatistic(
        count=len(ordered),
        mean=mean,
        std=std,
        min=ordered[0],
        p25=nearest_rank(ordered, 0.25),
        p50=nearest_rank(ordered, 0.5),
        p75=nearest_rank(ordered, 0.75),
        max=ordered[-1],
    )


def collect_columns(rows: Sequence[Mapping[str, Any]]) -> List[str]:
    """Column names in first-seen order across all rows."""
    seen: Dict[str, None] = {}
    for row in rows:
        for key in row.keys():
            seen.setdefault(key, None)
    return list(seen)


def compute_correlations(
    rows: Sequence[Mapping[str, Any]],
    numeric_columns: Sequence[str],
) -> Optional[Dict[str, Dict[str, float]]]:
    """Pearson correlation between each pair of numeric columns, or None with fewer than two."""
    if len(numeric_columns) < 2 or not rows:
        return None

    frame = pd.DataFrame({
        col: coerce_numeric(row.get(col) for row in rows)
        for col in numeric_columns
    })
    matrix = frame.corr(method="pearson")

    correlations: Dict[str, Dict[str, float]] = {}
    for col in numeric_columns:
        correlations[col] = {
            other: float(r)
            for other, r in matrix[col].items()
            if pd.notna(r)
        }
    return correlations


def profile_column(name: str, values: Sequence[Any]) -> ColumnProfile:
    type_tag = infer_type_tag(values)
    present = [v for v in values if not is_missing(v)]
    distinct = {_as_cell(v) for v in present}

    return ColumnProfile(
        name=name,
        type_tag=type_tag,
        unique_value_count=len(distinct),
        missing_count=len(values) - len(present),
        numeric_kind=infer_numeric_kind(present) if type_tag == NUMERIC else None,
        examples=present[:3],
    )


def profile_dataset(
    rows: Sequence[Mapping[str, Any]],
    columns: Optional[Sequence[str]] = None,
    with_correlations: bool = True,
) -> DatasetProfile:
    """
    Profile raw rows into column type tags, summary statistics and correlations.

    The profile holds no row data. `columns` fixes the column order; by
    default it is the first-seen order of keys across rows.
    """
    names = list(columns) if columns is not None else collect_columns(rows)

    profiles = []
    summary_stats: Dict[str, SummaryStatistic] = {}
    for name in names:
        values = [row.get(name) for row in rows]
        profile = profile_column(name, values)
        profiles.append(profile)

        if profile.type_tag == NUMERIC:
            stats = compute_summary_statistics(values)
            if stats is not None:
                summary_stats[name] = stats

    numeric_columns = [p.name for p in profiles if p.type_tag == NUMERIC]
    correlations = compute_correlations(rows, numeric_columns) if with_correlations else None

    logger.debug(f"Profiled {len(rows)} rows x {len(names)} columns ({len(numeric_columns)} numeric)")

    return DatasetProfile(
        row_count=len(rows),
        col_count=len(names),
        columns=profiles,
        summary_stats=summary_stats,
        correlations=correlations,
    )
