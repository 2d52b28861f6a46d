"""
Natural language overview of a profiled dataset.

Everything here is derived from the profile alone; no rows are re-read.
"""
import logging
from typing import List
from chartkit.core.schemas import DatasetProfile, DatasetOverview
from chartkit.services.profiler import NUMERIC, CATEGORICAL, DATETIME

logger = logging.getLogger(__name__)

SMALL_DATASET_ROWS = 50
LARGE_DATASET_ROWS = 1000
MISSING_NOTE_PERCENT = 5.0
HIGH_VARIABILITY_CV = 1.0

BUSINESS_KEYWORDS = ("sales", "revenue")
TEMPORAL_KEYWORDS = ("date", "time")


def describe_overview(profile: DatasetProfile) -> str:
    numeric = profile.columns_of_type(NUMERIC)
    categorical = profile.columns_of_type(CATEGORICAL)
    datetime_cols = profile.columns_of_type(DATETIME)

    overview = f"Your dataset contains {profile.row_count} records with {profile.col_count} columns. "
    if numeric:
        overview += (
            f"There are {len(numeric)} numeric columns ideal for statistical analysis "
            f"and trend visualization. "
        )
    if categorical:
        overview += (
            f"{len(categorical)} categorical columns provide excellent grouping "
            f"and comparison opportunities. "
        )
    if datetime_cols:
        overview += f"Time-based analysis is possible with {len(datetime_cols)} datetime columns. "
    return overview


def detect_key_patterns(profile: DatasetProfile) -> List[str]:
    numeric = profile.columns_of_type(NUMERIC)
    categorical = profile.columns_of_type(CATEGORICAL)
    datetime_cols = profile.columns_of_type(DATETIME)
    patterns = []

    if len(numeric) >= 2:
        patterns.append(
            f"Multiple numeric variables ({', '.join(numeric)}) suggest correlation analysis opportunities"
        )
    if categorical and numeric:
        patterns.append(
            "Combination of categorical and numeric data enables comparative analysis across groups"
        )
    if datetime_cols:
        patterns.append(
            "Time-series data detected - trend analysis and temporal patterns can be explored"
        )

    # Name-based hints
    lowered = [name.lower() for name in numeric + categorical + datetime_cols]
    if any(keyword in name for name in lowered for keyword in BUSINESS_KEYWORDS):
        patterns.append("Sales/revenue data detected - business performance analysis recommended")
    if any(keyword in name for name in lowered for keyword in TEMPORAL_KEYWORDS):
        patterns.append("Temporal data structure suitable for time-series analysis and forecasting")

    # Strongest correlation, when computed
    if profile.correlations:
        best = None
        for left, row in profile.correlations.items():
            for right, value in row.items():
                if left >= right:
                    continue
                if best is None or abs(value) > abs(best[2]):
                    best = (left, right, value)
        if best is not None and abs(best[2]) >= 0.5:
            direction = "positive" if best[2] > 0 else "negative"
            patterns.append(
                f"Strong {direction} correlation between {best[0]} and {best[1]} (r = {best[2]:.2f})"
            )

    return patterns


def collect_quality_notes(profile: DatasetProfile) -> List[str]:
    notes = []
    numeric = profile.columns_of_type(NUMERIC)

    if profile.row_count < SMALL_DATASET_ROWS:
        notes.append(
            f"Small dataset ({profile.row_count} rows) - individual data points will be clearly visible in charts"
        )
    elif profile.row_count > LARGE_DATASET_ROWS:
        notes.append(
            f"Large dataset ({profile.row_count} rows) - aggregation recommended for cleaner visualizations"
        )

    if not numeric:
        notes.append("No numeric columns detected - analysis limited to categorical distributions")

    total_cells = profile.row_count * profile.col_count
    total_missing = sum(c.missing_count for c in profile.columns)
    if total_cells and total_missing:
        missing_percent = total_missing / total_cells * 100
        if missing_percent > MISSING_NOTE_PERCENT:
            notes.append(
                f"Dataset contains {total_missing} missing values ({missing_percent:.1f}%) - consider data cleaning"
            )

    for name in numeric:
        stats = profile.summary_stats.get(name)
        if stats is None or stats.count <= 10 or stats.mean == 0:
            continue
        cv = stats.std / abs(stats.mean)
        if cv > HIGH_VARIABILITY_CV:
            notes.append(f"{name} shows high variability (coefficient of variation: {cv:.2f})")
            break

    return notes


def recommend_approach(profile: DatasetProfile) -> str:
    approach = (
        "Start with overview charts to understand data distribution, "
        "then drill down into specific relationships. "
    )
    if profile.columns_of_type(DATETIME):
        approach += "Begin with time-series analysis to identify trends. "
    if len(profile.columns_of_type(NUMERIC)) >= 2:
        approach += "Explore correlations between numeric variables. "
    if profile.columns_of_type(CATEGORICAL):
        approach += "Use categorical groupings to segment your analysis."
    return approach


def summarize_dataset(profile: DatasetProfile) -> DatasetOverview:
    """
    Build the dataset overview shown next to chart suggestions.

    Returns:
        DatasetOverview with overview text, key patterns, data quality
        notes and a recommended analysis approach
    """
    overview = DatasetOverview(
        overview=describe_overview(profile),
        key_patterns=detect_key_patterns(profile),
        data_quality_notes=collect_quality_notes(profile),
        recommended_analysis_approach=recommend_approach(profile),
    )
    logger.debug(
        f"Summarized dataset: {len(overview.key_patterns)} patterns, "
        f"{len(overview.data_quality_notes)} quality notes"
    )
    return overview
