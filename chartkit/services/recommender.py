"""
Chart recommendation engine.

Every chart type in the registry gets default parameters, is validated
against the dataset profile, and if valid is scored on five factors:
data compatibility, data size, data quality, complexity fit and insight
potential. Each factor adds to both the score and the confidence.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence
from chartkit.core.schemas import (
    ChartParameters,
    ChartSuggestion,
    DataRequirements,
    DatasetProfile,
)
from chartkit.services.parameters import synthesize_parameters
from chartkit.services.profiler import compute_correlations
from chartkit.services.registry import (
    CHART_REQUIREMENTS,
    OPTIMAL_ROW_RANGES,
    get_chart_info,
    is_compatible_type,
)
from chartkit.services.validator import validate_chart_request

logger = logging.getLogger(__name__)

DEFAULT_MAX_SUGGESTIONS = 8

FALLBACK_INSIGHT = "This visualization will help reveal patterns in your data."


@dataclass
class FactorScore:
    score: float = 0
    confidence: float = 0
    reasoning: List[str] = field(default_factory=list)

    def add(self, score: float, confidence: float = 0, reason: Optional[str] = None) -> None:
        self.score += score
        self.confidence += confidence
        if reason:
            self.reasoning.append(reason)


@dataclass
class ChartScore:
    chart_type: str
    parameters: ChartParameters
    category: str
    score: float = 0
    confidence: float = 0
    reasoning: List[str] = field(default_factory=list)

    @property
    def ranking_key(self) -> float:
        return self.score * (self.confidence / 100)


def humanize(name: Optional[str]) -> Optional[str]:
    return name.replace("_", " ") if name else name


class ChartRecommendationEngine:
    """Scores every registered chart type against one dataset profile."""

    def __init__(self, profile: DatasetProfile):
        self.profile = profile
        self.column_types = profile.column_types
        self.columns = profile.column_names
        self.numeric_columns = profile.columns_of_type("numeric")
        self.categorical_columns = profile.columns_of_type("categorical")
        self.datetime_columns = profile.columns_of_type("datetime")
        self.unique_counts = {c.name: c.unique_value_count for c in profile.columns}
        self.missing_counts = {c.name: c.missing_count for c in profile.columns}

    def generate_recommendations(self, max_suggestions: int = DEFAULT_MAX_SUGGESTIONS) -> List[ChartSuggestion]:
        scores = []
        for chart_type in CHART_REQUIREMENTS:
            scored = self.score_chart_type(chart_type)
            if scored is not None and scored.score > 0:
                scores.append(scored)

        # sorted() is stable, so ties keep registry declaration order
        ranked = sorted(scores, key=lambda s: s.ranking_key, reverse=True)

        logger.info(
            f"Scored {len(ranked)} viable chart types out of {len(CHART_REQUIREMENTS)}, "
            f"returning top {min(max_suggestions, len(ranked))}"
        )
        return [
            self._to_suggestion(scored, priority)
            for priority, scored in enumerate(ranked[:max_suggestions], start=1)
        ]

    def score_chart_type(self, chart_type: str) -> Optional[ChartScore]:
        """Score one chart type, or None when its default parameters fail validation."""
        parameters = synthesize_parameters(chart_type, self.columns, self.column_types)
        violations = validate_chart_request(
            chart_type, parameters, self.column_types, self.profile.row_count
        )
        if violations:
            logger.debug(f"Dropping {chart_type}: {[v.code for v in violations]}")
            return None

        result = ChartScore(
            chart_type=chart_type,
            parameters=parameters,
            category=CHART_REQUIREMENTS[chart_type].category,
        )
        factors = (
            self.score_data_compatibility(chart_type, parameters),
            self.score_data_size(chart_type),
            self.score_data_quality(chart_type, parameters),
            self.score_complexity(chart_type),
            self.score_insight_potential(chart_type, parameters),
        )
        for factor in factors:
            result.score += factor.score
            result.confidence += factor.confidence
            result.reasoning.extend(factor.reasoning)

        result.confidence = min(result.confidence, 100)
        return result

    def score_data_compatibility(self, chart_type: str, parameters: ChartParameters) -> FactorScore:
        factor = FactorScore()
        requirement = CHART_REQUIREMENTS[chart_type]

        satisfied = 0
        for role in requirement.required_parameters:
            if parameters.get(role):
                satisfied += 1
                factor.add(5, 10)

        missing = len(requirement.required_parameters) - satisfied
        if missing == 0:
            factor.add(10, 20, "All required parameters can be satisfied with available data")
        else:
            factor.reasoning.append(f"Missing {missing} required parameters")

        for role, label in (("x_axis", "X-axis"), ("y_axis", "Y-axis")):
            column = parameters.get(role)
            expected = requirement.data_types.get(role)
            if column and expected:
                actual = self.column_types.get(column)
                if is_compatible_type(actual, expected):
                    factor.add(5, 15, f"{label} data type ({actual}) is compatible")

        return factor

    def score_data_size(self, chart_type: str) -> FactorScore:
        factor = FactorScore()
        requirement = CHART_REQUIREMENTS[chart_type]
        row_count = self.profile.row_count

        if row_count >= requirement.min_data_points:
            factor.add(10, 20, f"Sufficient data points ({row_count} >= {requirement.min_data_points})")
        else:
            factor.add(-10, 0, f"Insufficient data points ({row_count} < {requirement.min_data_points})")

        optimal = OPTIMAL_ROW_RANGES.get(chart_type)
        if optimal:
            low, high = optimal
            if low <= row_count <= high:
                factor.add(10, 15, f"Data size is in optimal range for {chart_type} charts")
            elif row_count > high:
                factor.add(5, 0, f"Large dataset - consider aggregation for {chart_type} charts")

        return factor

    def _missing_ratio(self, column: str) -> float:
        row_count = self.profile.row_count
        if row_count == 0:
            return 0.0
        stats = self.profile.summary_stats.get(column)
        if stats is not None:
            return (row_count - stats.count) / row_count
        return self.missing_counts.get(column, 0) / row_count

    def score_data_quality(self, chart_type: str, parameters: ChartParameters) -> FactorScore:
        factor = FactorScore()

        key_columns = [
            parameters.get(role)
            for role in ("x_axis", "y_axis", "color_by", "size_by")
            if parameters.get(role)
        ]
        for column in key_columns:
            ratio = self._missing_ratio(column)
            if ratio < 0.05:
                factor.add(3, 5)
            elif ratio < 0.2:
                factor.add(1, 0, f"Column {column} has {ratio * 100:.1f}% missing values")
            else:
                factor.add(-2, 0, f"High missing values in {column} ({ratio * 100:.1f}%)")

        x_axis = parameters.x_axis
        if x_axis and x_axis in self.categorical_columns:
            unique_count = self.unique_counts.get(x_axis, 0)
            max_categories = CHART_REQUIREMENTS[chart_type].max_categories
            if max_categories and unique_count > max_categories:
                factor.add(-5, 0, f"Too many categories in {x_axis} ({unique_count} > {max_categories})")
            elif 2 <= unique_count <= (max_categories or 20):
                factor.add(5, 10, f"Good number of categories in {x_axis} ({unique_count})")

        return factor

    def score_complexity(self, chart_type: str) -> FactorScore:
        factor = FactorScore()
        category = CHART_REQUIREMENTS[chart_type].category
        num_columns = len(self.columns)
        num_numeric = len(self.numeric_columns)
        num_categorical = len(self.categorical_columns)

        if category == "basic":
            factor.add(10, 15, "Basic chart type - good for initial exploration")
            if num_columns <= 5:
                factor.add(5, 0, "Simple dataset suits basic charts well")
        elif category == "advanced":
            if num_columns >= 3 and (num_numeric >= 2 or num_categorical >= 2):
                factor.add(8, 10, "Dataset complexity supports advanced visualizations")
            else:
                factor.add(3, 0, "Advanced chart may be overkill for simple dataset")
        elif category == "statistical":
            if num_numeric >= 1 and self.profile.row_count >= 30:
                factor.add(8, 12, "Sufficient data for statistical analysis")
            else:
                factor.add(2, 0, "Limited data for statistical charts")
        elif category == "specialized":
            if num_columns >= 4:
                factor.add(6, 8, "Complex dataset may benefit from specialized visualization")
            else:
                factor.add(1, 0, "Specialized chart may not add value to simple dataset")

        return factor

    def score_insight_potential(self, chart_type: str, parameters: ChartParameters) -> FactorScore:
        factor = FactorScore()
        x_axis, y_axis = parameters.x_axis, parameters.y_axis

        if x_axis and y_axis:
            correlation = (self.profile.correlations or {}).get(x_axis, {}).get(y_axis)
            if correlation is not None:
                strength = abs(correlation)
                if strength > 0.7:
                    factor.add(10, 15, f"Strong correlation detected ({correlation:.2f})")
                elif strength > 0.3:
                    factor.add(5, 10, f"Moderate correlation detected ({correlation:.2f})")

            if (chart_type == "scatter"
                    and x_axis in self.numeric_columns
                    and y_axis in self.numeric_columns):
                factor.add(5, 0, "Scatter plot ideal for exploring numeric relationships")

        if x_axis and x_axis in self.datetime_columns:
            if chart_type in ("line", "area", "multi_line", "stacked_area"):
                factor.add(8, 12, "Time series data detected - temporal analysis valuable")

        if x_axis and x_axis in self.categorical_columns:
            unique_count = self.unique_counts.get(x_axis, 0)
            if 3 <= unique_count <= 12 and chart_type in ("bar", "pie", "donut"):
                factor.add(6, 10, f"Good categorical distribution for comparison ({unique_count} categories)")

        if parameters.color_by or parameters.size_by:
            if chart_type in ("bubble", "scatter", "heatmap"):
                factor.add(5, 8, "Multi-dimensional encoding adds analytical depth")

        return factor

    def generate_title(self, chart_type: str, parameters: ChartParameters) -> str:
        x = humanize(parameters.x_axis) or "data"
        y = humanize(parameters.y_axis) or "values"
        size = humanize(parameters.size_by) or "size"
        group = humanize(parameters.group_by) or "group"

        templates = {
            "bar": f"{y} by {x}",
            "line": f"{y} trend over {x}",
            "pie": f"{x} distribution",
            "scatter": f"{x} vs {y} relationship",
            "histogram": f"{x} distribution",
            "box": f"{y} distribution by {x}",
            "area": f"{y} growth over {x}",
            "donut": f"{x} composition",
            "violin": f"{y} distribution patterns by {x}",
            "heatmap": f"{x} vs {y} correlation matrix",
            "bubble": f"{x}, {y} and {size} analysis",
            "radar": "Multi-dimensional profile analysis",
            "treemap": f"{x} hierarchy by {y}",
            "sunburst": f"{x} hierarchical breakdown",
            "density": f"{x} probability density",
            "ridgeline": f"{x} distribution by {y}",
            "candlestick": f"{y} price action over {x}",
            "waterfall": f"{y} cumulative changes by {x}",
            "gantt": f"{y} timeline over {x}",
            "sankey": f"{x} to {y} flow diagram",
            "chord": f"{x} to {y} relationships",
            "funnel": f"{x} conversion funnel",
            "stacked_bar": f"{y} composition by {x}",
            "grouped_bar": f"{y} comparison across {x}",
            "multi_line": f"{y} trends by {group}",
            "stacked_area": f"{y} composition over {x}",
        }
        return templates.get(chart_type, f"{chart_type} analysis")

    def generate_insight(self, chart_type: str, reasoning: Sequence[str]) -> str:
        description = get_chart_info(chart_type)["description"]
        main_reason = next(
            (r for r in reasoning if "correlation" in r or "trend" in r or "distribution" in r),
            reasoning[0] if reasoning else None,
        )
        return f"{description}. {main_reason or FALLBACK_INSIGHT}"

    def _bound_columns(self, parameters: ChartParameters) -> List[str]:
        return [
            parameters.get(role)
            for role in ("x_axis", "y_axis", "color_by", "size_by")
            if parameters.get(role)
        ]

    def _to_suggestion(self, scored: ChartScore, priority: int) -> ChartSuggestion:
        requirement = CHART_REQUIREMENTS[scored.chart_type]
        bound = self._bound_columns(scored.parameters)
        return ChartSuggestion(
            chart_type=scored.chart_type,
            parameters=scored.parameters,
            score=scored.score,
            confidence=scored.confidence,
            reasoning=list(scored.reasoning),
            title=self.generate_title(scored.chart_type, scored.parameters),
            insight=self.generate_insight(scored.chart_type, scored.reasoning),
            priority=priority,
            category=scored.category,
            use_case=requirement.description,
            data_requirements=DataRequirements(
                min_rows=requirement.min_data_points,
                required_columns=bound,
                column_types={c: self.column_types[c] for c in bound},
            ),
        )


def recommend(
    profile: DatasetProfile,
    rows: Optional[Sequence[Mapping[str, Any]]] = None,
    max_suggestions: int = DEFAULT_MAX_SUGGESTIONS,
) -> List[ChartSuggestion]:
    """
    Rank chart types for a profiled dataset.

    When the profile carries no correlations and raw rows are given, the
    correlations between numeric columns are computed from the rows first.
    Chart types whose default parameters fail validation never appear.
    """
    if profile.correlations is None and rows:
        correlations = compute_correlations(rows, profile.columns_of_type("numeric"))
        if correlations is not None:
            profile = profile.model_copy(update={"correlations": correlations})

    engine = ChartRecommendationEngine(profile)
    return engine.generate_recommendations(max_suggestions)
