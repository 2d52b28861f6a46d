"""
Chart requirement registry.

One static table describes every supported chart type: which parameter
roles it needs, which type tag each role expects, and how much data it
takes to be meaningful. Synthesis, validation and scoring all read this
table; nothing else hard-codes per-chart requirements.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class ChartRequirement:
    chart_type: str
    category: str
    required_parameters: Tuple[str, ...]
    optional_parameters: Tuple[str, ...]
    data_types: Mapping[str, str]
    min_data_points: int
    max_categories: Optional[int] = None
    description: str = ""
    use_cases: Tuple[str, ...] = field(default_factory=tuple)


# Roles that hold a column name rather than a scalar setting
COLUMN_ROLES = (
    "x_axis", "y_axis", "z_axis", "color_by", "size_by", "shape_by",
    "opacity_by", "group_by", "stack_by", "value_column",
)

CHART_CATEGORIES = ("basic", "advanced", "statistical", "specialized", "multi_series")

TIME_SERIES_TYPES = ("line", "area", "multi_line", "stacked_area")
NORMALIZABLE_TYPES = ("stacked_bar", "stacked_area", "pie", "donut")


def _req(chart_type, category, required, optional, data_types, min_points,
         description, use_cases, max_categories=None) -> ChartRequirement:
    return ChartRequirement(
        chart_type=chart_type,
        category=category,
        required_parameters=tuple(required),
        optional_parameters=tuple(optional),
        data_types=MappingProxyType(dict(data_types)),
        min_data_points=min_points,
        max_categories=max_categories,
        description=description,
        use_cases=tuple(use_cases),
    )


_ENTRIES = [
    # Basic charts
    _req("bar", "basic", ["x_axis"],
         ["y_axis", "aggregation", "sort_by", "sort_order", "limit"],
         {"x_axis": "categorical", "y_axis": "numeric"}, 1,
         "Compare categorical data, show rankings, display frequencies",
         ["Comparing sales across regions", "Survey response counts", "Product performance rankings"],
         max_categories=50),
    _req("line", "basic", ["x_axis", "y_axis"],
         ["rolling_window", "time_unit", "cumulative"],
         {"x_axis": "datetime", "y_axis": "numeric"}, 2,
         "Show trends over time, display continuous data progression",
         ["Sales trends over months", "Stock price movements", "Website traffic patterns"]),
    _req("pie", "basic", ["x_axis"],
         ["limit", "percentage", "sort_order"],
         {"x_axis": "categorical"}, 2,
         "Show part-to-whole relationships, market share, category distribution",
         ["Market share analysis", "Budget allocation", "Survey response distribution"],
         max_categories=8),
    _req("scatter", "basic", ["x_axis", "y_axis"],
         ["color_by", "size_by", "opacity_by", "shape_by"],
         {"x_axis": "numeric", "y_axis": "numeric", "color_by": "categorical", "size_by": "numeric"}, 3,
         "Explore relationships between variables, identify correlations, detect outliers",
         ["Salary vs experience analysis", "Sales vs marketing spend correlation", "Performance metrics"]),
    _req("histogram", "basic", ["x_axis"],
         ["bins", "normalize", "cumulative"],
         {"x_axis": "numeric"}, 10,
         "Show distribution of continuous data, identify patterns, detect skewness",
         ["Age distribution analysis", "Salary range visualization", "Quality measurements"]),
    _req("box", "basic", ["y_axis"],
         ["x_axis", "show_outliers"],
         {"y_axis": "numeric", "x_axis": "categorical"}, 5,
         "Statistical summary, outlier detection, group comparisons",
         ["Salary distribution by department", "Performance scores across teams", "Quality metrics"]),

    # Advanced charts
    _req("area", "advanced", ["x_axis", "y_axis"],
         ["stack_by", "normalize", "cumulative"],
         {"x_axis": "datetime", "y_axis": "numeric"}, 3,
         "Show trends with magnitude emphasis, compare multiple series",
         ["Revenue growth over time", "Market share evolution", "Cumulative metrics"]),
    _req("donut", "advanced", ["x_axis"],
         ["limit", "percentage", "sort_order", "inner_radius"],
         {"x_axis": "categorical"}, 2,
         "Pie chart with center space for additional information",
         ["Modern dashboard KPIs", "Multiple concentric data series", "Clean aesthetic displays"],
         max_categories=8),
    _req("violin", "advanced", ["y_axis"],
         ["x_axis", "bandwidth"],
         {"y_axis": "numeric", "x_axis": "categorical"}, 10,
         "Combine box plot statistics with distribution shape",
         ["Detailed distribution analysis", "Comparing distribution shapes", "Statistical research"]),
    _req("heatmap", "advanced", ["x_axis", "y_axis"],
         ["color_by", "aggregation", "normalize", "threshold", "value_column"],
         {"x_axis": "categorical", "y_axis": "categorical"}, 4,
         "Show relationships in 2D data, correlation matrices, pattern detection",
         ["Correlation analysis", "Time-based patterns", "Performance matrices"]),
    _req("bubble", "advanced", ["x_axis", "y_axis", "size_by"],
         ["color_by", "opacity_by"],
         {"x_axis": "numeric", "y_axis": "numeric", "size_by": "numeric", "color_by": "categorical"}, 3,
         "3-dimensional scatter plot with size encoding",
         ["Market analysis", "Portfolio analysis", "Multi-dimensional comparisons"]),
    _req("radar", "advanced", [],
         ["group_by", "aggregation", "limit", "normalize"],
         {"group_by": "categorical"}, 3,
         "Multi-dimensional data comparison, profile analysis",
         ["Employee skill assessments", "Product feature comparisons", "Performance dashboards"]),
    _req("treemap", "advanced", ["x_axis", "y_axis"],
         ["color_by"],
         {"x_axis": "categorical", "y_axis": "numeric", "color_by": "categorical"}, 2,
         "Hierarchical data visualization, space-efficient category comparison",
         ["Budget allocation visualization", "File system analysis", "Market capitalization"]),
    _req("sunburst", "advanced", ["x_axis", "y_axis"],
         ["color_by"],
         {"x_axis": "categorical", "y_axis": "numeric", "color_by": "categorical"}, 2,
         "Hierarchical data in circular format, drill-down visualization",
         ["Organizational hierarchies", "File directory structures", "Multi-level categorization"]),

    # Statistical charts
    _req("density", "statistical", ["x_axis"],
         ["color_by", "bandwidth"],
         {"x_axis": "numeric", "color_by": "categorical"}, 10,
         "Smooth distribution curves, probability density estimation",
         ["Comparing distribution shapes", "Smooth alternative to histograms", "Statistical analysis"]),
    _req("ridgeline", "statistical", ["x_axis", "y_axis"],
         ["bandwidth"],
         {"x_axis": "numeric", "y_axis": "categorical"}, 20,
         "Multiple density plots stacked vertically",
         ["Comparing distributions across many groups", "Time series of distributions", "Joy plots"]),
    _req("candlestick", "statistical", ["x_axis", "y_axis"],
         ["time_unit"],
         {"x_axis": "datetime", "y_axis": "numeric"}, 5,
         "Financial data visualization showing open, high, low, close values",
         ["Stock price analysis", "Financial market data", "Trading analysis"]),
    _req("waterfall", "statistical", ["x_axis", "y_axis"],
         [],
         {"x_axis": "categorical", "y_axis": "numeric"}, 2,
         "Show cumulative effect of sequential changes",
         ["Financial analysis", "Budget variance analysis", "Process improvement tracking"]),

    # Specialized charts
    _req("gantt", "specialized", ["x_axis", "y_axis"],
         ["color_by"],
         {"x_axis": "datetime", "y_axis": "categorical", "color_by": "categorical"}, 1,
         "Project timeline visualization with task dependencies",
         ["Project management", "Timeline planning", "Resource scheduling"]),
    _req("sankey", "specialized", ["x_axis", "y_axis"],
         [],
         {"x_axis": "categorical", "y_axis": "categorical"}, 3,
         "Flow diagram showing quantities moving between nodes",
         ["Energy flow analysis", "Budget allocation flows", "Process flow visualization"]),
    _req("chord", "specialized", ["x_axis", "y_axis"],
         [],
         {"x_axis": "categorical", "y_axis": "categorical"}, 3,
         "Circular network diagram showing relationships between entities",
         ["Migration patterns", "Trade relationships", "Network analysis"]),
    _req("funnel", "specialized", ["x_axis", "y_axis"],
         ["aggregation"],
         {"x_axis": "categorical", "y_axis": "numeric"}, 2,
         "Show conversion rates through process stages",
         ["Sales pipeline analysis", "Website conversion tracking", "Customer journey mapping"]),

    # Multi-series charts
    _req("stacked_bar", "multi_series", ["x_axis", "y_axis", "stack_by"],
         ["aggregation", "normalize"],
         {"x_axis": "categorical", "y_axis": "numeric", "stack_by": "categorical"}, 2,
         "Show part-to-whole relationships across categories",
         ["Revenue by product and region", "Survey responses by demographics", "Budget breakdown"]),
    _req("grouped_bar", "multi_series", ["x_axis", "y_axis", "group_by"],
         ["aggregation"],
         {"x_axis": "categorical", "y_axis": "numeric", "group_by": "categorical"}, 2,
         "Compare multiple series side-by-side",
         ["Performance comparison across groups", "Before/after analysis", "Multi-metric comparison"]),
    _req("multi_line", "multi_series", ["x_axis", "y_axis", "group_by"],
         ["time_unit", "rolling_window"],
         {"x_axis": "datetime", "y_axis": "numeric", "group_by": "categorical"}, 4,
         "Compare trends across multiple series",
         ["Multiple product performance", "Regional trend comparison", "Multi-metric tracking"]),
    _req("stacked_area", "multi_series", ["x_axis", "y_axis", "stack_by"],
         ["normalize", "cumulative"],
         {"x_axis": "datetime", "y_axis": "numeric", "stack_by": "categorical"}, 3,
         "Show cumulative trends with category breakdown",
         ["Revenue composition over time", "Market share evolution", "Resource utilization"]),
]

CHART_REQUIREMENTS: Mapping[str, ChartRequirement] = MappingProxyType(
    {entry.chart_type: entry for entry in _ENTRIES}
)

CHART_TYPES: Tuple[str, ...] = tuple(CHART_REQUIREMENTS)

# Row counts a chart type reads best at; outside the table there is no preference
OPTIMAL_ROW_RANGES: Mapping[str, Tuple[int, int]] = MappingProxyType({
    "pie": (3, 8),
    "bar": (3, 50),
    "scatter": (10, 10000),
    "histogram": (30, 100000),
    "heatmap": (10, 1000),
    "bubble": (10, 1000),
})

DEFAULT_CHART_PARAMETERS: Mapping[str, Mapping[str, object]] = MappingProxyType({
    "bar": {"aggregation": "count", "sort_order": "desc", "limit": 10},
    "line": {"aggregation": "mean"},
    "pie": {"limit": 7, "percentage": True},
    "histogram": {"bins": 20},
    "box": {"show_outliers": True},
    "area": {"aggregation": "sum"},
    "donut": {"limit": 7, "inner_radius": 0.4},
    "radar": {"aggregation": "mean", "limit": 6},
    "stacked_bar": {"aggregation": "sum"},
    "grouped_bar": {"aggregation": "sum"},
    "treemap": {"aggregation": "sum"},
    "sunburst": {"aggregation": "sum"},
    "funnel": {"aggregation": "sum"},
    "stacked_area": {"aggregation": "sum"},
    "multi_line": {"aggregation": "mean"},
    "density": {"bandwidth": 1.0},
    "ridgeline": {"bandwidth": 1.0},
})

# Keyed by "<x type>_<y type or none>"
CHART_SELECTION_MATRIX: Mapping[str, Dict[str, object]] = MappingProxyType({
    "categorical_numeric": {
        "recommended_charts": ["bar", "box", "violin", "stacked_bar", "grouped_bar"],
        "analysis_goals": ["Compare categories", "Show distributions", "Identify outliers"],
    },
    "numeric_numeric": {
        "recommended_charts": ["scatter", "bubble", "heatmap"],
        "analysis_goals": ["Find relationships", "Identify correlations", "Detect patterns"],
    },
    "datetime_numeric": {
        "recommended_charts": ["line", "area", "candlestick", "multi_line", "stacked_area"],
        "analysis_goals": ["Show trends", "Track changes over time", "Identify seasonality"],
    },
    "categorical_none": {
        "recommended_charts": ["pie", "donut", "treemap", "sunburst"],
        "analysis_goals": ["Show composition", "Display proportions", "Hierarchical data"],
    },
    "numeric_none": {
        "recommended_charts": ["histogram", "density", "box"],
        "analysis_goals": ["Show distribution", "Identify patterns", "Statistical analysis"],
    },
    "categorical_categorical": {
        "recommended_charts": ["heatmap", "sankey", "chord"],
        "analysis_goals": ["Show relationships", "Flow analysis", "Network visualization"],
    },
})

GOAL_MAPPINGS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "compare": ("bar", "grouped_bar", "box", "violin"),
    "trend": ("line", "area", "multi_line", "stacked_area"),
    "distribution": ("histogram", "density", "box", "violin"),
    "relationship": ("scatter", "bubble", "heatmap"),
    "composition": ("pie", "donut", "treemap", "stacked_bar"),
})


def is_supported(chart_type: str) -> bool:
    return chart_type in CHART_REQUIREMENTS


def get_requirement(chart_type: str) -> Optional[ChartRequirement]:
    return CHART_REQUIREMENTS.get(chart_type)


def get_chart_category(chart_type: str) -> Optional[str]:
    requirement = CHART_REQUIREMENTS.get(chart_type)
    return requirement.category if requirement else None


def get_chart_info(chart_type: str) -> Dict[str, object]:
    """Description and typical use cases for a chart type."""
    requirement = CHART_REQUIREMENTS.get(chart_type)
    if requirement is None:
        return {
            "description": "Advanced data visualization",
            "use_cases": ["Data analysis", "Business intelligence", "Reporting"],
        }
    return {"description": requirement.description, "use_cases": list(requirement.use_cases)}


def is_compatible_type(actual: Optional[str], expected: Optional[str]) -> bool:
    """A role with no declared type, or typed 'any', accepts every column."""
    if expected is None or expected == "any":
        return actual is not None
    return actual == expected


def recommend_chart_types(x_type: str, y_type: Optional[str] = None) -> List[str]:
    """Chart types suited to an x/y type-tag pairing, with single-type fallbacks."""
    key = f"{x_type}_{y_type}" if y_type else f"{x_type}_none"
    entry = CHART_SELECTION_MATRIX.get(key)
    if entry is not None:
        return list(entry["recommended_charts"])

    if x_type == "categorical" and y_type == "numeric":
        return ["bar"]
    if x_type == "numeric" and y_type == "numeric":
        return ["scatter"]
    if x_type == "datetime" and y_type == "numeric":
        return ["line"]
    if x_type == "categorical" and not y_type:
        return ["pie"]
    if x_type == "numeric" and not y_type:
        return ["histogram"]
    return ["bar"]


def get_best_chart_for_goal(goal: str) -> List[str]:
    return list(GOAL_MAPPINGS.get(goal, ("bar",)))


def describe_registry() -> List[Dict[str, object]]:
    """JSON-ready listing of every chart type in declaration order."""
    return [
        {
            "chart_type": req.chart_type,
            "category": req.category,
            "required_parameters": list(req.required_parameters),
            "optional_parameters": list(req.optional_parameters),
            "data_types": dict(req.data_types),
            "min_data_points": req.min_data_points,
            "max_categories": req.max_categories,
            "description": req.description,
            "use_cases": list(req.use_cases),
            "default_parameters": dict(DEFAULT_CHART_PARAMETERS.get(req.chart_type, {})),
        }
        for req in CHART_REQUIREMENTS.values()
    ]
