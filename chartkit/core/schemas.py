from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Any, Dict, Union


class ColumnProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type_tag: str  # 'numeric', 'categorical', 'datetime'
    unique_value_count: int
    missing_count: int
    numeric_kind: Optional[str] = None  # 'integer' or 'fractional' for numeric columns
    examples: List[Any] = []


class SummaryStatistic(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int
    mean: float
    std: float
    min: float
    p25: float
    p50: float
    p75: float
    max: float

    def rounded(self, digits: int = 2) -> Dict[str, float]:
        """Presentation form with values rounded to `digits` places."""
        data = self.model_dump()
        return {
            key: value if key == "count" else round(value, digits)
            for key, value in data.items()
        }


class DatasetProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    row_count: int
    col_count: int
    columns: List[ColumnProfile]
    summary_stats: Dict[str, SummaryStatistic] = {}
    correlations: Optional[Dict[str, Dict[str, float]]] = None

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def column_types(self) -> Dict[str, str]:
        return {c.name: c.type_tag for c in self.columns}

    def columns_of_type(self, type_tag: str) -> List[str]:
        return [c.name for c in self.columns if c.type_tag == type_tag]

    def get_column(self, name: str) -> Optional[ColumnProfile]:
        for column in self.columns:
            if column.name == name:
                return column
        return None


class ChartParameters(BaseModel):
    """Role bindings and scalar settings for one chart instantiation."""
    model_config = ConfigDict(extra="forbid")

    # Column roles
    x_axis: Optional[str] = None
    y_axis: Optional[str] = None
    z_axis: Optional[str] = None
    color_by: Optional[str] = None
    size_by: Optional[str] = None
    shape_by: Optional[str] = None
    opacity_by: Optional[str] = None
    group_by: Optional[str] = None
    stack_by: Optional[str] = None
    value_column: Optional[str] = None

    # Aggregation and sorting
    aggregation: Optional[str] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None

    # Filtering and limiting
    limit: Optional[int] = None
    threshold: Optional[float] = None

    # Formatting
    normalize: Optional[bool] = None
    percentage: Optional[bool] = None
    cumulative: Optional[bool] = None

    # Time series
    time_unit: Optional[str] = None
    rolling_window: Optional[int] = None

    # Statistical
    bins: Optional[int] = None
    bandwidth: Optional[float] = None
    show_outliers: Optional[bool] = None

    # Layout
    inner_radius: Optional[float] = None

    def get(self, role: str) -> Any:
        return getattr(self, role, None)

    def bound(self) -> Dict[str, Any]:
        """Only the roles and settings that carry a value."""
        return self.model_dump(exclude_none=True)


class Violation(BaseModel):
    parameter: str
    code: str
    message: str
    suggestion: str
    category: str = "validation"  # 'validation' or 'data'


class DataRequirements(BaseModel):
    min_rows: int
    required_columns: List[str]
    column_types: Dict[str, str]


class ChartSuggestion(BaseModel):
    chart_type: str
    parameters: ChartParameters
    score: float
    confidence: float
    reasoning: List[str]
    title: str
    insight: str
    priority: int
    category: str
    use_case: str
    data_requirements: DataRequirements


class ChartPayload(BaseModel):
    chart_type: str
    data: List[Dict[str, Any]]
    metadata: Dict[str, Any]
    title: str
    insight: Optional[str] = None
    interpretation: Optional[str] = None


class DatasetOverview(BaseModel):
    overview: str
    key_patterns: List[str]
    data_quality_notes: List[str]
    recommended_analysis_approach: str


class AnalysisResult(BaseModel):
    filename: str
    profile: DatasetProfile
    summary_stats: Dict[str, Dict[str, Union[int, float]]]
    suggestions: List[ChartSuggestion]
    overview: DatasetOverview
    dataset: List[Dict[str, Any]]


class RecommendRequest(BaseModel):
    rows: List[Dict[str, Any]]
    max_suggestions: Optional[int] = Field(default=None, ge=1, le=26)


class RecommendResponse(BaseModel):
    profile: DatasetProfile
    suggestions: List[ChartSuggestion]


class ChartRequest(BaseModel):
    rows: List[Dict[str, Any]]
    chart_type: str
    parameters: ChartParameters = ChartParameters()


class ValidationResult(BaseModel):
    chart_type: str
    is_valid: bool
    violations: List[Violation]
    warnings: List[Violation]
    alternatives: List[str]
    recovery_suggestions: List[str]
