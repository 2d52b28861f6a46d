import logging
from typing import Any, Dict, List, Mapping, Sequence
from fastapi import APIRouter, UploadFile, File, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from chartkit.services.parser import parse_file
from chartkit.services.profiler import profile_dataset
from chartkit.services.recommender import recommend
from chartkit.services.insights import summarize_dataset
from chartkit.services.validator import (
    validate_chart_request,
    check_category_limits,
    suggest_alternative_chart_types,
    generate_recovery_suggestions,
)
from chartkit.services.aggregator import aggregate
from chartkit.services.registry import describe_registry, CHART_CATEGORIES
from chartkit.core.schemas import (
    AnalysisResult,
    ChartPayload,
    ChartRequest,
    DatasetProfile,
    RecommendRequest,
    RecommendResponse,
    ValidationResult,
)
from chartkit.core.errors import ChartError, ErrorCodes, get_error_response, raise_for_violations
from chartkit.core.config import get_settings
from chartkit.core.sanitization import sanitize_filename, sanitize_for_logging
from chartkit.core.performance import track_performance

logger = logging.getLogger(__name__)

# Get centralized configuration
settings = get_settings()

router = APIRouter()

# Shared with main.py, which exposes it on app.state for slowapi
limiter = Limiter(key_func=get_remote_address)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, 'correlation_id', 'unknown')


def _http_error(request: Request, status_code: int, code: str, detail: str = None) -> HTTPException:
    error_info = get_error_response(code, detail)
    error_info['correlation_id'] = _correlation_id(request)
    return HTTPException(status_code=status_code, detail=error_info)


def _check_row_limit(request: Request, rows: Sequence[Mapping[str, Any]]) -> None:
    if len(rows) > settings.max_request_rows:
        raise _http_error(
            request, 413, ErrorCodes.FILE_TOO_LARGE,
            f"Request contains {len(rows):,} rows. Maximum allowed: {settings.max_request_rows:,} rows."
        )


@track_performance("analyze_dataset")
def analyze_rows(rows: Sequence[Mapping[str, Any]], columns: Sequence[str] = None, max_suggestions: int = None):
    """Profile rows and rank chart suggestions for them."""
    profile = profile_dataset(rows, columns)
    suggestions = recommend(profile, rows, max_suggestions or settings.max_suggestions)
    return profile, suggestions


@track_performance("generate_chart_data")
def build_chart_data(request: ChartRequest) -> ChartPayload:
    """
    Validate a chart request against the profile of its own rows, then aggregate.

    Raises:
        ChartValidationError, ChartDataError
    """
    profile = profile_dataset(request.rows, with_correlations=False)
    violations = validate_chart_request(
        request.chart_type, request.parameters, profile.column_types, profile.row_count
    )
    raise_for_violations(violations)

    for warning in check_category_limits(request.chart_type, request.parameters, profile):
        logger.info(f"Chart data warning for {request.chart_type}: {warning.message}")

    return aggregate(request.rows, request.chart_type, request.parameters)


def _summary_stats(profile: DatasetProfile) -> Dict[str, Dict[str, float]]:
    return {name: stats.rounded() for name, stats in profile.summary_stats.items()}


@router.get("/health")
async def health_check():
    return {"status": "ok"}


async def _check_file_size_streaming(file: UploadFile) -> int:
    """
    Check file size using streaming to avoid loading entire file into memory.
    Returns the file size in bytes.
    """
    file_size = 0
    chunk_size = 1024 * 1024  # 1MB chunks

    await file.seek(0)
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        file_size += len(chunk)
        # Early exit if file exceeds limit
        if file_size > settings.max_file_size_bytes:
            break

    # Reset file pointer for actual parsing
    await file.seek(0)
    return file_size


async def _process_upload(file: UploadFile, request: Request) -> AnalysisResult:
    """Process file upload (internal function without rate limiting)."""
    file_size = await _check_file_size_streaming(file)
    if file_size > settings.max_file_size_bytes:
        raise _http_error(
            request, 413, ErrorCodes.FILE_TOO_LARGE,
            f"Maximum size is {settings.max_file_size_mb}MB."
        )
    if file_size == 0:
        raise _http_error(request, 400, ErrorCodes.FILE_EMPTY)

    safe_filename = sanitize_filename(file.filename) if file.filename else 'unknown'
    logger.info(f"Processing file: {sanitize_for_logging(safe_filename)}, size: {file_size / 1024:.2f}KB")

    # 1. Parse
    table = await parse_file(file)

    # 2. Profile and recommend
    profile, suggestions = analyze_rows(table.rows, table.columns)

    # 3. Overview
    overview = summarize_dataset(profile)

    # 4. Echo back a bounded slice of the rows
    if table.row_count > settings.max_dataset_rows:
        logger.info(f"Dataset truncated from {table.row_count} to {settings.max_dataset_rows} rows for response")
    dataset = table.rows[:settings.max_dataset_rows]

    logger.info(
        f"Analyzed file: {sanitize_for_logging(safe_filename)}, {profile.row_count} rows, "
        f"{len(suggestions)} chart suggestions"
    )

    return AnalysisResult(
        filename=safe_filename,
        profile=profile,
        summary_stats=_summary_stats(profile),
        suggestions=suggestions,
        overview=overview,
        dataset=dataset,
    )


def _upload_rate_limit() -> str:
    """Per-IP upload limit, read at request time so RATE_LIMIT_PER_MINUTE reloads apply."""
    return f"{get_settings().rate_limit_per_minute}/minute"


@router.post("/upload", response_model=AnalysisResult)
@limiter.limit(_upload_rate_limit)
async def upload_file(request: Request, file: UploadFile = File(...)):
    """
    Upload a CSV or Excel file and get its profile, chart suggestions and overview.

    Rate limited per IP address (RATE_LIMIT_PER_MINUTE). Nothing is stored.
    """
    try:
        return await _process_upload(file, request)
    except HTTPException as e:
        # Parser errors don't know the request
        if isinstance(e.detail, dict):
            e.detail.setdefault('correlation_id', _correlation_id(request))
        raise
    except Exception as e:
        safe_filename = sanitize_for_logging(sanitize_filename(file.filename) if file.filename else 'unknown')
        logger.error(f"Unexpected error processing file {safe_filename}: {e}", exc_info=True)
        raise _http_error(request, 500, ErrorCodes.UNKNOWN_ERROR)


@router.post("/recommend", response_model=RecommendResponse)
async def recommend_charts(request: Request, body: RecommendRequest):
    """Profile the posted rows and return ranked chart suggestions."""
    _check_row_limit(request, body.rows)
    profile, suggestions = analyze_rows(body.rows, max_suggestions=body.max_suggestions)
    logger.info(f"Recommended {len(suggestions)} charts for {profile.row_count} rows")
    return RecommendResponse(profile=profile, suggestions=suggestions)


@router.post("/validate", response_model=ValidationResult)
async def validate_chart(request: Request, body: ChartRequest):
    """
    Check a chart type and parameters against the posted rows.

    Always answers 200; problems are reported as violations and warnings
    together with alternative chart types and recovery steps.
    """
    _check_row_limit(request, body.rows)
    profile = profile_dataset(body.rows, with_correlations=False)
    violations = validate_chart_request(body.chart_type, body.parameters, profile.column_types, profile.row_count)
    warnings = check_category_limits(body.chart_type, body.parameters, profile)

    return ValidationResult(
        chart_type=body.chart_type,
        is_valid=not violations,
        violations=violations,
        warnings=warnings,
        alternatives=suggest_alternative_chart_types(body.chart_type, violations) if violations else [],
        recovery_suggestions=generate_recovery_suggestions(violations),
    )


@router.post("/chart-data", response_model=ChartPayload)
async def chart_data(request: Request, body: ChartRequest):
    """Aggregate the posted rows into the payload for one chart."""
    _check_row_limit(request, body.rows)
    try:
        payload = build_chart_data(body)
    except ChartError as e:
        # main.chart_error_handler answers 400 or 422
        logger.info(f"Chart data rejected for {sanitize_for_logging(body.chart_type)}: {e.code}")
        raise
    return payload


@router.get("/charts")
async def list_charts() -> Dict[str, List[Any]]:
    """Every supported chart type with its requirements."""
    return {
        "categories": list(CHART_CATEGORIES),
        "charts": describe_registry(),
    }
