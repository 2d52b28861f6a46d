"""
Error codes, user-facing messages and chart error types.
"""
from typing import Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from chartkit.core.schemas import Violation


# Error codes
class ErrorCodes:
    # Request-level
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    FILE_EMPTY = "FILE_EMPTY"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    PARSE_ERROR = "PARSE_ERROR"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    TIMEOUT = "TIMEOUT"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    # Parameter validation
    MISSING_REQUIRED_PARAMETER = "MISSING_REQUIRED_PARAMETER"
    INVALID_PARAMETER_TYPE = "INVALID_PARAMETER_TYPE"
    PARAMETER_OUT_OF_RANGE = "PARAMETER_OUT_OF_RANGE"
    INCOMPATIBLE_PARAMETERS = "INCOMPATIBLE_PARAMETERS"
    UNSUPPORTED_CHART_TYPE = "UNSUPPORTED_CHART_TYPE"

    # Data validation
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    INVALID_DATA_TYPE = "INVALID_DATA_TYPE"
    TOO_MANY_CATEGORIES = "TOO_MANY_CATEGORIES"
    MISSING_COLUMN = "MISSING_COLUMN"


VALIDATION_CODES = frozenset({
    ErrorCodes.MISSING_REQUIRED_PARAMETER,
    ErrorCodes.INVALID_PARAMETER_TYPE,
    ErrorCodes.PARAMETER_OUT_OF_RANGE,
    ErrorCodes.INCOMPATIBLE_PARAMETERS,
    ErrorCodes.UNSUPPORTED_CHART_TYPE,
})

DATA_CODES = frozenset({
    ErrorCodes.INSUFFICIENT_DATA,
    ErrorCodes.INVALID_DATA_TYPE,
    ErrorCodes.TOO_MANY_CATEGORIES,
    ErrorCodes.MISSING_COLUMN,
})


# User-friendly error messages
ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    ErrorCodes.FILE_TOO_LARGE: {
        "message": "Your file is too large",
        "detail": "The file exceeds the upload size limit.",
        "suggestion": "Split the file into smaller parts, or export only the columns you need."
    },
    ErrorCodes.FILE_EMPTY: {
        "message": "Your file looks empty",
        "detail": "We couldn't find any data in the uploaded file.",
        "suggestion": "Make sure the file has a header row and at least one data row, then upload it again."
    },
    ErrorCodes.INVALID_FILE_TYPE: {
        "message": "We need a CSV or Excel file",
        "detail": "Only .csv, .xlsx and .xls files can be analyzed.",
        "suggestion": "Export your sheet as CSV or Excel and try again."
    },
    ErrorCodes.PARSE_ERROR: {
        "message": "We're having trouble reading your file",
        "detail": "The file format looks corrupted or unexpected.",
        "suggestion": "Save the file again as a fresh CSV or Excel file and check the column names."
    },
    ErrorCodes.PROCESSING_ERROR: {
        "message": "Something went wrong while processing",
        "detail": "The data could not be analyzed.",
        "suggestion": "Check that the first row holds headers and remove completely empty rows or columns."
    },
    ErrorCodes.RATE_LIMIT_EXCEEDED: {
        "message": "Too many requests",
        "detail": "Requests are rate limited to keep the service responsive.",
        "suggestion": "Wait about a minute and try again."
    },
    ErrorCodes.TIMEOUT: {
        "message": "This is taking longer than expected",
        "detail": "The request did not finish within the time limit.",
        "suggestion": "Try a smaller sample of your data (the first 1000 rows works for most charts)."
    },
    ErrorCodes.UNKNOWN_ERROR: {
        "message": "Something unexpected happened",
        "detail": "We encountered an issue we weren't expecting.",
        "suggestion": "Try again in a moment. If it keeps happening, try a different file."
    },
    ErrorCodes.MISSING_REQUIRED_PARAMETER: {
        "message": "A required chart parameter is missing",
        "detail": "The chart type needs more column bindings than were provided.",
        "suggestion": "Review required parameters for your chosen chart type."
    },
    ErrorCodes.INVALID_PARAMETER_TYPE: {
        "message": "A chart parameter has an invalid value",
        "detail": "One of the settings is not a recognised option.",
        "suggestion": "Check the allowed values for aggregation and sort order."
    },
    ErrorCodes.PARAMETER_OUT_OF_RANGE: {
        "message": "A chart parameter is out of range",
        "detail": "One of the numeric settings is outside its allowed range.",
        "suggestion": "Adjust bins, limit or similar settings to a supported value."
    },
    ErrorCodes.INCOMPATIBLE_PARAMETERS: {
        "message": "These chart parameters don't work together",
        "detail": "The parameter combination is not supported for this chart type.",
        "suggestion": "Remove conflicting parameters or pick another chart type."
    },
    ErrorCodes.UNSUPPORTED_CHART_TYPE: {
        "message": "This chart type isn't supported",
        "detail": "The requested chart type is not in the chart registry.",
        "suggestion": "Choose one of the supported chart types."
    },
    ErrorCodes.INSUFFICIENT_DATA: {
        "message": "Not enough data for this chart",
        "detail": "The dataset has fewer rows than this chart type needs.",
        "suggestion": "Try a simpler chart type that requires less data."
    },
    ErrorCodes.INVALID_DATA_TYPE: {
        "message": "A column has the wrong type for this chart",
        "detail": "A bound column's data type doesn't match what the chart expects.",
        "suggestion": "Verify column data types match chart requirements."
    },
    ErrorCodes.TOO_MANY_CATEGORIES: {
        "message": "Too many categories for this chart",
        "detail": "A categorical axis has more distinct values than the chart can show clearly.",
        "suggestion": "Use the limit parameter or pre-aggregate your data."
    },
    ErrorCodes.MISSING_COLUMN: {
        "message": "A referenced column doesn't exist",
        "detail": "One of the chart parameters names a column that is not in the dataset.",
        "suggestion": "Pick a column from the dataset."
    },
}


def get_error_response(error_code: str, additional_detail: Optional[str] = None) -> Dict[str, str]:
    """
    Get user-friendly error response for an error code.

    Args:
        error_code: One of the ErrorCodes constants
        additional_detail: Optional additional detail to append

    Returns:
        Dictionary with code, message, detail, and suggestion
    """
    error_info = ERROR_MESSAGES.get(error_code, ERROR_MESSAGES[ErrorCodes.UNKNOWN_ERROR])

    response = {
        "code": error_code,
        "message": error_info["message"],
        "detail": error_info["detail"],
        "suggestion": error_info["suggestion"]
    }

    if additional_detail:
        response["detail"] = f"{response['detail']} {additional_detail}"

    return response


class ChartError(Exception):
    """Base error for chart validation and aggregation failures."""

    category = "validation"

    def __init__(
        self,
        code: str,
        message: str,
        suggestion: Optional[str] = None,
        violations: Optional[List["Violation"]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion or ERROR_MESSAGES.get(code, ERROR_MESSAGES[ErrorCodes.UNKNOWN_ERROR])["suggestion"]
        self.violations = list(violations or [])

    def to_response(self) -> Dict[str, object]:
        response: Dict[str, object] = get_error_response(self.code, self.message)
        response["suggestion"] = self.suggestion
        response["category"] = self.category
        response["violations"] = [v.model_dump() for v in self.violations]
        return response


class ChartValidationError(ChartError):
    """Parameters are missing, malformed or incompatible. Fix the parameters."""

    category = "validation"


class ChartDataError(ChartError):
    """The data can't support the chart. Pick another chart type or reshape the data."""

    category = "data"


def raise_for_violations(violations: List["Violation"]) -> None:
    """Raise the matching ChartError for the first violation, carrying all of them."""
    if not violations:
        return

    first = violations[0]
    error_cls = ChartDataError if first.category == "data" else ChartValidationError
    raise error_cls(first.code, first.message, first.suggestion, violations)
