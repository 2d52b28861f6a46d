"""
Uploaded file parsing.

CSV and Excel files are turned into raw rows: one dict per data row,
mapping header to a string cell or None. Type inference happens later
in the profiler, so nothing here guesses at numbers or dates.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd
from fastapi import HTTPException, UploadFile
from openpyxl import load_workbook

from chartkit.core.config import get_settings
from chartkit.core.errors import ErrorCodes, get_error_response
from chartkit.core.performance import track_performance
from chartkit.core.sanitization import normalize_column_name, sanitize_filename, validate_column_name

logger = logging.getLogger(__name__)

Grid = List[List[Optional[str]]]

# Allowed file extensions
ALLOWED_EXTENSIONS = ('.csv', '.xlsx')

# MIME type mapping for validation
MIME_TYPE_MAP = {
    'text/csv': '.csv',
    'application/vnd.ms-excel': '.csv',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet': '.xlsx',
}

DANGEROUS_MIME_TYPES = frozenset({
    'application/x-executable',
    'application/x-sharedlib',
    'application/x-msdownload',
    'text/html',
    'application/javascript',
})


@dataclass
class ParsedTable:
    """Rows of an uploaded file with headers in file order."""
    filename: str
    columns: List[str]
    rows: List[Dict[str, Optional[str]]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


def _reject(code: str, detail: Optional[str] = None, status_code: int = 400) -> HTTPException:
    return HTTPException(status_code=status_code, detail=get_error_response(code, detail))


def validate_file_extension(filename: Optional[str]) -> str:
    """
    Return the lower-cased extension of `filename`.

    Raises:
        HTTPException: 400 when the name is missing or the extension is not allowed
    """
    if not filename:
        raise _reject(ErrorCodes.INVALID_FILE_TYPE, "Filename is required")

    file_ext = Path(filename).suffix.lower()
    if not file_ext:
        raise _reject(ErrorCodes.INVALID_FILE_TYPE, "File must have an extension. Supported formats: CSV, XLSX")
    if file_ext not in ALLOWED_EXTENSIONS:
        raise _reject(
            ErrorCodes.INVALID_FILE_TYPE,
            f"Unsupported file format: {file_ext}. Allowed formats: {', '.join(ALLOWED_EXTENSIONS)}"
        )
    return file_ext


def validate_mime_type(content_type: Optional[str], file_ext: str) -> None:
    """
    Reject obviously dangerous MIME types.

    A mismatch between MIME type and extension is only logged, some
    clients send the wrong type for spreadsheets.
    """
    if not content_type:
        return
    content_type = content_type.lower()
    if content_type in DANGEROUS_MIME_TYPES:
        raise _reject(
            ErrorCodes.INVALID_FILE_TYPE,
            f"File type '{content_type}' is not allowed. Only CSV and Excel files are supported."
        )
    expected_ext = MIME_TYPE_MAP.get(content_type)
    if expected_ext and expected_ext != file_ext:
        logger.warning(f"MIME type {content_type} doesn't match extension {file_ext}")


def cell_text(value: Any) -> Optional[str]:
    """Render a spreadsheet cell as text, None for empty cells."""
    if value is None:
        return None
    if isinstance(value, float):
        if value != value:
            return None
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.strftime('%Y-%m-%d')
        return value.isoformat(sep=' ')
    if isinstance(value, date):
        return value.strftime('%Y-%m-%d')
    text = str(value).strip()
    return text or None


def _looks_numeric(text: str) -> bool:
    try:
        float(text.replace(',', ''))
    except ValueError:
        return False
    return True


def find_header_row(grid: Grid, max_scan_rows: int = 10) -> int:
    """
    Auto-detect the header row among the first `max_scan_rows` rows.

    A header row is mostly text, mostly unique and mostly non-numeric.
    The first row gets a small bonus since it is the usual case.

    Returns:
        Row index to use as header (0 = first row is header)
    """
    if len(grid) < 2:
        return 0

    best_header_row = 0
    best_score = 0.0
    for row_idx, row in enumerate(grid[:max_scan_rows]):
        present = [v for v in row if v is not None]
        if not present:
            continue

        numeric_count = sum(1 for v in present if _looks_numeric(v))
        text_ratio = (len(present) - numeric_count) / len(present)
        unique_ratio = len({v.lower() for v in present}) / len(present)
        # Rows that fill more of the width are more likely headers than title lines
        fill_ratio = len(present) / max(len(row), 1)

        score = text_ratio * 0.4 + unique_ratio * 0.3 + fill_ratio * 0.3
        if row_idx == 0:
            score += 0.1

        if score > best_score:
            best_score = score
            best_header_row = row_idx

    return best_header_row


def read_csv_grid(contents: bytes) -> Grid:
    """Read a CSV into a grid of text cells, retrying as latin-1 on decode errors."""
    try:
        df = pd.read_csv(BytesIO(contents), header=None, dtype=str, skip_blank_lines=True)
    except UnicodeDecodeError:
        logger.info("CSV is not valid UTF-8, retrying with latin-1")
        df = pd.read_csv(BytesIO(contents), header=None, dtype=str, encoding='latin1', skip_blank_lines=True)
    return [[cell_text(v) for v in row] for row in df.itertuples(index=False, name=None)]


def read_excel_grid(contents: bytes) -> Grid:
    """
    Read the largest sheet of a workbook into a grid of text cells.

    Merged cells are unmerged and every cell of the range receives the
    top-left value.
    """
    wb = load_workbook(BytesIO(contents), data_only=True)
    ws = max(wb.worksheets, key=lambda sheet: sheet.max_row)
    if len(wb.worksheets) > 1:
        logger.info(f"Multi-sheet workbook, selected '{ws.title}' ({ws.max_row} rows) of {len(wb.worksheets)} sheets")

    merged_ranges = list(ws.merged_cells.ranges)
    for merged_range in merged_ranges:
        top_left_value = ws.cell(merged_range.min_row, merged_range.min_col).value
        ws.unmerge_cells(str(merged_range))
        for row in range(merged_range.min_row, merged_range.max_row + 1):
            for col in range(merged_range.min_col, merged_range.max_col + 1):
                ws.cell(row, col, top_left_value)
    if merged_ranges:
        logger.info(f"Unmerged {len(merged_ranges)} cell ranges in sheet '{ws.title}'")

    return [[cell_text(v) for v in row] for row in ws.iter_rows(values_only=True)]


def grid_to_table(grid: Grid, filename: str) -> ParsedTable:
    """
    Turn a grid into header-keyed rows.

    Rows above the detected header are dropped, as are fully empty rows
    and columns. Duplicate headers get a numeric suffix.
    """
    grid = [row for row in grid if any(v is not None for v in row)]
    if not grid:
        return ParsedTable(filename=filename, columns=[])

    header_row = find_header_row(grid)
    if header_row > 0:
        logger.info(f"Auto-detected header at row {header_row}, skipping {header_row} metadata rows")

    width = max(len(row) for row in grid)
    header = grid[header_row] + [None] * (width - len(grid[header_row]))
    body = [row + [None] * (width - len(row)) for row in grid[header_row + 1:]]

    keep = [i for i in range(width) if header[i] is not None or any(row[i] is not None for row in body)]

    columns: List[str] = []
    seen: Dict[str, int] = {}
    for i in keep:
        name = normalize_column_name(header[i], i)
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 1
        columns.append(name)

    rows = [{name: row[i] for name, i in zip(columns, keep)} for row in body]
    return ParsedTable(filename=filename, columns=columns, rows=rows)


def validate_table(table: ParsedTable) -> None:
    """
    Enforce row, column and cell-size limits and header safety.

    Raises:
        HTTPException: 400 describing the first limit that is exceeded
    """
    settings = get_settings()
    if table.row_count > settings.max_file_rows:
        raise _reject(
            ErrorCodes.PROCESSING_ERROR,
            f"File contains too many rows ({table.row_count:,}). Maximum allowed: {settings.max_file_rows:,} rows."
        )
    if len(table.columns) > settings.max_file_columns:
        raise _reject(
            ErrorCodes.PROCESSING_ERROR,
            f"File contains too many columns ({len(table.columns)}). "
            f"Maximum allowed: {settings.max_file_columns} columns."
        )
    for column in table.columns:
        if not validate_column_name(column):
            raise _reject(ErrorCodes.PARSE_ERROR, f"Invalid column name: '{column}'.")
    for row in table.rows:
        for column, value in row.items():
            if value is not None and len(value.encode('utf-8')) > settings.max_cell_size_bytes:
                raise _reject(
                    ErrorCodes.PROCESSING_ERROR,
                    f"File contains extremely large text values in column '{column}'. "
                    f"Maximum allowed: {settings.max_cell_size_bytes} bytes per cell."
                )


@track_performance("parse_file")
async def parse_file(file: UploadFile) -> ParsedTable:
    """
    Parse an uploaded CSV or Excel file into raw rows.

    Validates extension and MIME type before reading, and the limits
    from settings after.
    """
    file_ext = validate_file_extension(file.filename)
    validate_mime_type(file.content_type, file_ext)
    safe_filename = sanitize_filename(file.filename)

    contents = await file.read()
    if not contents:
        raise _reject(ErrorCodes.FILE_EMPTY)

    try:
        if file_ext == '.csv':
            grid = read_csv_grid(contents)
        else:
            grid = read_excel_grid(contents)
    except pd.errors.EmptyDataError:
        raise _reject(ErrorCodes.FILE_EMPTY)
    except Exception as e:
        logger.error(f"Error parsing {file_ext} file {safe_filename}: {e}")
        raise _reject(ErrorCodes.PARSE_ERROR)

    table = grid_to_table(grid, safe_filename)
    if not table.columns or not table.rows:
        raise _reject(ErrorCodes.FILE_EMPTY, "File appears to be empty or contains no data rows")

    validate_table(table)
    logger.info(f"Parsed file: {safe_filename}, {table.row_count} rows, {len(table.columns)} columns")
    return table
