"""
Unit tests for the parser service.
"""
import pytest
from datetime import datetime
from io import BytesIO
from fastapi import UploadFile, HTTPException
from openpyxl import Workbook
from starlette.datastructures import Headers
from chartkit.core.errors import ErrorCodes
from chartkit.services.parser import (
    parse_file,
    cell_text,
    find_header_row,
    grid_to_table,
    validate_file_extension,
    validate_mime_type,
    validate_table,
    ParsedTable,
)


def make_upload(filename, content, content_type=None):
    headers = Headers({"content-type": content_type}) if content_type else None
    return UploadFile(filename=filename, file=BytesIO(content), headers=headers)


def xlsx_bytes(build):
    wb = Workbook()
    build(wb)
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_csv():
    """Test parsing a valid CSV file."""
    csv_content = b"name,age,city\nJohn,30,New York\nJane,25,London"

    table = await parse_file(make_upload("test.csv", csv_content))

    assert table.row_count == 2
    assert table.columns == ["name", "age", "city"]
    # Cells stay text; typing is the profiler's job
    assert table.rows[0] == {"name": "John", "age": "30", "city": "New York"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_csv_missing_cells_become_none():
    csv_content = b"region,sales\nNorth,\n,12\nSouth,NA"

    table = await parse_file(make_upload("test.csv", csv_content))

    assert table.rows == [
        {"region": "North", "sales": None},
        {"region": None, "sales": "12"},
        {"region": "South", "sales": None},
    ]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_csv_with_encoding_issue():
    """Test parsing CSV with encoding issues falls back to latin1."""
    csv_content = "name,value\nJosé,100\nMaría,200".encode('latin1')

    table = await parse_file(make_upload("test.csv", csv_content))

    assert table.row_count == 2
    assert table.rows[0]["name"] == "José"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_csv_skips_title_rows():
    csv_content = b"Quarterly Report,,\nregion,sales,units\nNorth,100,5\nSouth,200,7"

    table = await parse_file(make_upload("report.csv", csv_content))

    assert table.columns == ["region", "sales", "units"]
    assert table.row_count == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_empty_csv():
    """Test parsing an empty CSV file raises error."""
    with pytest.raises(HTTPException) as exc_info:
        await parse_file(make_upload("test.csv", b""))

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail["code"] == ErrorCodes.FILE_EMPTY


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_header_only_csv():
    with pytest.raises(HTTPException) as exc_info:
        await parse_file(make_upload("test.csv", b"a,b,c\n"))

    assert exc_info.value.detail["code"] == ErrorCodes.FILE_EMPTY


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_invalid_file_extension():
    """Test parsing a file with invalid extension raises error."""
    with pytest.raises(HTTPException) as exc_info:
        await parse_file(make_upload("test.txt", b"some content"))

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail["code"] == ErrorCodes.INVALID_FILE_TYPE
    assert "Unsupported file format" in exc_info.value.detail["detail"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_file_without_filename():
    """Test parsing a file without filename raises error."""
    with pytest.raises(HTTPException) as exc_info:
        await parse_file(make_upload(None, b"some content"))

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_rejects_dangerous_mime_type():
    with pytest.raises(HTTPException) as exc_info:
        await parse_file(make_upload("test.csv", b"a\n1", content_type="text/html"))

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_corrupt_xlsx():
    with pytest.raises(HTTPException) as exc_info:
        await parse_file(make_upload("broken.xlsx", b"not a zip archive"))

    assert exc_info.value.detail["code"] == ErrorCodes.PARSE_ERROR


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_xlsx_largest_sheet_and_merged_cells():
    def build(wb):
        notes = wb.active
        notes.title = "Notes"
        notes.append(["just a note"])

        data = wb.create_sheet("Data")
        data.append(["region", "day", "sales"])
        data.append(["North", datetime(2024, 1, 1), 10])
        data.append([None, datetime(2024, 1, 2), 12.5])
        data.append(["South", datetime(2024, 1, 3, 9, 30), 7])
        data.merge_cells("A2:A3")

    table = await parse_file(make_upload("book.xlsx", xlsx_bytes(build)))

    assert table.columns == ["region", "day", "sales"]
    assert table.rows == [
        {"region": "North", "day": "2024-01-01", "sales": "10"},
        {"region": "North", "day": "2024-01-02", "sales": "12.5"},
        {"region": "South", "day": "2024-01-03 09:30:00", "sales": "7"},
    ]


@pytest.mark.unit
def test_cell_text():
    assert cell_text(None) is None
    assert cell_text(float("nan")) is None
    assert cell_text("  padded ") == "padded"
    assert cell_text("   ") is None
    assert cell_text(3.0) == "3"
    assert cell_text(2.25) == "2.25"
    assert cell_text(datetime(2024, 5, 6)) == "2024-05-06"


@pytest.mark.unit
def test_find_header_row():
    grid = [
        ["Sales export", None, None],
        ["region", "sales", "units"],
        ["North", "100", "5"],
    ]
    assert find_header_row(grid) == 1
    assert find_header_row([["a", "b"]]) == 0


@pytest.mark.unit
def test_grid_to_table_drops_empty_columns_and_dedupes_headers():
    grid = [
        ["name", None, "name", "score"],
        ["a", None, "b", "1"],
        [None, None, None, None],
        ["c", None, "d", "2"],
    ]

    table = grid_to_table(grid, "x.csv")

    assert table.columns == ["name", "name_2", "score"]
    assert table.rows == [
        {"name": "a", "name_2": "b", "score": "1"},
        {"name": "c", "name_2": "d", "score": "2"},
    ]


@pytest.mark.unit
def test_grid_to_table_names_blank_headers():
    table = grid_to_table([["a", None], ["1", "2"]], "x.csv")

    assert table.columns == ["a", "column_2"]


@pytest.mark.unit
def test_validate_table_cell_size(monkeypatch):
    from chartkit.core import config

    monkeypatch.setattr(config, "_settings", config.Settings(max_cell_size_bytes=1000))
    table = ParsedTable(filename="x.csv", columns=["a"], rows=[{"a": "x" * 1001}])

    with pytest.raises(HTTPException) as exc_info:
        validate_table(table)

    assert exc_info.value.status_code == 400


@pytest.mark.unit
def test_validate_file_extension_valid():
    """Test validate_file_extension with valid extensions."""
    assert validate_file_extension("test.csv") == ".csv"
    assert validate_file_extension("test.XLSX") == ".xlsx"


@pytest.mark.unit
@pytest.mark.parametrize("filename", ["test.txt", "test", "", "legacy.xls"])
def test_validate_file_extension_invalid(filename):
    with pytest.raises(HTTPException) as exc_info:
        validate_file_extension(filename)
    assert exc_info.value.status_code == 400


@pytest.mark.unit
def test_validate_mime_type():
    """Test MIME type validation."""
    assert validate_mime_type("text/csv", ".csv") is None
    assert validate_mime_type(None, ".csv") is None
    # Mismatch only logs a warning
    assert validate_mime_type("text/csv", ".xlsx") is None

    with pytest.raises(HTTPException):
        validate_mime_type("application/x-msdownload", ".csv")
