"""
Tests for input sanitization utilities.
"""
from chartkit.core.sanitization import (
    sanitize_filename,
    sanitize_for_logging,
    validate_column_name,
    normalize_column_name,
)


def test_sanitize_filename():
    """Test filename sanitization."""
    assert sanitize_filename("test.csv") == "test.csv"

    # Path traversal attempt
    assert sanitize_filename("../../../etc/passwd") == "passwd"
    assert sanitize_filename("C:\\Users\\me\\data.xlsx") == "data.xlsx"

    # Newlines and control characters
    assert sanitize_filename("test\nfile.csv") == "testfile.csv"
    assert "\x00" not in sanitize_filename("test\x00file.csv")

    # Long filename
    assert len(sanitize_filename("a" * 300)) == 255

    # Empty filename
    assert sanitize_filename("") == "unknown"
    assert sanitize_filename(None) == "unknown"
    assert sanitize_filename("...") == "unknown"


def test_sanitize_for_logging():
    """Test logging sanitization."""
    assert sanitize_for_logging("test\nlog") == "test log"
    assert "\r" not in sanitize_for_logging("test\rlog")
    assert "\x00" not in sanitize_for_logging("test\x00log")
    assert sanitize_for_logging(None) == ""
    assert sanitize_for_logging(42) == "42"

    # Length limit with ellipsis
    sanitized = sanitize_for_logging("a" * 600)
    assert len(sanitized) == 503
    assert sanitized.endswith("...")


def test_validate_column_name():
    """Test column name validation."""
    assert validate_column_name("valid_column") is True
    assert validate_column_name("Revenue (USD)") is True
    # Tabs and line breaks are common in spreadsheet headers
    assert validate_column_name("Total\nSales") is True

    assert validate_column_name("") is False
    assert validate_column_name("../../../etc/passwd") is False
    assert validate_column_name("bad\x07name") is False
    assert validate_column_name("a" * 1001) is False

    # Reserved names (Windows)
    assert validate_column_name("CON") is False
    assert validate_column_name("lpt1") is False


def test_normalize_column_name():
    assert normalize_column_name("Total\nSales", 0) == "Total Sales"
    assert normalize_column_name("  spaced   out  ", 0) == "spaced out"
    assert normalize_column_name(2024, 0) == "2024"
    assert normalize_column_name(None, 2) == "column_3"
    assert normalize_column_name("   ", 0) == "column_1"
    assert normalize_column_name(float("nan"), 4) == "column_5"
