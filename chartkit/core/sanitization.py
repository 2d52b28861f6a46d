"""
Sanitization of user-provided names: filenames, column headers, log values.
"""
import re
from typing import Any

_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f-\x9f]')
_LINE_BREAKS = re.compile(r'[\r\n]+')
# Tabs and line breaks are common in spreadsheet headers, other control characters are not
_UNSAFE_HEADER_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f]')
_RESERVED_NAMES = re.compile(r'^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])$', re.IGNORECASE)

MAX_COLUMN_NAME_LENGTH = 1000


def sanitize_filename(filename: str, max_length: int = 255) -> str:
    """
    Strip path components and control characters from an uploaded filename.

    Returns:
        Sanitized filename safe for logging and responses, 'unknown' if nothing is left
    """
    if not filename:
        return "unknown"

    filename = filename.replace('\\', '/').rsplit('/', 1)[-1]
    filename = _CONTROL_CHARS.sub('', filename).strip('. ')
    return filename[:max_length] or "unknown"


def sanitize_for_logging(value: Any, max_length: int = 500) -> str:
    """Flatten a value onto one line so it cannot forge log entries."""
    if value is None:
        return ""
    value = _LINE_BREAKS.sub(' ', str(value))
    value = _CONTROL_CHARS.sub('', value)
    if len(value) > max_length:
        value = value[:max_length] + "..."
    return value


def validate_column_name(name: str) -> bool:
    """
    Check that a column header is safe to use as a parameter binding.

    Rejects empty or oversized names, path traversal, control characters
    other than tabs and line breaks, and reserved device names.
    """
    if not name or len(name) > MAX_COLUMN_NAME_LENGTH:
        return False
    if '..' in name:
        return False
    if _UNSAFE_HEADER_CHARS.search(name):
        return False
    if _RESERVED_NAMES.match(name):
        return False
    return True


def normalize_column_name(name: Any, position: int) -> str:
    """
    Header text as used for column identity.

    Line breaks become spaces and runs of whitespace collapse. Blank
    headers get a positional name like 'column_3' (1-based).
    """
    if name is None:
        return f"column_{position + 1}"
    if isinstance(name, float) and name != name:
        return f"column_{position + 1}"
    text = ' '.join(str(name).replace('\r', ' ').replace('\n', ' ').split())
    return text or f"column_{position + 1}"
