import re
from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional


class DbErrorCode(str, Enum):
    """Error codes reported by PostgREST / Postgres through the Supabase client"""

    UNIQUE_VIOLATION = "23505"  # duplicate key
    NOT_NULL_VIOLATION = "23502"  # required column left empty
    UNDEFINED_COLUMN = "42703"  # column does not exist
    SCHEMA_CACHE_MISS = "PGRST204"  # column not found in the schema cache


# Errors that mean the payload named a column the table does not have
MISSING_COLUMN_ERRORS = {
    DbErrorCode.UNDEFINED_COLUMN.value,
    DbErrorCode.SCHEMA_CACHE_MISS.value,
}

# Fields of a driver error, in the order they are searched
ERROR_TEXT_FIELDS = ("message", "details", "hint")

# Quoted words that name the relation or schema rather than a column
_QUOTED_NOISE = {"series", "public"}
_CAPTURE_NOISE = {"of", "series"}

_QUOTED_TOKEN = re.compile(r"'([^']+)'")
_COLUMN_PATTERNS = (
    re.compile(r'column\s+"([^"]+)"', re.IGNORECASE),
    re.compile(r"'([^']+)'\s+column", re.IGNORECASE),
    re.compile(r"column\s+([^\s\"']+)\s+of", re.IGNORECASE),
)

# 23505 on the slug: constraint name in the message, key column in the details
_SLUG_CONSTRAINT = re.compile(r'unique constraint "[^"]*_slug_key"', re.IGNORECASE)
_SLUG_KEY = re.compile(r"^Key \(slug\)=")


def error_field(error: Any, name: str) -> Optional[str]:
    """Read a text field from a driver error object or a plain mapping"""
    if error is None:
        return None
    if isinstance(error, Mapping):
        value = error.get(name)
    else:
        value = getattr(error, name, None)
    return value if isinstance(value, str) and value else None


def error_code(error: Any) -> Optional[str]:
    return error_field(error, "code")


def _strip_qualifier(column: str) -> str:
    return column[len("series."):] if column.startswith("series.") else column


def _column_from_text(text: str) -> Optional[str]:
    for token in _QUOTED_TOKEN.findall(text):
        if token.strip().lower() not in _QUOTED_NOISE:
            return token.strip()

    for pattern in _COLUMN_PATTERNS:
        for match in pattern.finditer(text):
            capture = match.group(1).strip()
            if capture and capture.lower() not in _CAPTURE_NOISE:
                return capture
    return None


def extract_missing_column(error: Any) -> Optional[str]:
    """
    Guess which column a failed insert/select is complaining about.

    Searches message, details and hint in that order. Single-quoted tokens
    win over the ``column "x"`` / ``'x' column`` / ``column x of`` phrasings.
    Returns None when nothing usable is found.
    """
    for name in ERROR_TEXT_FIELDS:
        text = error_field(error, name)
        if not text:
            continue
        column = _column_from_text(text)
        if column:
            column = _strip_qualifier(column)
            if column:
                return column
    return None


def is_slug_conflict(error: Any) -> bool:
    """Unique violation raised by the slug constraint, not by other keys whose values mention it"""
    if error_code(error) != DbErrorCode.UNIQUE_VIOLATION.value:
        return False
    message = error_field(error, "message") or ""
    details = error_field(error, "details") or ""
    return bool(_SLUG_CONSTRAINT.search(message) or _SLUG_KEY.match(details))


def error_summary(error: Any) -> dict:
    """Diagnostic fields passed back to the caller on an unrecoverable error"""
    return {
        name: value
        for name, value in (
            ("code", error_code(error)),
            ("message", error_field(error, "message")),
            ("details", error_field(error, "details")),
            ("hint", error_field(error, "hint")),
        )
        if value
    }
