from __future__ import annotations

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

AMOUNT_PATTERN = r"-?\d{1,12}\.\d{2}"
RATE_PATTERN = r"\d{1,3}\.\d{2}"
HASH_PATTERN = r"[0-9A-F]{64}"

_AMOUNT_RE = re.compile(AMOUNT_PATTERN)
_RATE_RE = re.compile(RATE_PATTERN)
_DATE_RE = re.compile(r"\d{2}-\d{2}-\d{4}")
_TIMESTAMP_RE = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:Z|[+-]\d{2}:?\d{2})")

_CENT = Decimal("0.01")

# Order matters: the first matching offset wins
AMOUNT_TOLERANCES = (
    Decimal("0"),
    Decimal("-0.01"),
    Decimal("0.01"),
    Decimal("-0.02"),
    Decimal("0.02"),
)


def is_amount(value: object) -> bool:
    """Whether *value* is a monetary string with exactly two fraction digits."""
    return isinstance(value, str) and _AMOUNT_RE.fullmatch(value) is not None


def is_rate(value: object) -> bool:
    """Whether *value* is a percentage string such as ``21.00``."""
    return isinstance(value, str) and _RATE_RE.fullmatch(value) is not None


def format_amount(value: Decimal | str | int) -> str:
    """Format a number as a 2-decimal string, rounding half away from zero."""
    try:
        d = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Invalid numeric value: '{value}'") from None
    if not d.is_finite():
        raise ValueError(f"Invalid numeric value: '{value}'")
    return f"{d.quantize(_CENT, rounding=ROUND_HALF_UP):.2f}"


def match_with_tolerance(declared: str, expected: Decimal) -> tuple[bool, str]:
    """Compare a declared amount against an expected one within the tolerance window.

    Returns ``(matched, best)`` where *best* is the expected amount formatted
    with no offset applied, for use in diagnostics.
    """
    best = format_amount(expected)
    for offset in AMOUNT_TOLERANCES:
        if declared == format_amount(Decimal(best) + offset):
            return True, best
    return False, best


def format_date(value: date) -> str:
    """Format a calendar date as dd-mm-yyyy."""
    return value.strftime("%d-%m-%Y")


def format_timestamp(value: datetime) -> str:
    """Format an aware datetime as ISO-8601 with seconds precision and numeric offset."""
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"Timestamp must carry a UTC offset: {value!r}")
    return value.replace(microsecond=0).isoformat()


def parse_date(value: str) -> date:
    """Parse a dd-mm-yyyy date. Any time-of-day component is rejected."""
    if not _DATE_RE.fullmatch(value):
        raise ValueError(f"Invalid date: '{value}'. Use dd-mm-yyyy.")
    try:
        return datetime.strptime(value, "%d-%m-%Y").date()
    except ValueError:
        raise ValueError(f"Invalid date: '{value}'. Use dd-mm-yyyy.") from None


def parse_timestamp(value: str) -> datetime:
    """Parse a strict ISO-8601 timestamp with explicit UTC offset."""
    if not _TIMESTAMP_RE.fullmatch(value):
        raise ValueError(f"Invalid timestamp: '{value}'")
    try:
        return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S%z")
    except ValueError:
        raise ValueError(f"Invalid timestamp: '{value}'") from None
