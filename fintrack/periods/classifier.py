"""
Period Classification

Maps calendar dates onto the two buckets every statement view filters by:

- Calendar month:  "YYYY-MM"
- Financial year:  "YYYY-YYYY+1", running April 1 to March 31 (Indian FY)

DESIGN DECISION: Dates are plain calendar dates, never instants.
Only the date's own year and month components are examined, so there is
no timezone conversion anywhere in this module.

Month navigation helpers live here too. The selected month is always
passed in explicitly by the caller; nothing in this package remembers it.
"""

import re
from datetime import date, datetime, timedelta
from typing import Union

# April opens the financial year
FINANCIAL_YEAR_START_MONTH = 4

DateLike = Union[date, datetime, str]

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MONTH_BUCKET = re.compile(r"^(\d{4})-(\d{2})$")
_FY_BUCKET = re.compile(r"^(\d{4})-(\d{4})$")


class PeriodError(ValueError):
    """Base exception for period classification."""
    pass


class InvalidDate(PeriodError):
    """Input could not be read as a calendar date."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Not a valid calendar date: {value!r}")


class InvalidPeriod(PeriodError):
    """A month or financial-year bucket string is malformed."""
    pass


def parse_date(value: DateLike) -> date:
    """
    Read a calendar date.

    Accepts a date, a datetime (its date part is used as-is) or a
    "YYYY-MM-DD" string. Anything else raises InvalidDate.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if _ISO_DATE.match(text):
            try:
                return date.fromisoformat(text)
            except ValueError:
                pass
    raise InvalidDate(value)


def month_bucket(value: DateLike) -> str:
    """Calendar month of a date as "YYYY-MM"."""
    d = parse_date(value)
    return f"{d.year:04d}-{d.month:02d}"


def financial_year_bucket(value: DateLike) -> str:
    """
    Financial year of a date as "YYYY-YYYY+1".

    2024-04-01 -> "2024-2025"
    2024-03-31 -> "2023-2024"
    """
    d = parse_date(value)
    if d.month >= FINANCIAL_YEAR_START_MONTH:
        return f"{d.year}-{d.year + 1}"
    return f"{d.year - 1}-{d.year}"


def format_financial_year_short(bucket: str) -> str:
    """Shorten a financial year for labels: "2024-2025" -> "24-25"."""
    parts = bucket.split("-")
    if len(parts) != 2 or not all(parts):
        raise InvalidPeriod(f"Not a financial year bucket: {bucket!r}")
    start, end = parts
    return f"{start[-2:]}-{end[-2:]}"


def parse_month_bucket(bucket: str) -> tuple[int, int]:
    """Split a "YYYY-MM" bucket into (year, month)."""
    match = _MONTH_BUCKET.match(bucket or "")
    if not match:
        raise InvalidPeriod(f"Not a month bucket: {bucket!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidPeriod(f"Month out of range in bucket: {bucket!r}")
    return year, month


def parse_financial_year_bucket(bucket: str) -> tuple[int, int]:
    """Split a "YYYY-YYYY" bucket into (start_year, end_year)."""
    match = _FY_BUCKET.match(bucket or "")
    if not match:
        raise InvalidPeriod(f"Not a financial year bucket: {bucket!r}")
    start, end = int(match.group(1)), int(match.group(2))
    if end != start + 1:
        raise InvalidPeriod(f"Financial year must span consecutive years: {bucket!r}")
    return start, end


def financial_year_range(bucket: str) -> tuple[date, date]:
    """First and last day (inclusive) of a financial year bucket."""
    start, end = parse_financial_year_bucket(bucket)
    return (
        date(start, FINANCIAL_YEAR_START_MONTH, 1),
        date(end, FINANCIAL_YEAR_START_MONTH, 1) - timedelta(days=1),
    )


def month_start(bucket: str) -> date:
    """First day of a month bucket."""
    year, month = parse_month_bucket(bucket)
    return date(year, month, 1)


def previous_month(bucket: str) -> str:
    """The month before a bucket: "2025-01" -> "2024-12"."""
    year, month = parse_month_bucket(bucket)
    if month == 1:
        return f"{year - 1:04d}-12"
    return f"{year:04d}-{month - 1:02d}"


def next_month(bucket: str) -> str:
    """The month after a bucket: "2024-12" -> "2025-01"."""
    year, month = parse_month_bucket(bucket)
    if month == 12:
        return f"{year + 1:04d}-01"
    return f"{year:04d}-{month + 1:02d}"


def default_entry_date(selected_month: str, today: DateLike) -> date:
    """
    Date to pre-fill when adding an entry while browsing a month.

    Today if the selected month is the current month, otherwise the
    first day of the selected month.
    """
    today_date = parse_date(today)
    if month_bucket(today_date) == selected_month:
        return today_date
    return month_start(selected_month)
