"""Period classification package."""

from fintrack.periods.classifier import (
    FINANCIAL_YEAR_START_MONTH,
    InvalidDate,
    InvalidPeriod,
    PeriodError,
    default_entry_date,
    financial_year_bucket,
    financial_year_range,
    format_financial_year_short,
    month_bucket,
    month_start,
    next_month,
    parse_date,
    parse_financial_year_bucket,
    parse_month_bucket,
    previous_month,
)

__all__ = [
    "FINANCIAL_YEAR_START_MONTH",
    "InvalidDate",
    "InvalidPeriod",
    "PeriodError",
    "default_entry_date",
    "financial_year_bucket",
    "financial_year_range",
    "format_financial_year_short",
    "month_bucket",
    "month_start",
    "next_month",
    "parse_date",
    "parse_financial_year_bucket",
    "parse_month_bucket",
    "previous_month",
]
