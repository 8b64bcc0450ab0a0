"""Financial-period aggregation package."""

from fintrack.aggregation.aggregator import (
    AggregationError,
    UnknownCategoryKey,
    available_financial_years,
    compute_dashboard_totals,
    ranked_category_totals,
    total_amount,
    totals_by_category,
    totals_by_financial_year,
    totals_by_month,
)
from fintrack.aggregation.ledger import Ledger

__all__ = [
    "AggregationError",
    "Ledger",
    "UnknownCategoryKey",
    "available_financial_years",
    "compute_dashboard_totals",
    "ranked_category_totals",
    "total_amount",
    "totals_by_category",
    "totals_by_financial_year",
    "totals_by_month",
]
