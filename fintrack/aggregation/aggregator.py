"""
Aggregation Engine

Turns a (filtered) ledger into display-ready totals.

DESIGN DECISION: Every function here is pure. Inputs are snapshots
fetched by the caller; nothing is mutated and nothing is cached, so
concurrent callers need no locking.

Two grouping behaviours deliberately coexist:
- totals_by_category omits categories with no entries
- ranked_category_totals lists every known category, zeros included
Callers rely on each one differently; do not merge them.
"""

from typing import Iterable, Optional

import structlog

from fintrack.aggregation.ledger import Ledger
from fintrack.models.finance import (
    Category,
    CategoryTotal,
    DashboardTotals,
    PeriodSelector,
    Transaction,
)
from fintrack.periods import financial_year_bucket, month_bucket


logger = structlog.get_logger(__name__)


class AggregationError(Exception):
    """Base exception for aggregation."""
    pass


class UnknownCategoryKey(AggregationError):
    """A transaction references a category that is not in the snapshot."""

    def __init__(self, category_key: str):
        self.category_key = category_key
        super().__init__(f"Unknown category key: {category_key}")


def total_amount(transactions: Iterable[Transaction]) -> int:
    """Sum of amounts. Empty input sums to 0."""
    return sum(t.amount for t in transactions)


def totals_by_category(
    transactions: Iterable[Transaction],
    categories: Optional[Iterable[Category]] = None,
) -> dict[str, int]:
    """
    Group amounts by category key.

    Categories without entries are absent from the result, not present
    with 0. Entries without a key (receivables) are skipped.

    When a category snapshot is given, entries whose key is not in it are
    left out instead of failing: a stale snapshot must not break a view.
    """
    known = None if categories is None else {c.id for c in categories}
    totals: dict[str, int] = {}
    unknown: set[str] = set()

    for t in transactions:
        key = t.category_key
        if key is None:
            continue
        if known is not None and key not in known:
            unknown.add(key)
            continue
        totals[key] = totals.get(key, 0) + t.amount

    if unknown:
        logger.warning(
            "unknown_category_keys_skipped",
            category_keys=sorted(unknown),
        )

    return totals


def ranked_category_totals(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
) -> list[CategoryTotal]:
    """
    Every category with its total, largest first.

    Categories with no entries appear with total 0. Equal totals keep
    the order the categories were given in.
    """
    categories = list(categories)
    totals = totals_by_category(transactions, categories)
    rows = [
        CategoryTotal(category=category, total=totals.get(category.id, 0))
        for category in categories
    ]
    # sorted() is stable, including with reverse=True
    return sorted(rows, key=lambda row: row.total, reverse=True)


def available_financial_years(transactions: Iterable[Transaction]) -> list[str]:
    """Distinct financial years present, most recent first."""
    years = {financial_year_bucket(t.date) for t in transactions}
    return sorted(years, reverse=True)


def totals_by_financial_year(transactions: Iterable[Transaction]) -> dict[str, int]:
    """Financial year -> total, most recent year first."""
    totals: dict[str, int] = {}
    for t in transactions:
        bucket = financial_year_bucket(t.date)
        totals[bucket] = totals.get(bucket, 0) + t.amount
    return {bucket: totals[bucket] for bucket in sorted(totals, reverse=True)}


def totals_by_month(transactions: Iterable[Transaction]) -> dict[str, int]:
    """Month bucket -> total, most recent month first."""
    totals: dict[str, int] = {}
    for t in transactions:
        bucket = month_bucket(t.date)
        totals[bucket] = totals.get(bucket, 0) + t.amount
    return {bucket: totals[bucket] for bucket in sorted(totals, reverse=True)}


def compute_dashboard_totals(
    transactions: Iterable[Transaction],
    categories: Iterable[Category],
    period_selector: PeriodSelector,
) -> DashboardTotals:
    """
    Total, ranked breakdown and available years for one ledger.

    The total and breakdown honour the selector. The available years are
    always computed from the full snapshot so the year picker never
    shrinks to the year currently selected.
    """
    ledger = Ledger(transactions)
    selected = ledger.apply(period_selector)

    return DashboardTotals(
        total=total_amount(selected),
        ranked_breakdown=ranked_category_totals(selected, categories),
        available_financial_years=available_financial_years(ledger),
    )
