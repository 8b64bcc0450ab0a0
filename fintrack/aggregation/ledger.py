"""
Ledger

An immutable, in-memory view over a snapshot of transactions.

Every filter returns a new Ledger holding the matching subsequence in its
original relative order. Filters therefore compose in any order:

    ledger.filter_by_month("2024-05").filter_by_category("A")
    == ledger.filter_by_category("A").filter_by_month("2024-05")

No I/O happens here. The caller fetches the snapshot and hands it in.
"""

from typing import Callable, Iterable, Iterator

from fintrack.models.finance import (
    ALL,
    PeriodScope,
    PeriodSelector,
    Transaction,
    TransactionKind,
)
from fintrack.periods import financial_year_bucket, month_bucket


class Ledger:
    """Owner-scoped, possibly filtered collection of transactions."""

    def __init__(self, transactions: Iterable[Transaction] = ()):
        self._transactions = tuple(transactions)

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        return self._transactions

    def __iter__(self) -> Iterator[Transaction]:
        return iter(self._transactions)

    def __len__(self) -> int:
        return len(self._transactions)

    def __bool__(self) -> bool:
        return bool(self._transactions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ledger):
            return NotImplemented
        return self._transactions == other._transactions

    def __repr__(self) -> str:
        return f"Ledger({len(self._transactions)} transactions)"

    def _where(self, predicate: Callable[[Transaction], bool]) -> "Ledger":
        return Ledger(t for t in self._transactions if predicate(t))

    # -------------------------------------------------------------------------
    # Filters
    # -------------------------------------------------------------------------

    def filter_by_month(self, bucket: str) -> "Ledger":
        """Entries dated in the "YYYY-MM" month bucket."""
        return self._where(lambda t: month_bucket(t.date) == bucket)

    def filter_by_financial_year(self, bucket: str) -> "Ledger":
        """Entries dated in the "YYYY-YYYY" financial year; "all" keeps everything."""
        if bucket == ALL:
            return self
        return self._where(lambda t: financial_year_bucket(t.date) == bucket)

    def filter_by_category(self, category_key: str) -> "Ledger":
        """Entries for one category; "all" keeps everything."""
        if category_key == ALL:
            return self
        return self._where(lambda t: t.category_key == category_key)

    def filter_by_kind(self, kind: TransactionKind) -> "Ledger":
        return self._where(lambda t: t.kind == kind)

    def filter_by_owner(self, owner_id: str) -> "Ledger":
        return self._where(lambda t: t.owner_id == owner_id)

    def apply(self, selector: PeriodSelector) -> "Ledger":
        """Apply a selector's period filter, then its category filter."""
        if selector.scope is PeriodScope.MONTH:
            scoped = self.filter_by_month(selector.value)
        elif selector.scope is PeriodScope.FINANCIAL_YEAR:
            scoped = self.filter_by_financial_year(selector.value)
        else:
            scoped = self
        return scoped.filter_by_category(selector.category_key)

    # -------------------------------------------------------------------------
    # Statement orderings
    # -------------------------------------------------------------------------

    def newest_first(self) -> "Ledger":
        """Date descending; same-day entries keep their relative order."""
        return Ledger(sorted(self._transactions, key=lambda t: t.date, reverse=True))

    def largest_first(self) -> "Ledger":
        """Amount descending; equal amounts keep their relative order."""
        return Ledger(sorted(self._transactions, key=lambda t: t.amount, reverse=True))
