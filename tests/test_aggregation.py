"""Tests for the ledger and the aggregation engine."""

import itertools

import pytest

from fintrack.aggregation import (
    Ledger,
    available_financial_years,
    compute_dashboard_totals,
    ranked_category_totals,
    total_amount,
    totals_by_category,
    totals_by_financial_year,
    totals_by_month,
)
from fintrack.models.finance import (
    ALL,
    Category,
    PeriodSelector,
    Transaction,
    TransactionKind,
)


def make_spend(amount, category_key, day, tid=None):
    kwargs = {"id": tid} if tid else {}
    return Transaction(
        kind=TransactionKind.SPEND,
        amount=amount,
        category_key=category_key,
        date=day,
        owner_id="u1",
        name="Lunch",
        **kwargs,
    )


def make_category(cid, name=None):
    return Category(id=cid, name=name or cid, owner_id="u1", kind=TransactionKind.SPEND)


@pytest.fixture
def scenario():
    """Two categories, three entries across two financial years."""
    transactions = [
        make_spend(100, "A", "2024-05-01", "t1"),
        make_spend(50, "B", "2024-05-15", "t2"),
        make_spend(25, "A", "2023-12-01", "t3"),
    ]
    categories = [make_category("A"), make_category("B")]
    return transactions, categories


@pytest.fixture
def wide_ledger():
    """Entries spread over months, years and three categories."""
    days = ["2023-03-31", "2023-04-01", "2023-12-31", "2024-01-15",
            "2024-03-31", "2024-04-01", "2024-05-20", "2024-05-21"]
    keys = ["A", "B", "C"]
    transactions = [
        make_spend(10 * (i + 1), keys[i % 3], day, f"t{i}")
        for i, day in enumerate(days)
    ]
    return Ledger(transactions)


class TestLedgerFilters:
    """Tests for ledger filtering."""

    def test_filter_by_month_preserves_order(self, scenario):
        transactions, _ = scenario
        result = Ledger(transactions).filter_by_month("2024-05")
        assert [t.id for t in result] == ["t1", "t2"]

    def test_filter_by_financial_year(self, scenario):
        transactions, _ = scenario
        result = Ledger(transactions).filter_by_financial_year("2023-2024")
        assert [t.id for t in result] == ["t3"]

    def test_filter_by_financial_year_all_sentinel(self, scenario):
        transactions, _ = scenario
        ledger = Ledger(transactions)
        assert ledger.filter_by_financial_year(ALL) == ledger

    def test_filter_by_category(self, scenario):
        transactions, _ = scenario
        result = Ledger(transactions).filter_by_category("A")
        assert [t.id for t in result] == ["t1", "t3"]

    def test_filter_by_category_all_sentinel(self, scenario):
        transactions, _ = scenario
        ledger = Ledger(transactions)
        assert ledger.filter_by_category(ALL) == ledger

    def test_filters_do_not_mutate_input(self, scenario):
        transactions, _ = scenario
        ledger = Ledger(transactions)
        ledger.filter_by_month("2024-05").filter_by_category("B")
        assert len(ledger) == 3
        assert [t.id for t in transactions] == ["t1", "t2", "t3"]

    def test_filter_by_owner_and_kind(self, scenario):
        transactions, _ = scenario
        other = Transaction(
            kind=TransactionKind.INCOME,
            amount=5,
            category_key="X",
            date="2024-05-01",
            owner_id="u2",
        )
        ledger = Ledger(transactions + [other])
        assert len(ledger.filter_by_owner("u1")) == 3
        assert len(ledger.filter_by_kind(TransactionKind.INCOME)) == 1

    def test_month_and_category_filters_commute(self, wide_ledger):
        months = {"2023-03", "2023-04", "2024-05", "2024-06"}
        categories = ["A", "B", "C", "missing", ALL]
        for month, key in itertools.product(sorted(months), categories):
            left = wide_ledger.filter_by_month(month).filter_by_category(key)
            right = wide_ledger.filter_by_category(key).filter_by_month(month)
            assert left == right, (month, key)

    def test_financial_year_and_category_filters_commute(self, wide_ledger):
        for year, key in itertools.product(["2022-2023", "2023-2024", "2024-2025"], ["A", "C"]):
            left = wide_ledger.filter_by_financial_year(year).filter_by_category(key)
            right = wide_ledger.filter_by_category(key).filter_by_financial_year(year)
            assert left == right

    def test_apply_selector(self, wide_ledger):
        selector = PeriodSelector.for_financial_year("2023-2024", category_key="B")
        expected = wide_ledger.filter_by_financial_year("2023-2024").filter_by_category("B")
        assert wide_ledger.apply(selector) == expected

    def test_newest_first(self, scenario):
        transactions, _ = scenario
        assert [t.id for t in Ledger(transactions).newest_first()] == ["t2", "t1", "t3"]

    def test_largest_first_is_stable(self):
        transactions = [
            make_spend(10, "A", "2024-05-01", "x"),
            make_spend(30, "A", "2024-05-02", "y"),
            make_spend(10, "A", "2024-05-03", "z"),
        ]
        assert [t.id for t in Ledger(transactions).largest_first()] == ["y", "x", "z"]


class TestTotals:
    """Tests for sums and grouping."""

    def test_total_amount_empty(self):
        assert total_amount([]) == 0
        assert total_amount(Ledger()) == 0

    def test_total_amount_is_order_invariant(self, wide_ledger):
        forward = list(wide_ledger)
        assert total_amount(forward) == total_amount(reversed(forward))
        assert total_amount(forward) == sum(t.amount for t in forward)

    def test_scenario_month_totals_by_category(self, scenario):
        transactions, _ = scenario
        may = Ledger(transactions).filter_by_month("2024-05")
        assert totals_by_category(may) == {"A": 100, "B": 50}

    def test_totals_by_category_omits_empty_categories(self, scenario):
        transactions, categories = scenario
        only_a = Ledger(transactions).filter_by_category("A")
        totals = totals_by_category(only_a, categories)
        assert totals == {"A": 125}
        assert "B" not in totals

    def test_totals_by_category_skips_unknown_keys(self, scenario):
        transactions, categories = scenario
        stray = make_spend(999, "deleted", "2024-05-02")
        totals = totals_by_category(transactions + [stray], categories)
        assert totals == {"A": 125, "B": 50}

    def test_totals_by_category_without_snapshot_keeps_all_keys(self, scenario):
        transactions, _ = scenario
        stray = make_spend(999, "deleted", "2024-05-02")
        assert totals_by_category(transactions + [stray])["deleted"] == 999

    def test_totals_by_category_skips_receivables(self):
        receivable = Transaction(
            kind=TransactionKind.RECEIVABLE,
            amount=500,
            date="2024-05-02",
            owner_id="u1",
            name="Ravi",
            purpose="Dinner",
        )
        assert totals_by_category([receivable]) == {}

    def test_totals_by_month(self, scenario):
        transactions, _ = scenario
        assert totals_by_month(transactions) == {"2024-05": 150, "2023-12": 25}
        assert list(totals_by_month(transactions)) == ["2024-05", "2023-12"]

    def test_totals_by_financial_year(self, wide_ledger):
        by_year = totals_by_financial_year(wide_ledger)
        assert list(by_year) == ["2024-2025", "2023-2024", "2022-2023"]
        assert sum(by_year.values()) == total_amount(wide_ledger)


class TestRankedCategoryTotals:
    """Tests for the ranked breakdown."""

    def test_includes_zero_total_categories(self, scenario):
        transactions, categories = scenario
        extra = categories + [make_category("C")]
        ranked = ranked_category_totals(transactions, extra)
        assert len(ranked) == 3
        assert ranked[-1].category.id == "C"
        assert ranked[-1].total == 0

    def test_sorted_descending(self, scenario):
        transactions, categories = scenario
        ranked = ranked_category_totals(transactions, categories)
        assert [(r.category.id, r.total) for r in ranked] == [("A", 125), ("B", 50)]

    def test_ties_keep_category_order(self):
        categories = [make_category(c) for c in ["P", "Q", "R", "S"]]
        transactions = [
            make_spend(10, "R", "2024-05-01"),
            make_spend(10, "Q", "2024-05-01"),
            make_spend(20, "S", "2024-05-01"),
        ]
        ranked = ranked_category_totals(transactions, categories)
        assert [r.category.id for r in ranked] == ["S", "Q", "R", "P"]

    def test_length_and_ordering_hold_for_every_filter(self, wide_ledger):
        categories = [make_category(c) for c in ["A", "B", "C", "D"]]
        for month in ["2023-03", "2024-05", "2030-01"]:
            ranked = ranked_category_totals(wide_ledger.filter_by_month(month), categories)
            assert len(ranked) == len(categories)
            totals = [r.total for r in ranked]
            assert totals == sorted(totals, reverse=True)

    def test_empty_ledger(self, scenario):
        _, categories = scenario
        ranked = ranked_category_totals([], categories)
        assert [(r.category.id, r.total) for r in ranked] == [("A", 0), ("B", 0)]


class TestAvailableFinancialYears:
    """Tests for the financial-year picker values."""

    def test_scenario(self, scenario):
        transactions, _ = scenario
        assert available_financial_years(transactions) == ["2024-2025", "2023-2024"]

    def test_distinct_and_most_recent_first(self, wide_ledger):
        assert available_financial_years(wide_ledger) == [
            "2024-2025", "2023-2024", "2022-2023",
        ]

    def test_empty(self):
        assert available_financial_years([]) == []


class TestDashboardTotals:
    """Tests for the combined dashboard computation."""

    def test_month_dashboard(self, scenario):
        transactions, categories = scenario
        totals = compute_dashboard_totals(
            transactions, categories, PeriodSelector.for_month("2024-05")
        )
        assert totals.total == 150
        assert [(r.category.id, r.total) for r in totals.ranked_breakdown] == [
            ("A", 100), ("B", 50),
        ]
        assert totals.available_financial_years == ["2024-2025", "2023-2024"]

    def test_available_years_ignore_the_selected_filter(self, scenario):
        transactions, categories = scenario
        totals = compute_dashboard_totals(
            transactions,
            categories,
            PeriodSelector.for_financial_year("2023-2024", category_key="B"),
        )
        assert totals.total == 0
        assert totals.available_financial_years == ["2024-2025", "2023-2024"]

    def test_all_time(self, scenario):
        transactions, categories = scenario
        totals = compute_dashboard_totals(transactions, categories, PeriodSelector.all_time())
        assert totals.total == 175

    def test_does_not_mutate_inputs(self, scenario):
        transactions, categories = scenario
        before = [t.model_dump() for t in transactions]
        compute_dashboard_totals(transactions, categories, PeriodSelector.for_month("2024-05"))
        assert [t.model_dump() for t in transactions] == before
        assert [c.id for c in categories] == ["A", "B"]
