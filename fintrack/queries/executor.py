"""
Statement Query Engine

DESIGN DECISION: Query execution is a thin shell around the pure
aggregation core. Each query:

1. Fetches a fresh snapshot (categories + transactions) for one owner
   and one ledger kind
2. Hands the snapshot and the query's explicit PeriodSelector to the
   aggregation functions
3. Packages the result with a human-readable description

Nothing is cached between queries; after any write the next query
simply recomputes from storage.
"""

from typing import Optional

import structlog

from fintrack.aggregation import (
    Ledger,
    compute_dashboard_totals,
    ranked_category_totals,
    total_amount,
    totals_by_financial_year,
)
from fintrack.config import get_settings
from fintrack.models.finance import (
    ALL,
    Category,
    QueryResult,
    StatementQuery,
    Transaction,
)
from fintrack.queries.formatting import (
    format_amount,
    format_financial_year_label,
    format_period,
)
from fintrack.services.storage import LedgerStorageInterface


logger = structlog.get_logger(__name__)


class QueryExecutionError(Exception):
    """Error during query execution."""
    pass


class QueryExecutor:
    """
    Executes statement queries against ledger storage.

    GUARANTEES:
    - Only returns real data from storage
    - Always recomputes from a full snapshot
    - Clear "no data found" if nothing matches
    """

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage
        self._currency = get_settings().app.currency_symbol

    async def execute(self, query: StatementQuery) -> QueryResult:
        """
        Execute a statement query.

        Failures are reported in the result rather than raised, so a
        broken view never takes the caller down with it.
        """
        try:
            categories = []
            if query.kind.is_categorized:
                categories = await self._storage.list_categories(
                    query.owner_id, query.kind
                )
            transactions = await self._storage.list_transactions(
                query.owner_id, query.kind
            )

            if query.view == "dashboard":
                return self._execute_dashboard(query, transactions, categories)
            elif query.view == "statement":
                return self._execute_statement(query, transactions, categories)
            elif query.view == "categories":
                return self._execute_categories(query, transactions, categories)
            elif query.view == "financial_years":
                return self._execute_financial_years(query, transactions)
            raise QueryExecutionError(f"Unsupported view: {query.view}")

        except Exception as e:
            logger.error(
                "query_failed",
                query_id=str(query.query_id),
                view=query.view,
                error=str(e),
            )
            return QueryResult(
                query_id=query.query_id,
                success=False,
                error_message=str(e),
                data_found=False,
                result_count=0,
                query_description=f"Query failed: {str(e)}",
            )

    def _execute_dashboard(
        self,
        query: StatementQuery,
        transactions: list[Transaction],
        categories: list[Category],
    ) -> QueryResult:
        """Total, ranked breakdown and year list for one ledger."""
        totals = compute_dashboard_totals(transactions, categories, query.selector)
        selected_count = len(Ledger(transactions).apply(query.selector))

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=selected_count > 0,
            result_count=selected_count,
            results=[self._category_total_to_dict(row) for row in totals.ranked_breakdown],
            aggregation_result={
                "total_amount": totals.total,
                "available_financial_years": totals.available_financial_years,
            },
            query_description=(
                f"{self._describe(query, categories)}: "
                f"{format_amount(totals.total, self._currency)}"
            ),
        )

    def _execute_statement(
        self,
        query: StatementQuery,
        transactions: list[Transaction],
        categories: list[Category],
    ) -> QueryResult:
        """The matching entries themselves."""
        selected = Ledger(transactions).apply(query.selector)
        ordered = selected.largest_first() if query.order_by == "amount" else selected.newest_first()
        entries = list(ordered)[:query.limit]

        names = {c.id: c.name for c in categories}
        total = total_amount(selected)

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=len(entries) > 0,
            result_count=len(entries),
            results=[self._transaction_to_dict(t, names) for t in entries],
            aggregation_result={"total_amount": total, "count": len(selected)},
            query_description=(
                f"{self._describe(query, categories)}: {len(selected)} entries, "
                f"{format_amount(total, self._currency)}"
            ),
        )

    def _execute_categories(
        self,
        query: StatementQuery,
        transactions: list[Transaction],
        categories: list[Category],
    ) -> QueryResult:
        """Every category with its total, largest first."""
        selected = Ledger(transactions).apply(query.selector)
        ranked = ranked_category_totals(selected, categories)

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=len(ranked) > 0,
            result_count=len(ranked),
            results=[self._category_total_to_dict(row) for row in ranked],
            aggregation_result={"total_amount": total_amount(selected)},
            query_description=f"{self._describe(query, categories)} by category",
        )

    def _execute_financial_years(
        self,
        query: StatementQuery,
        transactions: list[Transaction],
    ) -> QueryResult:
        """
        Per-year totals for the year picker.

        Only the category filter applies; the period filter is ignored
        since the picker must always offer every year.
        """
        scoped = Ledger(transactions).filter_by_category(query.selector.category_key)
        by_year = totals_by_financial_year(scoped)

        results = [
            {
                "financial_year": bucket,
                "label": format_financial_year_label(bucket),
                "total_amount": total,
            }
            for bucket, total in by_year.items()
        ]

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=len(results) > 0,
            result_count=len(results),
            results=results,
            query_description=f"{query.kind.value.capitalize()} by financial year",
        )

    def _describe(self, query: StatementQuery, categories: list[Category]) -> str:
        parts = [query.kind.value.capitalize(), format_period(query.selector)]
        if query.selector.category_key != ALL:
            name = next(
                (c.name for c in categories if c.id == query.selector.category_key),
                query.selector.category_key,
            )
            parts.append(f"category: {name}")
        return " | ".join(parts)

    def _category_total_to_dict(self, row) -> dict:
        return {
            "category_id": row.category.id,
            "name": row.category.name,
            "total_amount": row.total,
        }

    def _transaction_to_dict(
        self,
        transaction: Transaction,
        category_names: Optional[dict[str, str]] = None,
    ) -> dict:
        category_names = category_names or {}
        return {
            "id": transaction.id,
            "kind": transaction.kind.value,
            "amount": transaction.amount,
            "category_key": transaction.category_key,
            "category_name": category_names.get(transaction.category_key),
            "date": transaction.date.isoformat(),
            "name": transaction.name,
            "purpose": transaction.purpose,
        }
