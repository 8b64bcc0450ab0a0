"""
Main Orchestrator for fintrack

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger writes (validate → persist → audit)
2. Dashboards and statements (fetch snapshot → aggregate)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No entry persists without passing validation
- Aggregation never touches storage; it only sees a fresh snapshot
- The selected period is always an explicit argument
- Every write is audited, including rolled-back cascades
"""

import datetime as dt
from contextlib import asynccontextmanager
from typing import Any, Optional
from uuid import UUID

import structlog

from fintrack.aggregation import compute_dashboard_totals
from fintrack.audit import AuditLogger, configure_logging, create_correlation_id
from fintrack.config import get_settings
from fintrack.models.finance import (
    Category,
    DashboardTotals,
    PeriodSelector,
    QueryResult,
    StatementQuery,
    Transaction,
    TransactionKind,
    ValidationResult,
)
from fintrack.queries import QueryExecutor
from fintrack.services.storage import (
    CascadeDeleteError,
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from fintrack.validation import TransactionValidator


logger = structlog.get_logger(__name__)

EDITABLE_TRANSACTION_FIELDS = ("amount", "category_key", "date", "name", "purpose")


class TransactionRejectedError(Exception):
    """A proposed entry failed validation and was not saved."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(i.message for i in result.issues if i.severity == "error")
        super().__init__(f"Entry rejected: {messages}")


class LedgerFlow:
    """
    Orchestrates every write to the ledger.

    Categories: add → edit (name only) → delete (cascades to entries).
    Entries: add → edit → delete, each validated before persisting.
    """

    def __init__(
        self,
        ledger_storage: LedgerStorageInterface,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = ledger_storage
        self._validator = validator or TransactionValidator(ledger_storage)
        self._audit_logger = audit_logger

    @asynccontextmanager
    async def _storage_errors(
        self,
        owner_id: str,
        operation: str,
        correlation_id: Optional[UUID],
    ):
        """Audit backend failures; caller mistakes and cascades pass through."""
        try:
            yield
        except (NotFoundError, DuplicateError, CascadeDeleteError):
            raise
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    owner_id=owner_id,
                    operation=operation,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def add_category(
        self,
        owner_id: str,
        kind: TransactionKind,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        async with self._storage_errors(owner_id, "add_category", correlation_id):
            category = await self._storage.add_category(
                Category(owner_id=owner_id, kind=kind, name=name)
            )

        if self._audit_logger:
            await self._audit_logger.log_category_added(
                owner_id=owner_id,
                category_id=category.id,
                name=category.name,
                kind=category.kind.value,
                correlation_id=correlation_id,
            )

        return category

    async def edit_category(
        self,
        owner_id: str,
        category_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        existing = await self._storage.get_category(owner_id, category_id)
        if existing is None:
            raise NotFoundError(f"Category not found: {category_id}")

        async with self._storage_errors(owner_id, "edit_category", correlation_id):
            updated = await self._storage.edit_category(owner_id, category_id, name)

        if self._audit_logger:
            await self._audit_logger.log_category_edited(
                owner_id=owner_id,
                category_id=category_id,
                old_name=existing.name,
                new_name=updated.name,
                correlation_id=correlation_id,
            )

        return updated

    async def delete_category(
        self,
        owner_id: str,
        category_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete a category together with all of its entries.

        Returns the number of entries removed. If the cascade fails,
        storage has already rolled it back; the failure is audited and
        re-raised.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            async with self._storage_errors(owner_id, "delete_category", correlation_id):
                removed = await self._storage.delete_category(owner_id, category_id)
        except CascadeDeleteError as e:
            if self._audit_logger:
                await self._audit_logger.log_cascade_delete_failed(
                    owner_id=owner_id,
                    category_id=category_id,
                    error_message=str(e.cause),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_category_deleted(
                owner_id=owner_id,
                category_id=category_id,
                removed_transactions=removed,
                correlation_id=correlation_id,
            )

        return removed

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def _validate_or_reject(
        self,
        transaction: Transaction,
        today: Optional[dt.date],
        correlation_id: Optional[UUID],
    ) -> ValidationResult:
        result = await self._validator.validate(transaction, today=today)
        if not result.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    owner_id=transaction.owner_id,
                    transaction_id=transaction.id,
                    issues=[
                        {"field": i.field, "type": i.issue_type, "message": i.message}
                        for i in result.issues
                    ],
                    correlation_id=correlation_id,
                )
            raise TransactionRejectedError(result)
        return result

    async def add_transaction(
        self,
        owner_id: str,
        kind: TransactionKind,
        amount: int,
        date: Any,
        category_key: Optional[str] = None,
        name: Optional[str] = None,
        purpose: Optional[str] = None,
        today: Optional[dt.date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, ValidationResult]:
        """
        Validate and save a new entry.

        Returns:
            (saved_transaction, validation_result) - the result may carry
            warnings the caller should show

        Raises:
            TransactionRejectedError: If validation found errors
        """
        transaction = Transaction(
            owner_id=owner_id,
            kind=kind,
            amount=amount,
            date=date,
            category_key=category_key,
            name=name,
            purpose=purpose,
        )
        result = await self._validate_or_reject(transaction, today, correlation_id)

        async with self._storage_errors(owner_id, "add_transaction", correlation_id):
            saved = await self._storage.add_transaction(transaction)

        if self._audit_logger:
            await self._audit_logger.log_transaction_added(
                owner_id=owner_id,
                transaction_id=saved.id,
                kind=saved.kind.value,
                amount=saved.amount,
                correlation_id=correlation_id,
            )

        return saved, result

    async def edit_transaction(
        self,
        owner_id: str,
        transaction_id: str,
        today: Optional[dt.date] = None,
        correlation_id: Optional[UUID] = None,
        **changes: Any,
    ) -> tuple[Transaction, ValidationResult]:
        """
        Apply changes to an entry and save it.

        Only amount, category_key, date, name and purpose can change.
        """
        unknown = set(changes) - set(EDITABLE_TRANSACTION_FIELDS)
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        existing = await self._storage.get_transaction(owner_id, transaction_id)
        if existing is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        updated = Transaction.model_validate({**existing.model_dump(), **changes})
        result = await self._validate_or_reject(updated, today, correlation_id)

        async with self._storage_errors(owner_id, "edit_transaction", correlation_id):
            saved = await self._storage.edit_transaction(updated)

        if self._audit_logger:
            diff = {
                field: str(getattr(saved, field))
                for field in changes
                if getattr(saved, field) != getattr(existing, field)
            }
            await self._audit_logger.log_transaction_edited(
                owner_id=owner_id,
                transaction_id=transaction_id,
                changes=diff,
                correlation_id=correlation_id,
            )

        return saved, result

    async def delete_transaction(
        self,
        owner_id: str,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        async with self._storage_errors(owner_id, "delete_transaction", correlation_id):
            deleted = await self._storage.delete_transaction(owner_id, transaction_id)

        if deleted and self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                owner_id=owner_id,
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            )

        return deleted


class DashboardFlow:
    """
    Read side: fetch a fresh snapshot, then aggregate.

    There is no cached state here. Every call re-reads storage, so a
    view after a write always reflects that write.
    """

    def __init__(
        self,
        ledger_storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = ledger_storage
        self._query_executor = QueryExecutor(ledger_storage)
        self._audit_logger = audit_logger

    async def dashboard_totals(
        self,
        owner_id: str,
        kind: TransactionKind,
        selector: Optional[PeriodSelector] = None,
    ) -> DashboardTotals:
        """Total, ranked breakdown and available years for one ledger."""
        selector = selector or PeriodSelector.all_time()
        categories = []
        if kind.is_categorized:
            categories = await self._storage.list_categories(owner_id, kind)
        transactions = await self._storage.list_transactions(owner_id, kind)
        return compute_dashboard_totals(transactions, categories, selector)

    async def run_query(
        self,
        query: StatementQuery,
        correlation_id: Optional[UUID] = None,
    ) -> QueryResult:
        result = await self._query_executor.execute(query)

        if self._audit_logger:
            if result.success:
                await self._audit_logger.log_query_executed(
                    owner_id=query.owner_id,
                    query_id=query.query_id,
                    view=query.view,
                    result_count=result.result_count,
                    correlation_id=correlation_id,
                )
            else:
                await self._audit_logger.log_query_failed(
                    owner_id=query.owner_id,
                    query_id=query.query_id,
                    view=query.view,
                    error_message=result.error_message or "",
                    correlation_id=correlation_id,
                )

        return result


def create_app_components(
    use_storage: bool = True,
) -> tuple[LedgerFlow, DashboardFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to try Google Sheets storage. Falls back to
                    in-memory storage when False or when Sheets is not
                    configured.

    Returns:
        (ledger_flow, dashboard_flow, sheets_client)
    """
    configure_logging(get_settings().app.log_level)

    sheets_client = None
    ledger_storage = None
    audit_storage = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            ledger_storage = None

    if ledger_storage is None:
        ledger_storage = InMemoryLedgerStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)

    ledger_flow = LedgerFlow(
        ledger_storage=ledger_storage,
        audit_logger=audit_logger,
    )
    dashboard_flow = DashboardFlow(
        ledger_storage=ledger_storage,
        audit_logger=audit_logger,
    )

    return ledger_flow, dashboard_flow, sheets_client
