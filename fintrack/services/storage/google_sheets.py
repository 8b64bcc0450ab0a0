"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the hosted storage backend because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions, so the cascading category delete uses a compensating
  action: removed transaction rows are inserted back at their original
  indices if a later step fails
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing the aggregation core.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fintrack.aggregation import UnknownCategoryKey
from fintrack.config import get_settings
from fintrack.models.audit import AuditEvent, AuditEventType, AuditSeverity
from fintrack.models.finance import Category, Transaction, TransactionKind
from fintrack.services.storage.interface import (
    AuditStorageInterface,
    CascadeDeleteError,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


logger = structlog.get_logger(__name__)


CATEGORY_COLUMNS = [
    "id",
    "owner_id",
    "kind",
    "name",
]

TRANSACTION_COLUMNS = [
    "id",
    "owner_id",
    "kind",
    "amount",
    "category_key",
    "date",
    "name",
    "purpose",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Caller mistakes are not worth retrying
_api_retry = retry(
    retry=retry_if_not_exception_type(
        (DuplicateError, NotFoundError, UnknownCategoryKey)
    ),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, worksheet creation and retries.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @_api_retry
    def connect(self) -> gspread.Client:
        """Authenticate with service account credentials."""
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_categories_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.categories_sheet_name, CATEGORY_COLUMNS, rows=200
        )

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, rows=5000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Categories and transactions each live in their own worksheet,
    one entity per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    @staticmethod
    def _category_to_row(category: Category) -> list:
        return [
            category.id,
            category.owner_id,
            category.kind.value,
            category.name,
        ]

    @staticmethod
    def _row_to_category(row: list) -> Category:
        return Category(
            id=_safe_get(row, 0),
            owner_id=_safe_get(row, 1),
            kind=TransactionKind(_safe_get(row, 2)),
            name=_safe_get(row, 3),
        )

    @staticmethod
    def _transaction_to_row(transaction: Transaction) -> list:
        return [
            transaction.id,
            transaction.owner_id,
            transaction.kind.value,
            str(transaction.amount),
            transaction.category_key or "",
            transaction.date.isoformat(),
            transaction.name or "",
            transaction.purpose or "",
        ]

    @staticmethod
    def _row_to_transaction(row: list) -> Transaction:
        return Transaction(
            id=_safe_get(row, 0),
            owner_id=_safe_get(row, 1),
            kind=TransactionKind(_safe_get(row, 2)),
            amount=int(_safe_get(row, 3, "0")),
            category_key=_safe_get(row, 4) or None,
            date=_safe_get(row, 5),
            name=_safe_get(row, 6) or None,
            purpose=_safe_get(row, 7) or None,
        )

    def _find_row(
        self,
        sheet: gspread.Worksheet,
        entity_id: str,
        owner_id: str,
    ) -> Optional[tuple[int, list]]:
        """1-based sheet row index and values of an owned entity."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == entity_id and _safe_get(row, 1) == owner_id:
                return idx, row
        return None

    def _categories(self, owner_id: str) -> list[Category]:
        categories = []
        for row in self._client.get_categories_sheet().get_all_values()[1:]:
            if not row or not row[0] or _safe_get(row, 1) != owner_id:
                continue
            try:
                categories.append(self._row_to_category(row))
            except Exception:
                logger.warning("malformed_category_row_skipped", row_id=row[0])
        return categories

    def _check_category_key(self, transaction: Transaction) -> None:
        if not transaction.kind.is_categorized:
            return
        for category in self._categories(transaction.owner_id):
            if category.id == transaction.category_key and category.kind == transaction.kind:
                return
        raise UnknownCategoryKey(transaction.category_key)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @_api_retry
    async def add_category(self, category: Category) -> Category:
        try:
            sheet = self._client.get_categories_sheet()
            if any(row and row[0] == category.id for row in sheet.get_all_values()[1:]):
                raise DuplicateError(f"Category already exists: {category.id}")
            sheet.append_row(self._category_to_row(category), value_input_option="RAW")
            return category
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save category: {e}")

    async def edit_category(
        self,
        owner_id: str,
        category_id: str,
        name: str,
    ) -> Category:
        try:
            sheet = self._client.get_categories_sheet()
            found = self._find_row(sheet, category_id, owner_id)
            if found is None:
                raise NotFoundError(f"Category not found: {category_id}")
            idx, row = found
            current = self._row_to_category(row)
            updated = Category.model_validate({**current.model_dump(), "name": name})
            sheet.update(range_name=f"A{idx}", values=[self._category_to_row(updated)])
            return updated
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update category: {e}")

    async def delete_category(self, owner_id: str, category_id: str) -> int:
        """
        Delete dependents, then the category, with compensation on failure.

        Dependent rows are deleted bottom-up so earlier indices stay valid.
        If a later step fails, every row removed so far is inserted back at
        its original index, so row order is unchanged.
        """
        categories_sheet = self._client.get_categories_sheet()
        if self._find_row(categories_sheet, category_id, owner_id) is None:
            raise NotFoundError(f"Category not found: {category_id}")

        transactions_sheet = self._client.get_transactions_sheet()
        dependents = [
            (idx, row)
            for idx, row in enumerate(transactions_sheet.get_all_values()[1:], start=2)
            if row and _safe_get(row, 1) == owner_id and _safe_get(row, 4) == category_id
        ]

        removed: list[tuple[int, list]] = []
        try:
            for idx, row in reversed(dependents):
                transactions_sheet.delete_rows(idx)
                removed.append((idx, row))

            # Re-locate: the categories sheet may have shifted since the check
            found = self._find_row(categories_sheet, category_id, owner_id)
            if found is None:
                raise NotFoundError(f"Category vanished during delete: {category_id}")
            categories_sheet.delete_rows(found[0])
        except Exception as e:
            self._restore_rows(transactions_sheet, removed, category_id)
            raise CascadeDeleteError(category_id, e) from e

        return len(dependents)

    def _restore_rows(
        self,
        sheet: gspread.Worksheet,
        removed: list[tuple[int, list]],
        category_id: str,
    ) -> None:
        """
        Put removed rows back at their original indices.

        Rows go back in ascending index order, which recreates the original
        layout. A failure here is logged with the ids that are still missing
        and never replaces the error that triggered the rollback.
        """
        pending = sorted(removed, key=lambda item: item[0])
        while pending:
            idx, row = pending[0]
            try:
                self._insert_row(sheet, row, idx)
            except Exception as e:
                logger.error(
                    "cascade_rollback_failed",
                    category_id=category_id,
                    unrestored_ids=[r[0] for _, r in pending],
                    error=str(e),
                )
                return
            pending.pop(0)

        logger.error(
            "cascade_delete_rolled_back",
            category_id=category_id,
            restored_rows=len(removed),
        )

    @_api_retry
    def _insert_row(self, sheet: gspread.Worksheet, row: list, index: int) -> None:
        sheet.insert_row(row, index=index, value_input_option="RAW")

    async def get_category(
        self,
        owner_id: str,
        category_id: str,
    ) -> Optional[Category]:
        try:
            for category in self._categories(owner_id):
                if category.id == category_id:
                    return category
            return None
        except Exception as e:
            raise StorageError(f"Failed to get category: {e}")

    async def list_categories(
        self,
        owner_id: str,
        kind: Optional[TransactionKind] = None,
    ) -> list[Category]:
        try:
            categories = [
                c for c in self._categories(owner_id)
                if kind is None or c.kind == kind
            ]
            categories.sort(key=lambda c: c.name)
            return categories
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @_api_retry
    async def add_transaction(self, transaction: Transaction) -> Transaction:
        self._check_category_key(transaction)
        try:
            sheet = self._client.get_transactions_sheet()
            if any(row and row[0] == transaction.id for row in sheet.get_all_values()[1:]):
                raise DuplicateError(f"Transaction already exists: {transaction.id}")
            sheet.append_row(
                self._transaction_to_row(transaction), value_input_option="RAW"
            )
            return transaction
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def edit_transaction(self, transaction: Transaction) -> Transaction:
        self._check_category_key(transaction)
        try:
            sheet = self._client.get_transactions_sheet()
            found = self._find_row(sheet, transaction.id, transaction.owner_id)
            if found is None:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            sheet.update(
                range_name=f"A{found[0]}",
                values=[self._transaction_to_row(transaction)],
            )
            return transaction
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def delete_transaction(self, owner_id: str, transaction_id: str) -> bool:
        try:
            sheet = self._client.get_transactions_sheet()
            found = self._find_row(sheet, transaction_id, owner_id)
            if found is None:
                return False
            sheet.delete_rows(found[0])
            return True
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def get_transaction(
        self,
        owner_id: str,
        transaction_id: str,
    ) -> Optional[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            found = self._find_row(sheet, transaction_id, owner_id)
            return self._row_to_transaction(found[1]) if found else None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def list_transactions(
        self,
        owner_id: str,
        kind: Optional[TransactionKind] = None,
        category_key: Optional[str] = None,
    ) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header

            transactions = []
            for row in all_rows:
                if not row or not row[0] or _safe_get(row, 1) != owner_id:
                    continue
                if kind is not None and _safe_get(row, 2) != kind.value:
                    continue
                if category_key is not None and _safe_get(row, 4) != category_key:
                    continue
                try:
                    transactions.append(self._row_to_transaction(row))
                except Exception:
                    logger.warning("malformed_transaction_row_skipped", row_id=row[0])

            return transactions
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _row_to_event(row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            owner_id=_safe_get(row, 4) or None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=_safe_get(row, 6) or None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    def _all_events(self) -> list[AuditEvent]:
        events = []
        for row in self._client.get_audit_sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                logger.warning("malformed_audit_row_skipped", row_id=row[0])
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Never raises: audit must not break the main flow."""
        try:
            self._append_row(event.to_sheets_row())
            return True
        except Exception as e:
            logger.error("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    @_api_retry
    def _append_row(self, row: list) -> None:
        self._client.get_audit_sheet().append_row(row, value_input_option="RAW")

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._all_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._all_events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
