"""
In-Memory Storage Implementation

Backs tests and local runs without any external service.

Writes are serialized with an asyncio.Lock. The cascading category
delete snapshots both tables before touching them and restores the
snapshot if any step fails, so a half-deleted category is never
observable.
"""

import asyncio
from typing import Iterable, Optional

from fintrack.aggregation import UnknownCategoryKey
from fintrack.models.audit import AuditEvent
from fintrack.models.finance import Category, Transaction, TransactionKind
from fintrack.services.storage.interface import (
    AuditStorageInterface,
    CascadeDeleteError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dictionary-backed ledger storage. Insertion order is preserved."""

    def __init__(
        self,
        categories: Iterable[Category] = (),
        transactions: Iterable[Transaction] = (),
    ):
        self._categories: dict[str, Category] = {c.id: c for c in categories}
        self._transactions: dict[str, Transaction] = {t.id: t for t in transactions}
        self._lock = asyncio.Lock()

    def _owned_category(self, owner_id: str, category_id: str) -> Optional[Category]:
        category = self._categories.get(category_id)
        if category is None or category.owner_id != owner_id:
            return None
        return category

    def _check_category_key(self, transaction: Transaction) -> None:
        if not transaction.kind.is_categorized:
            return
        category = self._owned_category(transaction.owner_id, transaction.category_key)
        if category is None or category.kind != transaction.kind:
            raise UnknownCategoryKey(transaction.category_key)

    # Single-row removals; the cascade is built from these
    def _remove_transaction(self, transaction_id: str) -> None:
        del self._transactions[transaction_id]

    def _remove_category(self, category_id: str) -> None:
        del self._categories[category_id]

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def add_category(self, category: Category) -> Category:
        async with self._lock:
            if category.id in self._categories:
                raise DuplicateError(f"Category already exists: {category.id}")
            self._categories[category.id] = category.model_copy()
            return category

    async def edit_category(
        self,
        owner_id: str,
        category_id: str,
        name: str,
    ) -> Category:
        async with self._lock:
            category = self._owned_category(owner_id, category_id)
            if category is None:
                raise NotFoundError(f"Category not found: {category_id}")
            # Re-validate so the name rules still apply
            updated = Category.model_validate({**category.model_dump(), "name": name})
            self._categories[category_id] = updated
            return updated.model_copy()

    async def delete_category(self, owner_id: str, category_id: str) -> int:
        async with self._lock:
            if self._owned_category(owner_id, category_id) is None:
                raise NotFoundError(f"Category not found: {category_id}")

            snapshot = (dict(self._categories), dict(self._transactions))
            dependents = [
                t.id for t in self._transactions.values()
                if t.owner_id == owner_id and t.category_key == category_id
            ]
            try:
                for transaction_id in dependents:
                    self._remove_transaction(transaction_id)
                self._remove_category(category_id)
            except Exception as e:
                self._categories, self._transactions = snapshot
                raise CascadeDeleteError(category_id, e) from e

            return len(dependents)

    async def get_category(
        self,
        owner_id: str,
        category_id: str,
    ) -> Optional[Category]:
        category = self._owned_category(owner_id, category_id)
        return category.model_copy() if category else None

    async def list_categories(
        self,
        owner_id: str,
        kind: Optional[TransactionKind] = None,
    ) -> list[Category]:
        categories = [
            c.model_copy() for c in self._categories.values()
            if c.owner_id == owner_id and (kind is None or c.kind == kind)
        ]
        categories.sort(key=lambda c: c.name)
        return categories

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            if transaction.id in self._transactions:
                raise DuplicateError(f"Transaction already exists: {transaction.id}")
            self._check_category_key(transaction)
            self._transactions[transaction.id] = transaction.model_copy()
            return transaction

    async def edit_transaction(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            existing = self._transactions.get(transaction.id)
            if existing is None or existing.owner_id != transaction.owner_id:
                raise NotFoundError(f"Transaction not found: {transaction.id}")
            self._check_category_key(transaction)
            self._transactions[transaction.id] = transaction.model_copy()
            return transaction

    async def delete_transaction(self, owner_id: str, transaction_id: str) -> bool:
        async with self._lock:
            existing = self._transactions.get(transaction_id)
            if existing is None or existing.owner_id != owner_id:
                return False
            self._remove_transaction(transaction_id)
            return True

    async def get_transaction(
        self,
        owner_id: str,
        transaction_id: str,
    ) -> Optional[Transaction]:
        transaction = self._transactions.get(transaction_id)
        if transaction is None or transaction.owner_id != owner_id:
            return None
        return transaction.model_copy()

    async def list_transactions(
        self,
        owner_id: str,
        kind: Optional[TransactionKind] = None,
        category_key: Optional[str] = None,
    ) -> list[Transaction]:
        return [
            t.model_copy() for t in self._transactions.values()
            if t.owner_id == owner_id
            and (kind is None or t.kind == kind)
            and (category_key is None or t.category_key == category_key)
        ]


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
