"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the aggregation core decoupled from persistence

Every read and write is scoped by owner_id. There is no sharing.

CASCADING DELETE: delete_category removes the dependent transactions and
then the category itself. Implementations MUST make this all-or-nothing:
if either step fails, the ledger is left exactly as it was and
CascadeDeleteError is raised.
"""

from abc import ABC, abstractmethod
from typing import Optional

from fintrack.models.audit import AuditEvent
from fintrack.models.finance import Category, Transaction, TransactionKind


class LedgerStorageInterface(ABC):
    """
    Abstract interface for category and transaction storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_category(self, category: Category) -> Category:
        """
        Save a new category.

        Raises:
            DuplicateError: If the ID is already taken
            StorageError: If the save fails
        """
        pass

    @abstractmethod
    async def edit_category(
        self,
        owner_id: str,
        category_id: str,
        name: str,
    ) -> Category:
        """
        Rename a category. The name is the only editable field.

        Raises:
            NotFoundError: If the owner has no such category
        """
        pass

    @abstractmethod
    async def delete_category(self, owner_id: str, category_id: str) -> int:
        """
        Delete a category and every transaction referencing it.

        Returns:
            Number of dependent transactions removed

        Raises:
            NotFoundError: If the owner has no such category
            CascadeDeleteError: If the delete failed; nothing was changed
        """
        pass

    @abstractmethod
    async def get_category(
        self,
        owner_id: str,
        category_id: str,
    ) -> Optional[Category]:
        """Retrieve one category, or None."""
        pass

    @abstractmethod
    async def list_categories(
        self,
        owner_id: str,
        kind: Optional[TransactionKind] = None,
    ) -> list[Category]:
        """
        List an owner's categories, ordered by name.

        Args:
            owner_id: Whose categories
            kind: Restrict to one ledger
        """
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def add_transaction(self, transaction: Transaction) -> Transaction:
        """
        Save a new transaction.

        Raises:
            UnknownCategoryKey: If a categorized entry references a category
                the owner does not have for that kind
            DuplicateError: If the ID is already taken
        """
        pass

    @abstractmethod
    async def edit_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace an existing transaction (matched by id and owner).

        Raises:
            NotFoundError: If the owner has no such transaction
            UnknownCategoryKey: If the new category key is unknown
        """
        pass

    @abstractmethod
    async def delete_transaction(self, owner_id: str, transaction_id: str) -> bool:
        """
        Delete one transaction.

        Returns:
            True if something was deleted
        """
        pass

    @abstractmethod
    async def get_transaction(
        self,
        owner_id: str,
        transaction_id: str,
    ) -> Optional[Transaction]:
        """Retrieve one transaction, or None."""
        pass

    @abstractmethod
    async def list_transactions(
        self,
        owner_id: str,
        kind: Optional[TransactionKind] = None,
        category_key: Optional[str] = None,
    ) -> list[Transaction]:
        """
        List an owner's transactions in insertion order.

        Period filtering is the aggregation core's job, not storage's.

        Args:
            owner_id: Whose transactions
            kind: Restrict to one ledger
            category_key: Restrict to one category
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """All events for one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class CascadeDeleteError(StorageError):
    """A cascading category delete failed and was rolled back."""

    def __init__(self, category_id: str, cause: Exception):
        self.category_id = category_id
        self.cause = cause
        super().__init__(
            f"Deleting category {category_id} failed and was rolled back: {cause}"
        )
