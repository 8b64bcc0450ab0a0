"""Services package."""

from fintrack.services.storage import (
    AuditStorageInterface,
    CascadeDeleteError,
    ConnectionError,
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

__all__ = [
    "AuditStorageInterface",
    "CascadeDeleteError",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
]
