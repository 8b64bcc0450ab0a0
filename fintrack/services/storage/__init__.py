"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the hosted backend; the in-memory backend serves tests
and local runs.
"""

from fintrack.services.storage.interface import (
    AuditStorageInterface,
    CascadeDeleteError,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from fintrack.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from fintrack.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "CascadeDeleteError",
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
