"""
Data Models Package

This package contains all Pydantic models used in fintrack.
All data flowing through the system must conform to these schemas.
"""

from fintrack.models.finance import (
    ALL,
    Category,
    CategoryTotal,
    DashboardTotals,
    PeriodScope,
    PeriodSelector,
    QueryResult,
    StatementQuery,
    Transaction,
    TransactionKind,
    ValidationIssue,
    ValidationResult,
)
from fintrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "ALL",
    "Category",
    "CategoryTotal",
    "DashboardTotals",
    "PeriodScope",
    "PeriodSelector",
    "QueryResult",
    "StatementQuery",
    "Transaction",
    "TransactionKind",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
