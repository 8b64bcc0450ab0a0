"""
Audit Models for fintrack

Every write to the ledger is recorded as an audit event. This provides:
1. Complete traceability of creates, edits and deletes
2. Debugging information when a cascade fails and is rolled back
3. The ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Categories
    CATEGORY_ADDED = "category_added"
    CATEGORY_EDITED = "category_edited"
    CATEGORY_DELETED = "category_deleted"
    CASCADE_DELETE_FAILED = "cascade_delete_failed"

    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_EDITED = "transaction_edited"
    TRANSACTION_DELETED = "transaction_deleted"
    VALIDATION_FAILED = "validation_failed"

    # Queries
    QUERY_EXECUTED = "query_executed"
    QUERY_FAILED = "query_failed"

    # Storage
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - who and what is this about?
    owner_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'category', 'transaction', 'query')"
    )
    entity_id: Optional[str] = None
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., a cascade and its rollback)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.category_added(owner_id, category_id, "Salary", "income")
        event = AuditEventBuilder.category_deleted(owner_id, category_id, removed=3)
    """

    @staticmethod
    def category_added(
        owner_id: str,
        category_id: str,
        name: str,
        kind: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_ADDED,
            owner_id=owner_id,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"{kind.capitalize()} category added: {name}",
            details={"name": name, "kind": kind},
            is_user_action=True,
        )

    @staticmethod
    def category_edited(
        owner_id: str,
        category_id: str,
        old_name: str,
        new_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_EDITED,
            owner_id=owner_id,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category renamed: {old_name} -> {new_name}",
            details={"old_name": old_name, "new_name": new_name},
            is_user_action=True,
        )

    @staticmethod
    def category_deleted(
        owner_id: str,
        category_id: str,
        removed_transactions: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            owner_id=owner_id,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=(
                f"Category deleted with {removed_transactions} dependent entries"
            ),
            details={"removed_transactions": removed_transactions},
            is_user_action=True,
        )

    @staticmethod
    def cascade_delete_failed(
        owner_id: str,
        category_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CASCADE_DELETE_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description="Category delete failed and was rolled back",
            error_message=error_message,
        )

    @staticmethod
    def transaction_added(
        owner_id: str,
        transaction_id: str,
        kind: str,
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{kind.capitalize()} entry added: {amount}",
            details={"kind": kind, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_edited(
        owner_id: str,
        transaction_id: str,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_EDITED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Entry edited: {', '.join(sorted(changes)) or 'no changes'}",
            details={"changes": changes},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        owner_id: str,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Entry deleted",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        owner_id: str,
        transaction_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def query_executed(
        owner_id: str,
        query_id: UUID,
        view: str,
        result_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_EXECUTED,
            severity=AuditSeverity.DEBUG,
            owner_id=owner_id,
            entity_type="query",
            entity_id=str(query_id),
            correlation_id=correlation_id,
            description=f"Query executed: {view} returned {result_count} results",
            details={"view": view, "result_count": result_count},
        )

    @staticmethod
    def query_failed(
        owner_id: str,
        query_id: UUID,
        view: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="query",
            entity_id=str(query_id),
            correlation_id=correlation_id,
            description=f"Query failed: {view}",
            error_message=error_message,
            details={"view": view},
        )

    @staticmethod
    def storage_error(
        owner_id: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
