"""
Audit Logger

DESIGN DECISION: Every write to the ledger is logged.
This provides:
1. Complete traceability
2. Debugging capability, especially for rolled-back cascades
3. A user-visible history of their changes

The audit logger:
- Is async to match the storage interface
- Gracefully handles failures (never crashes the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from fintrack.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from fintrack.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("fintrack.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity is AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity is AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_category_added(
        self,
        owner_id: str,
        category_id: str,
        name: str,
        kind: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.category_added(
            owner_id=owner_id,
            category_id=category_id,
            name=name,
            kind=kind,
            correlation_id=correlation_id,
        ))

    async def log_category_edited(
        self,
        owner_id: str,
        category_id: str,
        old_name: str,
        new_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.category_edited(
            owner_id=owner_id,
            category_id=category_id,
            old_name=old_name,
            new_name=new_name,
            correlation_id=correlation_id,
        ))

    async def log_category_deleted(
        self,
        owner_id: str,
        category_id: str,
        removed_transactions: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.category_deleted(
            owner_id=owner_id,
            category_id=category_id,
            removed_transactions=removed_transactions,
            correlation_id=correlation_id,
        ))

    async def log_cascade_delete_failed(
        self,
        owner_id: str,
        category_id: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.cascade_delete_failed(
            owner_id=owner_id,
            category_id=category_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_transaction_added(
        self,
        owner_id: str,
        transaction_id: str,
        kind: str,
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_added(
            owner_id=owner_id,
            transaction_id=transaction_id,
            kind=kind,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_transaction_edited(
        self,
        owner_id: str,
        transaction_id: str,
        changes: dict[str, Any],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_edited(
            owner_id=owner_id,
            transaction_id=transaction_id,
            changes=changes,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        owner_id: str,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            owner_id=owner_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        owner_id: str,
        transaction_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            owner_id=owner_id,
            transaction_id=transaction_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_query_executed(
        self,
        owner_id: str,
        query_id: UUID,
        view: str,
        result_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.query_executed(
            owner_id=owner_id,
            query_id=query_id,
            view=view,
            result_count=result_count,
            correlation_id=correlation_id,
        ))

    async def log_query_failed(
        self,
        owner_id: str,
        query_id: UUID,
        view: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.query_failed(
            owner_id=owner_id,
            query_id=query_id,
            view=view,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        owner_id: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            owner_id=owner_id,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action and pass it through
    all subsequent operations.
    """
    return uuid4()
