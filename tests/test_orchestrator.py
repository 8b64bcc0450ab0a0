"""
End-to-end flow tests against the in-memory backends.

Every write goes through LedgerFlow and every read through
DashboardFlow, so these cover validation, persistence, audit and
aggregation together.
"""

import asyncio
from datetime import date

import pytest

from fintrack.audit import AuditLogger
from fintrack.models.audit import AuditEventType
from fintrack.models.finance import PeriodSelector, StatementQuery, TransactionKind
from fintrack.orchestrator import (
    DashboardFlow,
    LedgerFlow,
    TransactionRejectedError,
    create_app_components,
)
from fintrack.services.storage import (
    CascadeDeleteError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    NotFoundError,
    StorageError,
)


TODAY = date(2024, 5, 17)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def app():
    storage = InMemoryLedgerStorage()
    audit_storage = InMemoryAuditStorage()
    audit_logger = AuditLogger(audit_storage)
    ledger = LedgerFlow(storage, audit_logger=audit_logger)
    dashboard = DashboardFlow(storage, audit_logger=audit_logger)
    return ledger, dashboard, storage, audit_storage


def audit_types(audit_storage):
    events = run(audit_storage.get_recent_events())
    return {e.event_type for e in events}


def add_spend(ledger, amount, category_key, day):
    saved, _ = run(ledger.add_transaction(
        owner_id="u1",
        kind=TransactionKind.SPEND,
        amount=amount,
        date=day,
        category_key=category_key,
        name="Lunch",
        today=TODAY,
    ))
    return saved


class TestLedgerFlow:

    def test_add_category_and_transaction(self, app):
        ledger, _, storage, audit_storage = app
        food = run(ledger.add_category("u1", TransactionKind.SPEND, "Food"))
        saved = add_spend(ledger, 250, food.id, "2024-05-03")

        assert run(storage.get_transaction("u1", saved.id)).amount == 250
        assert {
            AuditEventType.CATEGORY_ADDED,
            AuditEventType.TRANSACTION_ADDED,
        } <= audit_types(audit_storage)

    def test_unknown_category_is_rejected_and_not_saved(self, app):
        ledger, _, storage, audit_storage = app
        with pytest.raises(TransactionRejectedError) as exc_info:
            add_spend(ledger, 250, "missing", "2024-05-03")

        assert exc_info.value.result.issues[0].issue_type == "unknown_category"
        assert run(storage.list_transactions("u1")) == []
        assert AuditEventType.VALIDATION_FAILED in audit_types(audit_storage)

    def test_warnings_are_returned_not_blocking(self, app):
        ledger, _, _, _ = app
        food = run(ledger.add_category("u1", TransactionKind.SPEND, "Food"))
        _, result = run(ledger.add_transaction(
            owner_id="u1",
            kind=TransactionKind.SPEND,
            amount=0,
            date="2024-06-01",
            category_key=food.id,
            name="Tea",
            today=TODAY,
        ))
        assert result.is_valid
        assert len(result.warnings) == 2

    def test_edit_transaction(self, app):
        ledger, _, storage, audit_storage = app
        food = run(ledger.add_category("u1", TransactionKind.SPEND, "Food"))
        saved = add_spend(ledger, 250, food.id, "2024-05-03")

        edited, _ = run(ledger.edit_transaction("u1", saved.id, today=TODAY, amount=300))

        assert edited.amount == 300
        assert run(storage.get_transaction("u1", saved.id)).amount == 300
        assert AuditEventType.TRANSACTION_EDITED in audit_types(audit_storage)

    def test_edit_rejects_immutable_fields(self, app):
        ledger, _, _, _ = app
        with pytest.raises(ValueError, match="cannot be edited"):
            run(ledger.edit_transaction("u1", "t1", kind=TransactionKind.INCOME))

    def test_edit_missing_transaction(self, app):
        ledger, _, _, _ = app
        with pytest.raises(NotFoundError):
            run(ledger.edit_transaction("u1", "nope", amount=1))

    def test_edit_category_name(self, app):
        ledger, _, storage, _ = app
        food = run(ledger.add_category("u1", TransactionKind.SPEND, "Food"))
        run(ledger.edit_category("u1", food.id, "Groceries"))
        assert run(storage.get_category("u1", food.id)).name == "Groceries"

    def test_delete_transaction(self, app):
        ledger, _, storage, audit_storage = app
        food = run(ledger.add_category("u1", TransactionKind.SPEND, "Food"))
        saved = add_spend(ledger, 250, food.id, "2024-05-03")

        assert run(ledger.delete_transaction("u1", saved.id)) is True
        assert run(storage.list_transactions("u1")) == []
        assert AuditEventType.TRANSACTION_DELETED in audit_types(audit_storage)

    def test_backend_failure_is_audited_and_reraised(self, app, monkeypatch):
        ledger, _, storage, audit_storage = app
        food = run(ledger.add_category("u1", TransactionKind.SPEND, "Food"))

        async def unavailable(transaction):
            raise StorageError("Failed to save transaction: quota exceeded")

        monkeypatch.setattr(storage, "add_transaction", unavailable)

        with pytest.raises(StorageError):
            add_spend(ledger, 250, food.id, "2024-05-03")

        events = [
            e for e in run(audit_storage.get_recent_events())
            if e.event_type == AuditEventType.STORAGE_ERROR
        ]
        assert len(events) == 1
        assert events[0].details == {"operation": "add_transaction"}
        assert events[0].owner_id == "u1"
        assert AuditEventType.TRANSACTION_ADDED not in audit_types(audit_storage)

    def test_caller_mistakes_are_not_storage_errors(self, app):
        ledger, _, _, audit_storage = app
        with pytest.raises(NotFoundError):
            run(ledger.edit_category("u1", "missing", "Rent"))
        assert AuditEventType.STORAGE_ERROR not in audit_types(audit_storage)


class TestCascadeDeleteFlow:

    def test_delete_category_cascades(self, app):
        ledger, dashboard, storage, audit_storage = app
        food = run(ledger.add_category("u1", TransactionKind.SPEND, "Food"))
        rent = run(ledger.add_category("u1", TransactionKind.SPEND, "Rent"))
        add_spend(ledger, 100, food.id, "2024-05-01")
        add_spend(ledger, 25, food.id, "2023-12-01")
        add_spend(ledger, 50, rent.id, "2024-05-15")

        assert run(ledger.delete_category("u1", food.id)) == 2

        assert run(storage.list_transactions("u1", category_key=food.id)) == []
        totals = run(dashboard.dashboard_totals("u1", TransactionKind.SPEND))
        assert totals.total == 50
        assert [r.category.id for r in totals.ranked_breakdown] == [rent.id]

        events = run(audit_storage.get_events_by_entity("category", food.id))
        deleted = [e for e in events if e.event_type == AuditEventType.CATEGORY_DELETED]
        assert deleted[0].details["removed_transactions"] == 2

    def test_failed_cascade_is_audited_and_rolled_back(self, app, monkeypatch):
        ledger, _, storage, audit_storage = app
        food = run(ledger.add_category("u1", TransactionKind.SPEND, "Food"))
        add_spend(ledger, 100, food.id, "2024-05-01")

        def fail(category_id):
            raise RuntimeError("disk full")

        monkeypatch.setattr(storage, "_remove_category", fail)

        with pytest.raises(CascadeDeleteError):
            run(ledger.delete_category("u1", food.id))

        assert len(run(storage.list_transactions("u1", category_key=food.id))) == 1
        assert AuditEventType.CASCADE_DELETE_FAILED in audit_types(audit_storage)


class TestDashboardFlow:

    @pytest.fixture
    def populated(self, app):
        ledger, dashboard, _, _ = app
        food = run(ledger.add_category("u1", TransactionKind.SPEND, "Food"))
        rent = run(ledger.add_category("u1", TransactionKind.SPEND, "Rent"))
        add_spend(ledger, 100, food.id, "2024-05-01")
        add_spend(ledger, 50, rent.id, "2024-05-15")
        add_spend(ledger, 25, food.id, "2023-12-01")
        return ledger, dashboard, food, rent

    def test_month_totals(self, populated):
        _, dashboard, food, rent = populated
        totals = run(dashboard.dashboard_totals(
            "u1", TransactionKind.SPEND, PeriodSelector.for_month("2024-05")
        ))
        assert totals.total == 150
        assert [(r.category.id, r.total) for r in totals.ranked_breakdown] == [
            (food.id, 100), (rent.id, 50),
        ]
        assert totals.available_financial_years == ["2024-2025", "2023-2024"]

    def test_reads_reflect_latest_write(self, populated):
        ledger, dashboard, food, _ = populated
        before = run(dashboard.dashboard_totals("u1", TransactionKind.SPEND))
        add_spend(ledger, 10, food.id, "2024-05-16")
        after = run(dashboard.dashboard_totals("u1", TransactionKind.SPEND))
        assert after.total == before.total + 10

    def test_ledgers_are_independent(self, populated):
        ledger, dashboard, _, _ = populated
        salary = run(ledger.add_category("u1", TransactionKind.INCOME, "Salary"))
        run(ledger.add_transaction(
            owner_id="u1",
            kind=TransactionKind.INCOME,
            amount=5000,
            date="2024-05-01",
            category_key=salary.id,
            today=TODAY,
        ))
        income = run(dashboard.dashboard_totals("u1", TransactionKind.INCOME))
        spend = run(dashboard.dashboard_totals("u1", TransactionKind.SPEND))
        assert income.total == 5000
        assert spend.total == 175

    def test_receivables_have_no_breakdown(self, app):
        ledger, dashboard, _, _ = app
        run(ledger.add_transaction(
            owner_id="u1",
            kind=TransactionKind.RECEIVABLE,
            amount=700,
            date="2024-05-01",
            name="Asha",
            purpose="Train tickets",
            today=TODAY,
        ))
        totals = run(dashboard.dashboard_totals("u1", TransactionKind.RECEIVABLE))
        assert totals.total == 700
        assert totals.ranked_breakdown == []

    def test_run_query_is_audited(self, app):
        _, dashboard, _, audit_storage = app
        query = StatementQuery(owner_id="u1", kind=TransactionKind.SPEND, view="statement")
        result = run(dashboard.run_query(query))
        assert result.success
        assert AuditEventType.QUERY_EXECUTED in audit_types(audit_storage)
        assert AuditEventType.QUERY_FAILED not in audit_types(audit_storage)

    def test_failed_query_is_audited_as_failure(self, app, monkeypatch):
        _, dashboard, storage, audit_storage = app

        async def unavailable(owner_id, kind=None, category_key=None):
            raise StorageError("sheet unavailable")

        monkeypatch.setattr(storage, "list_transactions", unavailable)

        query = StatementQuery(owner_id="u1", kind=TransactionKind.SPEND)
        result = run(dashboard.run_query(query))

        assert not result.success
        events = run(audit_storage.get_events_by_entity("query", str(query.query_id)))
        assert [e.event_type for e in events] == [AuditEventType.QUERY_FAILED]
        assert events[0].error_message == "sheet unavailable"


def test_create_app_components_without_storage():
    ledger, dashboard, client = create_app_components(use_storage=False)
    assert client is None
    assert isinstance(ledger, LedgerFlow)
    assert isinstance(dashboard, DashboardFlow)
