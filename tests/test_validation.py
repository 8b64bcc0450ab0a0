"""Tests for transaction validation."""

import asyncio
from datetime import date

import pytest

from fintrack.models.finance import Category, Transaction, TransactionKind
from fintrack.services.storage import InMemoryLedgerStorage
from fintrack.validation import TransactionValidator


TODAY = date(2024, 5, 17)


def spend(amount=250, category_key="food", day="2024-05-03", owner="u1"):
    return Transaction(
        kind=TransactionKind.SPEND,
        amount=amount,
        category_key=category_key,
        date=day,
        owner_id=owner,
        name="Lunch",
    )


@pytest.fixture
def food():
    return Category(id="food", name="Food", owner_id="u1", kind=TransactionKind.SPEND)


@pytest.fixture
def validator():
    return TransactionValidator()


def validate(validator, transaction, categories=None):
    return asyncio.run(validator.validate(transaction, categories, today=TODAY))


class TestReferenceValidation:
    """Stage 1: the category key must point at a usable category."""

    def test_valid_entry(self, validator, food):
        result = validate(validator, spend(), [food])
        assert result.is_valid
        assert result.issues == []

    def test_unknown_category(self, validator, food):
        result = validate(validator, spend(category_key="travel"), [food])
        assert not result.is_valid
        assert result.issues[0].issue_type == "unknown_category"

    def test_foreign_category(self, validator):
        theirs = Category(id="food", name="Food", owner_id="u2", kind=TransactionKind.SPEND)
        result = validate(validator, spend(), [theirs])
        assert not result.is_valid
        assert result.issues[0].issue_type == "foreign_category"

    def test_wrong_kind(self, validator):
        salary = Category(id="food", name="Salary", owner_id="u1", kind=TransactionKind.INCOME)
        result = validate(validator, spend(), [salary])
        assert not result.is_valid
        assert result.issues[0].issue_type == "wrong_kind"

    def test_receivable_skips_category_checks(self, validator):
        receivable = Transaction(
            kind=TransactionKind.RECEIVABLE,
            amount=500,
            date="2024-05-03",
            owner_id="u1",
            name="Ravi",
            purpose="Dinner",
        )
        assert validate(validator, receivable, []).is_valid

    def test_categories_fetched_from_storage(self, food):
        storage = InMemoryLedgerStorage(categories=[food])
        validator = TransactionValidator(storage)
        assert validate(validator, spend()).is_valid
        assert not validate(validator, spend(category_key="travel")).is_valid


class TestSemanticValidation:
    """Stage 2: warnings that never block a write."""

    def test_future_date_warns(self, validator, food):
        result = validate(validator, spend(day="2024-05-18"), [food])
        assert result.is_valid
        assert [i.issue_type for i in result.issues] == ["future_date"]
        assert len(result.warnings) == 1

    def test_today_is_not_future(self, validator, food):
        assert validate(validator, spend(day="2024-05-17"), [food]).issues == []

    def test_suspicious_amount(self, validator, food):
        result = validate(validator, spend(amount=50_000_000), [food])
        assert result.is_valid
        assert result.issues[0].issue_type == "suspicious_value"

    def test_zero_amount(self, validator, food):
        result = validate(validator, spend(amount=0), [food])
        assert result.is_valid
        assert result.issues[0].issue_type == "zero_amount"

    def test_amount_is_never_corrected(self, validator, food):
        transaction = spend(amount=50_000_000)
        validate(validator, transaction, [food])
        assert transaction.amount == 50_000_000

    def test_tolerance_from_settings(self, monkeypatch, food):
        monkeypatch.setenv("FINTRACK_FUTURE_DATE_TOLERANCE_DAYS", "3")
        validator = TransactionValidator()
        assert validate(validator, spend(day="2024-05-20"), [food]).issues == []


class TestSummary:
    """Tests for the user-facing summary text."""

    def test_all_passed(self, validator, food):
        result = validate(validator, spend(), [food])
        assert validator.get_user_friendly_summary(result) == "All checks passed."

    def test_errors_and_warnings(self, validator, food):
        result = validate(validator, spend(category_key="travel", amount=0), [food])
        summary = validator.get_user_friendly_summary(result)
        assert "cannot be saved" in summary
        assert "Please verify" in summary
        assert "Amount is zero" in summary
