"""
Transaction Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - REFERENCE VALIDATION:
- The category key exists in the owner's snapshot
- The category belongs to the same ledger kind and owner
- Receivables carry no category key

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Absurd amount detection
- Zero amount detection

Stage 1 issues are errors and block the write. Stage 2 issues are
warnings; they are reported but never silently corrected.

Amount sign and date format are already enforced by the Transaction
model itself, so they cannot reach this module in a bad state.
"""

from datetime import date, timedelta
from typing import Iterable, Optional

from fintrack.config import get_settings
from fintrack.models.finance import (
    Category,
    Transaction,
    ValidationIssue,
    ValidationResult,
)
from fintrack.services.storage import LedgerStorageInterface


class TransactionValidator:
    """
    Validates a proposed transaction against the owner's categories.

    Categories can be passed in directly or fetched from storage.
    """

    def __init__(
        self,
        ledger_storage: Optional[LedgerStorageInterface] = None,
    ):
        self._storage = ledger_storage
        self._settings = get_settings().app

    def _validate_references(
        self,
        transaction: Transaction,
        categories: list[Category],
    ) -> list[ValidationIssue]:
        issues = []

        if not transaction.kind.is_categorized:
            return issues

        category = next(
            (c for c in categories if c.id == transaction.category_key),
            None,
        )
        if category is None:
            issues.append(ValidationIssue(
                field="category_key",
                issue_type="unknown_category",
                message=f"Category {transaction.category_key} does not exist",
                severity="error",
                suggested_fix="Pick one of your existing categories or add it first",
            ))
        elif category.owner_id != transaction.owner_id:
            issues.append(ValidationIssue(
                field="category_key",
                issue_type="foreign_category",
                message="Category belongs to a different user",
                severity="error",
            ))
        elif category.kind != transaction.kind:
            issues.append(ValidationIssue(
                field="category_key",
                issue_type="wrong_kind",
                message=(
                    f"Category '{category.name}' is a {category.kind.value} "
                    f"category, not {transaction.kind.value}"
                ),
                severity="error",
            ))

        return issues

    def _validate_semantic(
        self,
        transaction: Transaction,
        today: date,
    ) -> list[ValidationIssue]:
        issues = []

        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if transaction.date > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({transaction.date.isoformat()}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if transaction.amount > self._settings.max_amount_sanity:
            symbol = self._settings.currency_symbol
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({symbol}{transaction.amount:,}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))
        elif transaction.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="zero_amount",
                message="Amount is zero",
                severity="warning",
            ))

        return issues

    async def validate(
        self,
        transaction: Transaction,
        categories: Optional[Iterable[Category]] = None,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run both validation stages.

        Args:
            transaction: The proposed entry
            categories: Category snapshot; fetched from storage when omitted
            today: Reference date for the future-date check
        """
        if categories is None and self._storage is not None and transaction.kind.is_categorized:
            categories = await self._storage.list_categories(
                transaction.owner_id, transaction.kind
            )
        category_list = list(categories or [])

        issues = self._validate_references(transaction, category_list)
        issues.extend(self._validate_semantic(transaction, today or date.today()))

        warnings = [i.message for i in issues if i.severity == "warning"]

        return ValidationResult(
            transaction_id=transaction.id,
            is_valid=not any(i.severity == "error" for i in issues),
            issues=issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """Short text to show the user alongside the form."""
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []

        if result.has_errors:
            lines.append("This entry cannot be saved:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
