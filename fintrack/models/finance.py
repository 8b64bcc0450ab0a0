"""
Core Data Models for fintrack

These models define the schemas for everything that flows between
storage, the aggregation core and the callers. They are designed to:
1. Enforce the ledger invariants at construction time
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Income, spend, investment and receivable rows share one
Transaction model tagged with a TransactionKind. Income sources, spend
categories and investment assets share one Category model. The
aggregation core only ever needs "amount, category key, date", so one
shape serves all four kinds.
"""

import datetime as dt
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from fintrack.periods import (
    parse_date,
    parse_financial_year_bucket,
    parse_month_bucket,
)


# Sentinel accepted wherever a category or period filter is expected
ALL = "all"


def _new_id() -> str:
    return uuid4().hex


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionKind(str, Enum):
    """
    The four parallel ledgers.

    Receivables are money owed to the owner and are never categorized.
    """
    INCOME = "income"
    SPEND = "spend"
    INVESTMENT = "investment"
    RECEIVABLE = "receivable"

    @property
    def is_categorized(self) -> bool:
        return self is not TransactionKind.RECEIVABLE


# Kinds whose entries carry a free-text label
LABELLED_KINDS = frozenset({TransactionKind.SPEND, TransactionKind.INVESTMENT})


class PeriodScope(str, Enum):
    """Which period filter a selector applies."""
    ALL = "all"
    MONTH = "month"
    FINANCIAL_YEAR = "financial_year"


# =============================================================================
# LEDGER ENTITIES
# =============================================================================

class Category(BaseModel):
    """
    Grouping entity for a transaction kind.

    An income source, a spend category or an investment asset.
    Only the name is editable after creation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=_new_id,
        min_length=1,
        description="Unique category ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="User the category belongs to"
    )
    kind: TransactionKind = Field(
        ...,
        description="Ledger this category groups"
    )

    @field_validator('kind')
    @classmethod
    def reject_receivable_kind(cls, v: TransactionKind) -> TransactionKind:
        """Receivables have no categories."""
        if not v.is_categorized:
            raise ValueError("Receivables cannot have categories")
        return v


class Transaction(BaseModel):
    """
    A single ledger row.

    Amounts are non-negative integers in the smallest currency unit.
    The date is a plain calendar date; "YYYY-MM-DD" strings are accepted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=_new_id,
        min_length=1,
        description="Unique transaction ID"
    )
    kind: TransactionKind
    amount: int = Field(
        ...,
        ge=0,
        description="Amount in the smallest currency unit"
    )
    category_key: Optional[str] = Field(
        default=None,
        description="Source, category or asset ID (None for receivables)"
    )
    date: dt.date = Field(
        ...,
        description="Calendar date of the entry"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="User the entry belongs to"
    )

    # Free-text labels
    name: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Spend/investment label, or who owes a receivable"
    )
    purpose: Optional[str] = Field(
        default=None,
        max_length=500,
        description="What a receivable is for"
    )

    @field_validator('date', mode='before')
    @classmethod
    def coerce_date(cls, v: object) -> dt.date:
        return parse_date(v)

    @model_validator(mode='after')
    def validate_kind_fields(self) -> 'Transaction':
        """
        Categorized kinds need a key, spends and investments also a label;
        receivables need name and purpose.
        """
        if self.kind.is_categorized:
            if not self.category_key:
                raise ValueError(f"{self.kind.value} entries require a category key")
            if self.kind in LABELLED_KINDS and not self.name:
                raise ValueError(f"{self.kind.value} entries require a name")
        else:
            if self.category_key is not None:
                raise ValueError("Receivables cannot reference a category")
            if not self.name or not self.purpose:
                raise ValueError("Receivables require a name and a purpose")
        return self


# =============================================================================
# AGGREGATION MODELS
# =============================================================================

class PeriodSelector(BaseModel):
    """
    The period and category a view is scoped to.

    Passed explicitly from the caller into every aggregation call.
    """

    scope: PeriodScope = PeriodScope.ALL
    value: Optional[str] = Field(
        default=None,
        description="Month bucket or financial year bucket, per scope"
    )
    category_key: str = Field(
        default=ALL,
        description="Category to restrict to, or 'all'"
    )

    @model_validator(mode='after')
    def validate_value(self) -> 'PeriodSelector':
        if self.scope is PeriodScope.ALL:
            if self.value not in (None, ALL):
                raise ValueError("An 'all' selector takes no period value")
        elif self.value is None:
            raise ValueError(f"A {self.scope.value} selector needs a period value")
        elif self.scope is PeriodScope.MONTH:
            parse_month_bucket(self.value)
        else:
            parse_financial_year_bucket(self.value)
        return self

    @classmethod
    def all_time(cls, category_key: str = ALL) -> 'PeriodSelector':
        return cls(scope=PeriodScope.ALL, category_key=category_key)

    @classmethod
    def for_month(cls, bucket: str, category_key: str = ALL) -> 'PeriodSelector':
        return cls(scope=PeriodScope.MONTH, value=bucket, category_key=category_key)

    @classmethod
    def for_financial_year(
        cls,
        bucket: str,
        category_key: str = ALL,
    ) -> 'PeriodSelector':
        if bucket == ALL:
            return cls.all_time(category_key)
        return cls(
            scope=PeriodScope.FINANCIAL_YEAR,
            value=bucket,
            category_key=category_key,
        )


class CategoryTotal(BaseModel):
    """One row of a ranked breakdown."""

    category: Category
    total: int = Field(ge=0)


class DashboardTotals(BaseModel):
    """Everything a dashboard card needs for one ledger."""

    total: int = Field(ge=0)
    ranked_breakdown: list[CategoryTotal] = Field(default_factory=list)
    available_financial_years: list[str] = Field(default_factory=list)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'unknown_category', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """Result of validating a proposed transaction."""

    transaction_id: str
    validated_at: dt.datetime = Field(
        default_factory=_utcnow
    )
    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# QUERY MODELS
# =============================================================================

class StatementQuery(BaseModel):
    """
    A request for one of the statement views over a single ledger.

    Views:
    - dashboard:        total, ranked breakdown and available years
    - statement:        the matching entries themselves
    - categories:       ranked per-category totals
    - financial_years:  per-year totals, most recent first
    """

    query_id: UUID = Field(
        default_factory=uuid4
    )
    created_at: dt.datetime = Field(
        default_factory=_utcnow
    )
    owner_id: str = Field(..., min_length=1)
    kind: TransactionKind
    view: str = Field(
        default="dashboard",
        pattern="^(dashboard|statement|categories|financial_years)$"
    )
    selector: PeriodSelector = Field(default_factory=PeriodSelector)

    # Statement ordering
    order_by: str = Field(
        default="date",
        pattern="^(date|amount)$"
    )
    limit: int = Field(
        default=100,
        ge=1,
        le=1000
    )


class QueryResult(BaseModel):
    """Result of executing a StatementQuery."""

    query_id: UUID
    executed_at: dt.datetime = Field(
        default_factory=_utcnow
    )

    success: bool
    error_message: Optional[str] = None

    data_found: bool
    result_count: int = Field(ge=0)

    results: list[dict] = Field(default_factory=list)
    aggregation_result: Optional[dict] = None

    query_description: str
