"""
Core Data Models for MoneyWise

These models define the schemas for all data flowing through the system.
They are designed to:
1. Enforce the fixed category set at runtime
2. Provide clear validation error messages
3. Be serializable for storage, change events and logging

DESIGN DECISION: Amounts are Decimal everywhere. Budget math compares
sums against caps, and float drift would make "exactly at budget" lie.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


def utc_now() -> datetime:
    """Current time in UTC (timezone-aware)."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    DESIGN DECISION: Using explicit categories rather than free text ensures
    consistent categorization and lets budgets join against expenses by
    simple equality. The declaration order is the order shown in forms.
    """
    FOOD_AND_DRINKS = "Food & Drinks"
    SHOPPING = "Shopping"
    HOUSING = "Housing"
    TRANSPORTATION = "Transportation"
    VEHICLE = "Vehicle"
    ENTERTAINMENT = "Entertainment"
    COMMUNICATION_PC = "Communication, PC"
    FINANCIAL_EXPENSES = "Financial expenses"
    INVESTMENTS = "Investments"
    INCOME = "Income"
    OTHERS = "Others"


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseDraft(BaseModel):
    """
    The client-supplied part of an expense.

    Used for inserts and edits. Identity and timestamps are assigned
    by storage.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(
        ...,
        min_length=1,
        description="Opaque owner key from the identity provider"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the money was spent on"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount spent"
    )
    category: ExpenseCategory
    date: datetime = Field(
        ...,
        description="When the expense happened"
    )

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        """Store naive UTC so expenses from any source sort together."""
        if v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class Expense(ExpenseDraft):
    """
    A stored expense.

    Owned by exactly one user. The category only changes through an
    explicit edit.
    """

    id: str = Field(
        ...,
        min_length=1,
        description="Unique expense ID"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetGoalDraft(BaseModel):
    """Client-supplied part of a budget goal."""
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: str = Field(..., min_length=1)
    category: ExpenseCategory
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Monthly spending cap for the category"
    )


class BudgetGoal(BudgetGoalDraft):
    """
    A per-category monthly spending cap.

    A user may have at most one budget per category. This is enforced
    when the form is validated, not by storage.
    """

    id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# DERIVED VIEWS (never persisted)
# =============================================================================

class CategorizedExpenseSummary(BaseModel):
    """Spend in one category and its share of the grand total."""

    category: ExpenseCategory
    total: Decimal
    percentage: Decimal = Field(
        ...,
        ge=0,
        le=100,
        description="Share of the grand total, 0-100"
    )


class BudgetProgress(BudgetGoal):
    """
    A budget goal joined against the user's expenses.

    progress is capped at 100 for display even when spend runs past
    the cap. overspent carries the real excess.
    """

    spent: Decimal = Decimal("0")
    progress: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    overspent: Decimal = Field(default=Decimal("0"), ge=0)

    @property
    def is_over_budget(self) -> bool:
        return self.overspent > 0

    @property
    def remaining(self) -> Decimal:
        return max(Decimal("0"), self.amount - self.spent)


class DailySpending(BaseModel):
    """Total spent on one calendar day."""

    day: date
    label: str = Field(..., description="Short label, e.g. 'Mar 04'")
    total: Decimal


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
        description="Type of issue (e.g., 'missing', 'too_short', 'duplicate')"
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
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating a form.

    Only error-level issues block submission. Warnings are shown
    next to the field but do not stop the save.
    """

    validated_at: datetime = Field(default_factory=utc_now)
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

    def errors_for(self, field: str) -> list[str]:
        """Error messages for one form field, for inline display."""
        return [
            issue.message
            for issue in self.issues
            if issue.field == field and issue.severity == "error"
        ]
