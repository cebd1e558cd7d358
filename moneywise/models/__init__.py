"""
Data Models Package

This package contains all Pydantic models used in MoneyWise.
All data flowing through the system must conform to these schemas.
"""

from moneywise.models.finance import (
    BudgetGoal,
    BudgetGoalDraft,
    BudgetProgress,
    CategorizedExpenseSummary,
    DailySpending,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ValidationIssue,
    ValidationResult,
    utc_now,
)
from moneywise.models.events import (
    BUDGETS_TABLE,
    EXPENSES_TABLE,
    ChangeEvent,
    ChangeEventType,
)
from moneywise.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "BudgetGoal",
    "BudgetGoalDraft",
    "BudgetProgress",
    "CategorizedExpenseSummary",
    "DailySpending",
    "Expense",
    "ExpenseCategory",
    "ExpenseDraft",
    "ValidationIssue",
    "ValidationResult",
    "utc_now",
    # Change events
    "BUDGETS_TABLE",
    "EXPENSES_TABLE",
    "ChangeEvent",
    "ChangeEventType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
