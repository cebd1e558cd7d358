"""
Form Validation

DESIGN DECISION: Forms are validated before anything reaches storage.
Each validator returns a ValidationResult listing every problem at once,
so the UI can show all messages next to their fields in one pass.

Only error-level issues block a save. Warnings are shown but the user
may continue.

IMPORTANT: Validation NEVER silently fixes input.
It reports issues for the user to correct.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from moneywise.config import AppSettings, get_settings
from moneywise.models.finance import (
    ExpenseCategory,
    ValidationIssue,
    ValidationResult,
)


def parse_amount(value: Any) -> Optional[Decimal]:
    """Coerce form input to Decimal. None when it isn't a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def parse_category(value: Any) -> Optional[ExpenseCategory]:
    if isinstance(value, ExpenseCategory):
        return value
    try:
        return ExpenseCategory(value)
    except ValueError:
        return None


def _amount_issues(value: Any, message: str) -> list[ValidationIssue]:
    amount = parse_amount(value)
    if amount is None:
        return [ValidationIssue(
            field="amount",
            issue_type="invalid_value",
            message="Amount must be a number.",
            severity="error",
        )]
    if amount <= 0:
        return [ValidationIssue(
            field="amount",
            issue_type="not_positive",
            message=message,
            severity="error",
            suggested_fix="Enter an amount greater than zero",
        )]
    return []


def _category_issues(value: Any) -> list[ValidationIssue]:
    if parse_category(value) is None:
        return [ValidationIssue(
            field="category",
            issue_type="invalid_value",
            message="Please select a valid category.",
            severity="error",
        )]
    return []


def _result(issues: list[ValidationIssue], warnings: Optional[list[str]] = None) -> ValidationResult:
    return ValidationResult(
        is_valid=not any(issue.severity == "error" for issue in issues),
        issues=issues,
        warnings=warnings or [],
    )


class ExpenseFormValidator:
    """
    Validates the add/edit expense form.

    Rules:
    - description: required, within the configured length after trimming
    - amount: a number greater than zero
    - category: one of the fixed categories
    - date: required; a future date is only a warning
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate(
        self,
        description: Optional[str],
        amount: Any,
        category: Any,
        date: Optional[date | datetime],
    ) -> ValidationResult:
        issues: list[ValidationIssue] = []
        warnings: list[str] = []

        min_length = self._settings.description_min_length
        max_length = self._settings.description_max_length
        text = (description or "").strip()
        if len(text) < min_length:
            issues.append(ValidationIssue(
                field="description",
                issue_type="too_short",
                message=f"Description must be at least {min_length} characters.",
                severity="error",
            ))
        elif len(text) > max_length:
            issues.append(ValidationIssue(
                field="description",
                issue_type="too_long",
                message=f"Description must be at most {max_length} characters.",
                severity="error",
                suggested_fix="Shorten the description",
            ))

        issues.extend(_amount_issues(amount, "Amount must be positive."))
        issues.extend(_category_issues(category))

        if date is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="A date is required.",
                severity="error",
            ))
        else:
            day = date.date() if isinstance(date, datetime) else date
            if day > datetime.now().date():
                warnings.append("The expense date is in the future.")

        return _result(issues, warnings)


class BudgetFormValidator:
    """
    Validates the set/edit budget form.

    A user has at most one budget per category, so a category that is
    already budgeted is rejected unless it is the budget being edited.
    """

    def validate(
        self,
        category: Any,
        amount: Any,
        existing_categories: Iterable[ExpenseCategory | str] = (),
        editing_category: Optional[ExpenseCategory | str] = None,
    ) -> ValidationResult:
        issues = _category_issues(category)
        issues.extend(_amount_issues(amount, "Budget amount must be positive."))

        selected = parse_category(category)
        if selected is not None:
            taken = {parse_category(c) for c in existing_categories}
            editing = parse_category(editing_category) if editing_category else None
            if selected in taken and selected != editing:
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="duplicate",
                    message=f"A budget for {selected.value} already exists.",
                    severity="error",
                    suggested_fix="Edit the existing budget instead",
                ))

        return _result(issues)
