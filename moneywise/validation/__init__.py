"""Form validation package."""

from moneywise.validation.validator import (
    BudgetFormValidator,
    ExpenseFormValidator,
    parse_amount,
    parse_category,
)

__all__ = [
    "BudgetFormValidator",
    "ExpenseFormValidator",
    "parse_amount",
    "parse_category",
]
