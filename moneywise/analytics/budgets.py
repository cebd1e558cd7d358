"""
Budget Aggregation

Joins a user's expenses against their budget goals to get spend,
progress and overspend per budget.

DESIGN DECISION: Aggregation is a pure function of (expenses, goals).
It is recomputed on every render from whatever the local cache holds,
so there is no stored total that could drift from the records.

Expenses in a category with no budget are simply not counted here.
They still show up in the expense list and the charts.
"""

from decimal import Decimal
from typing import Iterable, Sequence

from moneywise.models.finance import (
    BudgetGoal,
    BudgetProgress,
    Expense,
    ExpenseCategory,
)


HUNDRED = Decimal("100")
ZERO = Decimal("0")


def spent_in_category(
    expenses: Iterable[Expense],
    category: ExpenseCategory,
) -> Decimal:
    """Exact sum of expense amounts in one category."""
    return sum(
        (expense.amount for expense in expenses if expense.category == category),
        ZERO,
    )


def progress_for(goal: BudgetGoal, spent: Decimal) -> BudgetProgress:
    """
    Attach spend figures to a single goal.

    A zero-amount budget reports zero progress and zero overspend
    whatever was spent, since there is nothing to divide by.
    """
    if goal.amount > 0:
        progress = min(spent / goal.amount * HUNDRED, HUNDRED)
        overspent = max(ZERO, spent - goal.amount)
    else:
        progress = ZERO
        overspent = ZERO

    return BudgetProgress(
        **goal.model_dump(include=set(BudgetGoal.model_fields)),
        spent=spent,
        progress=progress,
        overspent=overspent,
    )


def aggregate_budgets(
    expenses: Sequence[Expense],
    goals: Iterable[BudgetGoal],
) -> list[BudgetProgress]:
    """
    Compute spent/progress/overspent for every goal.

    Results are sorted by category name, ascending.
    """
    results = [
        progress_for(goal, spent_in_category(expenses, goal.category))
        for goal in goals
    ]
    results.sort(key=lambda item: item.category.value)
    return results


def budget_overview(
    expenses: Sequence[Expense],
    goals: Iterable[BudgetGoal],
    limit: int = 3,
) -> list[BudgetProgress]:
    """The dashboard's most-used budgets: highest progress first."""
    ranked = sorted(
        aggregate_budgets(expenses, goals),
        key=lambda item: item.progress,
        reverse=True,
    )
    return ranked[:limit]


def total_budgeted(goals: Iterable[BudgetGoal]) -> Decimal:
    return sum((goal.amount for goal in goals), ZERO)


def total_spent_against(items: Iterable[BudgetProgress]) -> Decimal:
    return sum((item.spent for item in items), ZERO)


def unbudgeted_categories(goals: Iterable[BudgetGoal]) -> list[ExpenseCategory]:
    """Categories still free for a new budget, in form order."""
    taken = {goal.category for goal in goals}
    return [category for category in ExpenseCategory if category not in taken]
