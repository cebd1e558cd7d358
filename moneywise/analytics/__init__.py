"""Budget and spending analytics package."""

from moneywise.analytics.budgets import (
    aggregate_budgets,
    budget_overview,
    progress_for,
    spent_in_category,
    total_budgeted,
    total_spent_against,
    unbudgeted_categories,
)
from moneywise.analytics.spending import (
    build_spending_summary,
    daily_spending,
    filter_by_month,
    format_currency,
    month_key,
    month_options,
    recent_expenses,
    summarize_by_category,
    total_spent,
)

__all__ = [
    # Budgets
    "aggregate_budgets",
    "budget_overview",
    "progress_for",
    "spent_in_category",
    "total_budgeted",
    "total_spent_against",
    "unbudgeted_categories",
    # Spending
    "build_spending_summary",
    "daily_spending",
    "filter_by_month",
    "format_currency",
    "month_key",
    "month_options",
    "recent_expenses",
    "summarize_by_category",
    "total_spent",
]
