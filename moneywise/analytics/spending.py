"""
Spending analytics for the dashboard, the charts page and the AI advisor.

All functions are pure and recomputed from the current expense list.
"""

from collections import defaultdict
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from moneywise.models.finance import (
    CategorizedExpenseSummary,
    DailySpending,
    Expense,
    ExpenseCategory,
)


HUNDRED = Decimal("100")
ZERO = Decimal("0")
CENT = Decimal("0.01")

NO_EXPENSES_SUMMARY = (
    "No expense data available. Please add some expenses first or "
    "describe your general spending habits."
)
SUMMARY_HEADER = "Here's a summary of my recent spending:"
SUMMARY_HABITS_PROMPT = (
    "I also tend to [describe any specific habits, e.g., eat out 3 times a "
    "week, subscribe to multiple streaming services, impulse buy online]."
)

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}


def total_spent(expenses: Iterable[Expense]) -> Decimal:
    return sum((expense.amount for expense in expenses), ZERO)


def summarize_by_category(
    expenses: Sequence[Expense],
) -> list[CategorizedExpenseSummary]:
    """
    Per-category totals and their share of the grand total.

    Categories with nothing spent are left out. Largest total first;
    ties keep the fixed category order.
    """
    grand_total = total_spent(expenses)
    if grand_total == 0:
        return []

    totals: dict[ExpenseCategory, Decimal] = defaultdict(lambda: ZERO)
    for expense in expenses:
        totals[expense.category] += expense.amount

    summaries = [
        CategorizedExpenseSummary(
            category=category,
            total=totals[category],
            percentage=totals[category] / grand_total * HUNDRED,
        )
        for category in ExpenseCategory
        if totals.get(category, ZERO) > 0
    ]
    summaries.sort(key=lambda item: item.total, reverse=True)
    return summaries


def recent_expenses(expenses: Iterable[Expense], limit: int = 5) -> list[Expense]:
    """Newest expenses first."""
    return sorted(expenses, key=lambda e: e.date, reverse=True)[:limit]


def month_key(value: datetime | date) -> str:
    """'YYYY-MM' for a date, used as the chart month filter value."""
    return f"{value.year:04d}-{value.month:02d}"


def month_options(
    expenses: Iterable[Expense],
    today: Optional[date] = None,
    lookback: int = 6,
) -> list[str]:
    """
    Months offered in the chart month picker.

    Every month that has an expense, plus the last `lookback` calendar
    months (so a new user still has something to pick). Newest first.
    """
    today = today or date.today()
    options = {month_key(expense.date) for expense in expenses}

    year, month = today.year, today.month
    for _ in range(lookback):
        options.add(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12

    return sorted(options, reverse=True)


def filter_by_month(
    expenses: Iterable[Expense],
    month: Optional[str],
) -> list[Expense]:
    """Expenses dated inside the given 'YYYY-MM' month; all of them for None."""
    if not month:
        return list(expenses)
    return [expense for expense in expenses if month_key(expense.date) == month]


def daily_spending(expenses: Iterable[Expense]) -> list[DailySpending]:
    """Per-day totals in date order, for the spending-over-time chart."""
    per_day: dict[date, Decimal] = defaultdict(lambda: ZERO)
    for expense in expenses:
        per_day[expense.date.date()] += expense.amount

    return [
        DailySpending(day=day, label=day.strftime("%b %d"), total=total)
        for day, total in sorted(per_day.items())
    ]


def build_spending_summary(
    expenses: Sequence[Expense],
    currency: str = "INR",
) -> str:
    """
    The editable "spending habits" text given to the AI advisor.

    Categories appear in the order they were first seen in the list.
    """
    if not expenses:
        return NO_EXPENSES_SUMMARY

    totals: dict[ExpenseCategory, Decimal] = {}
    for expense in expenses:
        totals[expense.category] = totals.get(expense.category, ZERO) + expense.amount

    lines = [SUMMARY_HEADER]
    for category, total in totals.items():
        lines.append(f"- {category.value}: approx {format_currency(total, currency)}")
    lines.append("")
    lines.append(SUMMARY_HABITS_PROMPT)
    return "\n".join(lines)


def format_currency(amount: Decimal | float | int, currency: str = "INR") -> str:
    """
    Format an amount for display with two decimals.

    INR uses Indian digit grouping (1,23,456.00); other currencies use
    thousands grouping.
    """
    value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    whole, fraction = f"{abs(value):.2f}".split(".")

    if currency == "INR":
        grouped = _indian_grouping(whole)
    else:
        grouped = f"{int(whole):,}"

    symbol = CURRENCY_SYMBOLS.get(currency)
    if symbol:
        return f"{sign}{symbol}{grouped}.{fraction}"
    return f"{sign}{currency} {grouped}.{fraction}"


def _indian_grouping(digits: str) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])
