"""
In-memory storage backends.

Used by the test suite and when Google Sheets is not configured, so the
app still runs end to end on a laptop. Data lives only as long as the
process.
"""

from typing import Any, Optional, TypeVar
from uuid import uuid4

from pydantic import BaseModel

from moneywise.models.audit import AuditEvent
from moneywise.models.finance import (
    BudgetGoal,
    BudgetGoalDraft,
    Expense,
    ExpenseDraft,
    utc_now,
)
from moneywise.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ExpenseStorageInterface,
    NotFoundError,
    check_record_id,
)


RecordT = TypeVar("RecordT", bound=BaseModel)

# Fields a caller may never change on an existing record
PROTECTED_FIELDS = {"id", "user_id", "created_at", "updated_at"}


def apply_changes(record: RecordT, changes: dict[str, Any]) -> RecordT:
    """
    Build the updated copy of a record.

    The result is re-validated, so a bad change raises before anything
    is stored.
    """
    allowed = {k: v for k, v in changes.items() if k not in PROTECTED_FIELDS}
    data = record.model_dump()
    data.update(allowed)
    data["updated_at"] = utc_now()
    return type(record).model_validate(data)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Expense storage backed by a dict."""

    def __init__(self):
        self._rows: dict[str, Expense] = {}

    async def list_for_user(self, user_id: str) -> list[Expense]:
        rows = [row for row in self._rows.values() if row.user_id == user_id]
        rows.sort(key=lambda e: e.date, reverse=True)
        return rows

    async def get(self, expense_id: str) -> Optional[Expense]:
        return self._rows.get(expense_id)

    async def insert(self, draft: ExpenseDraft) -> Expense:
        expense = Expense(id=str(uuid4()), **draft.model_dump())
        self._rows[expense.id] = expense
        return expense

    async def update(self, expense_id: str, changes: dict[str, Any]) -> Expense:
        expense_id = check_record_id(expense_id, "expense")
        current = self._rows.get(expense_id)
        if current is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        updated = apply_changes(current, changes)
        self._rows[expense_id] = updated
        return updated

    async def delete(self, expense_id: str) -> Optional[Expense]:
        return self._rows.pop(expense_id, None)


class InMemoryBudgetStorage(BudgetStorageInterface):
    """Budget goal storage backed by a dict."""

    def __init__(self):
        self._rows: dict[str, BudgetGoal] = {}

    async def list_for_user(self, user_id: str) -> list[BudgetGoal]:
        rows = [row for row in self._rows.values() if row.user_id == user_id]
        rows.sort(key=lambda b: b.category.value)
        return rows

    async def get(self, budget_id: str) -> Optional[BudgetGoal]:
        return self._rows.get(budget_id)

    async def insert(self, draft: BudgetGoalDraft) -> BudgetGoal:
        goal = BudgetGoal(id=str(uuid4()), **draft.model_dump())
        self._rows[goal.id] = goal
        return goal

    async def update(self, budget_id: str, changes: dict[str, Any]) -> BudgetGoal:
        budget_id = check_record_id(budget_id, "budget")
        current = self._rows.get(budget_id)
        if current is None:
            raise NotFoundError(f"Budget not found: {budget_id}")
        updated = apply_changes(current, changes)
        self._rows[budget_id] = updated
        return updated

    async def delete(self, budget_id: str) -> Optional[BudgetGoal]:
        return self._rows.pop(budget_id, None)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
