"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a hosted database later
2. Use in-memory storage for tests and offline development
3. Keep the flows and the UI decoupled from the backend

Every record query is filtered by owner. Nothing here ever returns
another user's rows.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from moneywise.models.audit import AuditEvent
from moneywise.models.finance import (
    BudgetGoal,
    BudgetGoalDraft,
    Expense,
    ExpenseDraft,
)


# Ids the old client could send when a record had not loaded yet
INVALID_RECORD_IDS = {"", "undefined", "null", "None"}


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage.

    Any storage implementation (Google Sheets, in-memory, ...)
    must implement these methods.
    """

    @abstractmethod
    async def list_for_user(self, user_id: str) -> list[Expense]:
        """
        All expenses owned by a user, newest date first.

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def get(self, expense_id: str) -> Optional[Expense]:
        """Retrieve an expense by id, or None if it does not exist."""
        pass

    @abstractmethod
    async def insert(self, draft: ExpenseDraft) -> Expense:
        """
        Store a new expense.

        Storage assigns the id and timestamps and returns the stored row.
        """
        pass

    @abstractmethod
    async def update(self, expense_id: str, changes: dict[str, Any]) -> Expense:
        """
        Apply field changes to an existing expense.

        Raises:
            InvalidRecordError: If the id is empty or a placeholder
            NotFoundError: If the expense doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, expense_id: str) -> Optional[Expense]:
        """Delete an expense. Returns the deleted row, or None if absent."""
        pass


class BudgetStorageInterface(ABC):
    """Abstract interface for budget goal storage."""

    @abstractmethod
    async def list_for_user(self, user_id: str) -> list[BudgetGoal]:
        """All budget goals owned by a user, by category name ascending."""
        pass

    @abstractmethod
    async def get(self, budget_id: str) -> Optional[BudgetGoal]:
        pass

    @abstractmethod
    async def insert(self, draft: BudgetGoalDraft) -> BudgetGoal:
        pass

    @abstractmethod
    async def update(self, budget_id: str, changes: dict[str, Any]) -> BudgetGoal:
        """
        Apply field changes to an existing budget goal.

        Raises:
            InvalidRecordError: If the id is empty or a placeholder
            NotFoundError: If the budget doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, budget_id: str) -> Optional[BudgetGoal]:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


def check_record_id(record_id: Optional[str], entity: str) -> str:
    """Reject missing or placeholder ids before touching the backend."""
    if record_id is None or str(record_id).strip() in INVALID_RECORD_IDS:
        raise InvalidRecordError(f"Invalid {entity} ID: {record_id!r}")
    return str(record_id)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class InvalidRecordError(StorageError):
    """The request referenced a record that cannot exist."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
