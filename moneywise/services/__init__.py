"""Services package."""

from moneywise.services.changes import ChangeFeed, Subscription
from moneywise.services.ledger import BudgetService, ExpenseService
from moneywise.services.preferences import PreferenceStore
from moneywise.services.storage import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryExpenseStorage,
    InvalidRecordError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Change notification
    "ChangeFeed",
    "Subscription",
    # Ledger
    "BudgetService",
    "ExpenseService",
    # Preferences
    "PreferenceStore",
    # Storage services
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "ExpenseStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "InMemoryAuditStorage",
    "InMemoryBudgetStorage",
    "InMemoryExpenseStorage",
    "InvalidRecordError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
]
