"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the managed store because:
1. Users can view and fix their own data directly in Sheets
2. No database setup required
3. Built-in backup and sharing

TRADEOFFS:
- Not suitable for high-volume data (fine for a personal ledger)
- No transactions (each write touches exactly one row)
- No server-side filtering (we filter by owner in Python)

One worksheet per table: Expenses, Budgets, AuditLog. The first row of
each worksheet is the header.
"""

import asyncio
import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from moneywise.config import GoogleSheetsSettings, get_settings
from moneywise.models.audit import AuditEvent, AuditEventType, AuditSeverity
from moneywise.models.finance import (
    BudgetGoal,
    BudgetGoalDraft,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
)
from moneywise.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ExpenseStorageInterface,
    InvalidRecordError,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    check_record_id,
)
from moneywise.services.storage.memory import apply_changes


logger = structlog.get_logger(__name__)


EXPENSE_COLUMNS = [
    "id",
    "user_id",
    "description",
    "amount",
    "category",
    "date",
    "created_at",
    "updated_at",
]

BUDGET_COLUMNS = [
    "id",
    "user_id",
    "category",
    "amount",
    "created_at",
    "updated_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Writes are retried on transient API errors, never on "this row is wrong"
write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type((NotFoundError, InvalidRecordError, ValueError)),
    reraise=True,
)


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and get-or-create of the worksheets.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _worksheet(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
            logger.info("worksheet_created", title=title)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS, 1000)

    def get_budgets_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.budgets_sheet_name, BUDGET_COLUMNS, 100)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for the audit log
        return self._worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, 5000)


class _SheetTable:
    """
    Row-level helpers shared by the expense and budget tables.

    Subclasses say which worksheet they use and how a record maps to a row.
    Column 0 is always the id and column 1 the owner.
    """

    entity = "record"

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _sheet(self) -> gspread.Worksheet:
        raise NotImplementedError

    def _to_row(self, record) -> list:
        raise NotImplementedError

    def _from_row(self, row: list):
        raise NotImplementedError

    async def _all_rows(self) -> list[list]:
        """All data rows (header excluded), read off the event loop."""
        def read() -> list[list]:
            return self._sheet().get_all_values()[1:]

        try:
            return await asyncio.to_thread(read)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read {self.entity}s: {e}")

    async def _records_for_user(self, user_id: str) -> list:
        records = []
        for row in await self._all_rows():
            if not row or not row[0] or _safe_get(row, 1) != user_id:
                continue
            try:
                records.append(self._from_row(row))
            except (ValueError, TypeError, InvalidOperation) as e:
                logger.warning(
                    "malformed_row_skipped",
                    entity=self.entity,
                    row_id=row[0],
                    error=str(e),
                )
        return records

    async def _find(self, record_id: str) -> tuple[Optional[int], Optional[list]]:
        """Sheet row number (1-based, header is row 1) and row data."""
        for idx, row in enumerate(await self._all_rows(), start=2):
            if row and row[0] == record_id:
                return idx, row
        return None, None

    async def get(self, record_id: str):
        _, row = await self._find(record_id)
        return self._from_row(row) if row else None

    @write_retry
    async def _append(self, record) -> None:
        try:
            self._sheet().append_row(self._to_row(record), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save {self.entity}: {e}")

    @write_retry
    async def update(self, record_id: str, changes: dict[str, Any]):
        record_id = check_record_id(record_id, self.entity)
        idx, row = await self._find(record_id)
        if row is None:
            raise NotFoundError(f"{self.entity.capitalize()} not found: {record_id}")

        updated = apply_changes(self._from_row(row), changes)
        try:
            self._sheet().update(
                values=[self._to_row(updated)],
                range_name=f"A{idx}",
                value_input_option="RAW",
            )
        except Exception as e:
            raise StorageError(f"Failed to update {self.entity}: {e}")
        return updated

    @write_retry
    async def delete(self, record_id: str):
        idx, row = await self._find(record_id)
        if row is None:
            return None
        try:
            self._sheet().delete_rows(idx)
        except Exception as e:
            raise StorageError(f"Failed to delete {self.entity}: {e}")
        return self._from_row(row)


class GoogleSheetsExpenseStorage(_SheetTable, ExpenseStorageInterface):
    """
    Google Sheets implementation of expense storage.

    One expense per row. Amounts are stored as exact decimal strings.
    """

    entity = "expense"

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_expenses_sheet()

    def _to_row(self, expense: Expense) -> list:
        return [
            expense.id,
            expense.user_id,
            expense.description,
            str(expense.amount),
            expense.category.value,
            expense.date.isoformat(),
            expense.created_at.isoformat(),
            expense.updated_at.isoformat(),
        ]

    def _from_row(self, row: list) -> Expense:
        return Expense(
            id=_safe_get(row, 0),
            user_id=_safe_get(row, 1),
            description=_safe_get(row, 2),
            amount=Decimal(_safe_get(row, 3, "0")),
            category=ExpenseCategory(_safe_get(row, 4)),
            date=datetime.fromisoformat(_safe_get(row, 5)),
            created_at=datetime.fromisoformat(_safe_get(row, 6)),
            updated_at=datetime.fromisoformat(_safe_get(row, 7)),
        )

    async def list_for_user(self, user_id: str) -> list[Expense]:
        expenses = await self._records_for_user(user_id)
        expenses.sort(key=lambda e: e.date, reverse=True)
        return expenses

    async def insert(self, draft: ExpenseDraft) -> Expense:
        expense = Expense(id=str(uuid4()), **draft.model_dump())
        await self._append(expense)
        return expense


class GoogleSheetsBudgetStorage(_SheetTable, BudgetStorageInterface):
    """Google Sheets implementation of budget goal storage."""

    entity = "budget"

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_budgets_sheet()

    def _to_row(self, goal: BudgetGoal) -> list:
        return [
            goal.id,
            goal.user_id,
            goal.category.value,
            str(goal.amount),
            goal.created_at.isoformat(),
            goal.updated_at.isoformat(),
        ]

    def _from_row(self, row: list) -> BudgetGoal:
        return BudgetGoal(
            id=_safe_get(row, 0),
            user_id=_safe_get(row, 1),
            category=ExpenseCategory(_safe_get(row, 2)),
            amount=Decimal(_safe_get(row, 3, "0")),
            created_at=datetime.fromisoformat(_safe_get(row, 4)),
            updated_at=datetime.fromisoformat(_safe_get(row, 5)),
        )

    async def list_for_user(self, user_id: str) -> list[BudgetGoal]:
        goals = await self._records_for_user(user_id)
        goals.sort(key=lambda g: g.category.value)
        return goals

    async def insert(self, draft: BudgetGoalDraft) -> BudgetGoal:
        goal = BudgetGoal(id=str(uuid4()), **draft.model_dump())
        await self._append(goal)
        return goal


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        details_json = _safe_get(row, 9)
        correlation_id = _safe_get(row, 7)
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            user_id=_safe_get(row, 4) or None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=_safe_get(row, 6) or None,
            correlation_id=UUID(correlation_id) if correlation_id else None,
            description=_safe_get(row, 8),
            details=json.loads(details_json) if details_json else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    @write_retry
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Get recent events, newest first."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, TypeError, InvalidOperation) as e:
                logger.warning("malformed_audit_row_skipped", row_id=row[0], error=str(e))

        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
