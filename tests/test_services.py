"""
Tests for storage backends, the ledger services and preferences.

Google Sheets is exercised against an in-process fake worksheet;
no network calls are made.
"""

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest

from moneywise.audit import AuditLogger
from moneywise.models import (
    AuditEventBuilder,
    BudgetGoalDraft,
    ChangeEventType,
    ExpenseCategory,
    ExpenseDraft,
)
from moneywise.services import (
    BudgetService,
    ChangeFeed,
    ExpenseService,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsExpenseStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStorage,
    InMemoryExpenseStorage,
    InvalidRecordError,
    NotFoundError,
    PreferenceStore,
)
from moneywise.services.preferences import CHART_MONTH_KEY, SPENDING_HABITS_KEY
from moneywise.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    BUDGET_COLUMNS,
    EXPENSE_COLUMNS,
)


FOOD = ExpenseCategory.FOOD_AND_DRINKS
SHOPPING = ExpenseCategory.SHOPPING


def expense_draft(user_id="user-1", description="Lunch", amount="250", category=FOOD, day=4):
    return ExpenseDraft(
        user_id=user_id,
        description=description,
        amount=Decimal(amount),
        category=category,
        date=datetime(2024, 3, day, 13, 0),
    )


# =============================================================================
# FAKE SHEETS
# =============================================================================

class FakeWorksheet:
    """Just enough of gspread.Worksheet for the storage classes."""

    def __init__(self, columns):
        self.rows = [list(columns)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append([str(v) for v in row])

    def update(self, values, range_name, value_input_option=None):
        index = int(range_name[1:]) - 1
        self.rows[index] = [str(v) for v in values[0]]

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.expenses = FakeWorksheet(EXPENSE_COLUMNS)
        self.budgets = FakeWorksheet(BUDGET_COLUMNS)
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_expenses_sheet(self):
        return self.expenses

    def get_budgets_sheet(self):
        return self.budgets

    def get_audit_sheet(self):
        return self.audit


# =============================================================================
# STORAGE
# =============================================================================

class TestInMemoryStorage:
    """Tests for the dict-backed storage."""

    def test_insert_assigns_id_and_timestamps(self):
        """Test storage fills in identity fields."""
        storage = InMemoryExpenseStorage()
        expense = asyncio.run(storage.insert(expense_draft()))
        assert expense.id
        assert expense.created_at is not None
        assert asyncio.run(storage.get(expense.id)) == expense

    def test_list_is_per_user_newest_first(self):
        """Test owner filtering and ordering."""
        storage = InMemoryExpenseStorage()
        asyncio.run(storage.insert(expense_draft(day=1, description="Old")))
        asyncio.run(storage.insert(expense_draft(day=9, description="New")))
        asyncio.run(storage.insert(expense_draft(user_id="user-2")))

        rows = asyncio.run(storage.list_for_user("user-1"))
        assert [e.description for e in rows] == ["New", "Old"]

    def test_update_cannot_change_owner(self):
        """Test protected fields are ignored in changes."""
        storage = InMemoryExpenseStorage()
        expense = asyncio.run(storage.insert(expense_draft()))
        updated = asyncio.run(storage.update(expense.id, {"user_id": "other", "description": "Dinner"}))
        assert updated.user_id == "user-1"
        assert updated.description == "Dinner"
        assert updated.id == expense.id

    def test_update_validates_changes(self):
        """Test an invalid change raises and leaves the row untouched."""
        storage = InMemoryExpenseStorage()
        expense = asyncio.run(storage.insert(expense_draft()))
        with pytest.raises(ValueError):
            asyncio.run(storage.update(expense.id, {"category": "Not a category"}))
        assert asyncio.run(storage.get(expense.id)).category == FOOD

    @pytest.mark.parametrize("bad_id", ["", "undefined", "null", None])
    def test_update_rejects_placeholder_ids(self, bad_id):
        """Test placeholder ids never reach the rows."""
        storage = InMemoryExpenseStorage()
        with pytest.raises(InvalidRecordError):
            asyncio.run(storage.update(bad_id, {"description": "x"}))

    def test_update_missing_record(self):
        """Test updating an unknown id raises NotFoundError."""
        storage = InMemoryBudgetStorage()
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update("nope", {"amount": Decimal("1")}))

    def test_delete_returns_row_once(self):
        """Test delete returns the row, then None."""
        storage = InMemoryBudgetStorage()
        goal = asyncio.run(storage.insert(BudgetGoalDraft(user_id="u", category=FOOD, amount=Decimal("10"))))
        assert asyncio.run(storage.delete(goal.id)) == goal
        assert asyncio.run(storage.delete(goal.id)) is None

    def test_audit_recent_events_newest_first(self):
        """Test the audit log returns the newest events first."""
        storage = InMemoryAuditStorage()
        first = AuditEventBuilder.session_changed("u", signed_in=True)
        second = AuditEventBuilder.session_changed("u", signed_in=False)
        asyncio.run(storage.append_event(first))
        asyncio.run(storage.append_event(second))
        events = asyncio.run(storage.get_recent_events(limit=1))
        assert len(events) == 1
        assert events[0].timestamp >= first.timestamp


class TestGoogleSheetsStorage:
    """Tests for the Sheets row mapping, against a fake worksheet."""

    def test_insert_and_list(self):
        """Test a stored expense comes back identical."""
        client = FakeSheetsClient()
        storage = GoogleSheetsExpenseStorage(client)

        expense = asyncio.run(storage.insert(expense_draft(amount="0.10")))
        [loaded] = asyncio.run(storage.list_for_user("user-1"))

        assert loaded.id == expense.id
        assert loaded.amount == Decimal("0.10")
        assert loaded.category == FOOD
        assert loaded.date == expense.date
        assert client.expenses.rows[1][3] == "0.10"

    def test_malformed_rows_are_skipped(self):
        """Test a hand-edited bad row doesn't break the list."""
        client = FakeSheetsClient()
        storage = GoogleSheetsExpenseStorage(client)
        asyncio.run(storage.insert(expense_draft()))
        client.expenses.rows.append(
            ["bad-1", "user-1", "Broken", "lots", "Food & Drinks", "2024-03-04T00:00:00", "", ""]
        )
        client.expenses.rows.append(
            ["bad-2", "user-1", "Broken", "10", "Groceries", "2024-03-04T00:00:00", "", ""]
        )

        rows = asyncio.run(storage.list_for_user("user-1"))
        assert len(rows) == 1

    def test_other_users_rows_not_listed(self):
        """Test owner filtering on the sheet."""
        client = FakeSheetsClient()
        storage = GoogleSheetsExpenseStorage(client)
        asyncio.run(storage.insert(expense_draft(user_id="user-2")))
        assert asyncio.run(storage.list_for_user("user-1")) == []

    def test_update_rewrites_row_in_place(self):
        """Test an update keeps the row position and id."""
        client = FakeSheetsClient()
        storage = GoogleSheetsBudgetStorage(client)
        goal = asyncio.run(storage.insert(BudgetGoalDraft(user_id="u", category=FOOD, amount=Decimal("100"))))

        updated = asyncio.run(storage.update(goal.id, {"amount": Decimal("150")}))

        assert updated.amount == Decimal("150")
        assert len(client.budgets.rows) == 2
        assert client.budgets.rows[1][0] == goal.id
        assert client.budgets.rows[1][3] == "150"

    def test_update_missing_row(self):
        """Test updating an unknown id raises NotFoundError."""
        storage = GoogleSheetsBudgetStorage(FakeSheetsClient())
        with pytest.raises(NotFoundError):
            asyncio.run(storage.update("missing", {"amount": Decimal("1")}))

    def test_delete_removes_row(self):
        """Test delete removes exactly the matching row."""
        client = FakeSheetsClient()
        storage = GoogleSheetsExpenseStorage(client)
        keep = asyncio.run(storage.insert(expense_draft(description="Keep")))
        drop = asyncio.run(storage.insert(expense_draft(description="Drop")))

        deleted = asyncio.run(storage.delete(drop.id))

        assert deleted.id == drop.id
        assert [row[0] for row in client.expenses.rows[1:]] == [keep.id]
        assert asyncio.run(storage.delete(drop.id)) is None

    def test_audit_append_and_read(self):
        """Test audit events survive the row format."""
        client = FakeSheetsClient()
        storage = GoogleSheetsAuditStorage(client)
        event = AuditEventBuilder.record_saved("expense", "e-1", "u", "Shopping", "10")

        assert asyncio.run(storage.append_event(event)) is True
        [loaded] = asyncio.run(storage.get_recent_events())

        assert loaded.event_id == event.event_id
        assert loaded.event_type == event.event_type
        assert loaded.details == {"category": "Shopping", "amount": "10"}
        assert loaded.is_user_action is True


# =============================================================================
# LEDGER
# =============================================================================

class TestLedgerServices:
    """Tests for owner checks and change publication."""

    def setup_method(self):
        self.feed = ChangeFeed()
        self.events = []
        self.expenses = ExpenseService(InMemoryExpenseStorage(), self.feed)
        self.budgets = BudgetService(InMemoryBudgetStorage(), self.feed)
        self.expenses.subscribe_to_expenses("user-1", self.events.append)

    def test_add_publishes_insert(self):
        """Test a new expense is announced with its full row."""
        expense = asyncio.run(self.expenses.add(expense_draft()))
        [event] = self.events
        assert event.event_type == ChangeEventType.INSERT
        assert event.record_id == expense.id
        assert event.new["description"] == "Lunch"

    def test_update_publishes_new_and_old(self):
        """Test an update carries both versions of the row."""
        expense = asyncio.run(self.expenses.add(expense_draft()))
        asyncio.run(self.expenses.update(expense.id, {"amount": Decimal("300")}, "user-1"))

        event = self.events[-1]
        assert event.event_type == ChangeEventType.UPDATE
        assert Decimal(event.new["amount"]) == Decimal("300")
        assert Decimal(event.old["amount"]) == Decimal("250")

    def test_cannot_update_someone_elses_record(self):
        """Test ownership is checked before writing."""
        expense = asyncio.run(self.expenses.add(expense_draft(user_id="user-2")))
        with pytest.raises(NotFoundError):
            asyncio.run(self.expenses.update(expense.id, {"description": "Mine"}, "user-1"))

    def test_get_hides_other_owner(self):
        """Test get() returns None for another user's record."""
        expense = asyncio.run(self.expenses.add(expense_draft(user_id="user-2")))
        assert asyncio.run(self.expenses.get(expense.id, "user-1")) is None

    def test_delete_publishes_and_is_idempotent(self):
        """Test the first delete publishes, the second is a quiet no-op."""
        expense = asyncio.run(self.expenses.add(expense_draft()))
        assert asyncio.run(self.expenses.delete(expense.id, "user-1")).id == expense.id
        assert asyncio.run(self.expenses.delete(expense.id, "user-1")) is None
        assert [e.event_type for e in self.events] == [ChangeEventType.INSERT, ChangeEventType.DELETE]

    def test_delete_rejects_placeholder_id(self):
        """Test placeholder ids are refused on delete too."""
        with pytest.raises(InvalidRecordError):
            asyncio.run(self.expenses.delete("undefined", "user-1"))

    def test_budget_events_go_to_budget_subscribers(self):
        """Test budget writes are published on the budgets table."""
        received = []
        self.budgets.subscribe_to_budgets("user-1", received.append)
        asyncio.run(self.budgets.add(BudgetGoalDraft(user_id="user-1", category=SHOPPING, amount=Decimal("500"))))
        assert len(received) == 1
        assert self.events == []


# =============================================================================
# PREFERENCES
# =============================================================================

class TestPreferenceStore:
    """Tests for the JSON preference file."""

    def test_set_and_reload(self, tmp_path):
        """Test values persist across store instances."""
        path = tmp_path / "prefs.json"
        PreferenceStore(path).set("user-1", CHART_MONTH_KEY, "2024-03")
        assert PreferenceStore(path).get("user-1", CHART_MONTH_KEY) == "2024-03"

    def test_missing_file_reads_default(self, tmp_path):
        """Test a fresh install has no preferences."""
        store = PreferenceStore(tmp_path / "missing.json")
        assert store.get("user-1", SPENDING_HABITS_KEY, "default") == "default"

    def test_corrupt_file_reads_default(self, tmp_path):
        """Test a corrupt file is treated as empty."""
        path = tmp_path / "prefs.json"
        path.write_text("{not json", encoding="utf-8")
        assert PreferenceStore(path).get("user-1", CHART_MONTH_KEY, "all") == "all"

    def test_non_mapping_file_reads_default(self, tmp_path):
        """Test a JSON list is treated as empty."""
        path = tmp_path / "prefs.json"
        path.write_text("[1, 2]", encoding="utf-8")
        assert PreferenceStore(path).get("user-1", CHART_MONTH_KEY) is None

    def test_delete(self, tmp_path):
        """Test deleting a key removes it from the file."""
        path = tmp_path / "prefs.json"
        store = PreferenceStore(path)
        store.set("user-1", SPENDING_HABITS_KEY, "I eat out a lot")
        store.delete("user-1", SPENDING_HABITS_KEY)
        store.delete("user-1", "never-set")
        store.delete("user-2", SPENDING_HABITS_KEY)
        assert PreferenceStore(path).get("user-1", SPENDING_HABITS_KEY) is None

    def test_creates_parent_directory(self, tmp_path):
        """Test the file's directory is created on first write."""
        path = tmp_path / "nested" / "prefs.json"
        PreferenceStore(path).set("user-1", CHART_MONTH_KEY, "2024-01")
        assert path.exists()

    def test_values_are_scoped_per_user(self, tmp_path):
        """Test one user never sees another user's saved values."""
        path = tmp_path / "prefs.json"
        store = PreferenceStore(path)
        store.set("alice", SPENDING_HABITS_KEY, "Food & Drinks: approx 12,000 INR")
        store.set("alice", CHART_MONTH_KEY, "2024-03")

        assert store.get("bob", SPENDING_HABITS_KEY) is None
        assert PreferenceStore(path).get("bob", CHART_MONTH_KEY, "all") == "all"
        assert PreferenceStore(path).get("alice", CHART_MONTH_KEY) == "2024-03"

        store.set("bob", CHART_MONTH_KEY, "2024-01")
        assert store.get("alice", CHART_MONTH_KEY) == "2024-03"

    def test_flat_legacy_values_are_ignored(self, tmp_path):
        """Test a top-level value that is not a per-user mapping reads as unset."""
        path = tmp_path / "prefs.json"
        path.write_text('{"spending_habits": "shared text"}', encoding="utf-8")
        store = PreferenceStore(path)
        assert store.get("spending_habits", SPENDING_HABITS_KEY) is None
        store.set("spending_habits", SPENDING_HABITS_KEY, "mine")
        assert PreferenceStore(path).get("spending_habits", SPENDING_HABITS_KEY) == "mine"


# =============================================================================
# AUDIT LOGGER
# =============================================================================

class BrokenAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise ConnectionError("audit sheet unavailable")


class TestAuditLogger:
    """Tests for local + persisted audit logging."""

    def test_persists_when_storage_configured(self):
        """Test events are appended to audit storage."""
        storage = InMemoryAuditStorage()
        logger = AuditLogger(storage)
        assert asyncio.run(logger.log(AuditEventBuilder.session_changed("u", True))) is True
        assert len(storage.events) == 1

    def test_local_only_without_storage(self):
        """Test logging without storage still succeeds."""
        assert asyncio.run(AuditLogger().log(AuditEventBuilder.session_changed("u", False))) is True

    def test_storage_failure_does_not_raise(self):
        """Test a broken audit store is reported, not raised."""
        logger = AuditLogger(BrokenAuditStorage())
        assert asyncio.run(logger.log(AuditEventBuilder.tips_fallback_used("u", "503"))) is False
