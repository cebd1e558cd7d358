"""
Tests for MoneyWise

Test strategy:
1. Unit tests for individual components (models, validators, renderer)
2. Integration tests for flows (with in-memory storage and fake models)
3. No real API calls in tests (use fakes)
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from moneywise.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    BudgetGoal,
    BudgetGoalDraft,
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ValidationIssue,
    ValidationResult,
)


class TestFinanceModels:
    """Tests for expense and budget models."""

    def test_category_values(self):
        """Test the fixed category set and its form order."""
        values = [c.value for c in ExpenseCategory]
        assert len(values) == 11
        assert values[0] == "Food & Drinks"
        assert values[-1] == "Others"
        assert "Communication, PC" in values

    def test_expense_creation(self):
        """Test Expense model creation."""
        expense = Expense(
            id="e-1",
            user_id="user-1",
            description="  Lunch  ",
            amount=Decimal("250.50"),
            category=ExpenseCategory.FOOD_AND_DRINKS,
            date=datetime(2024, 3, 4, 13, 0),
        )
        assert expense.description == "Lunch"
        assert expense.amount == Decimal("250.50")
        assert expense.created_at.tzinfo is not None

    def test_category_from_display_value(self):
        """Test categories load from their stored string."""
        draft = ExpenseDraft(
            user_id="u",
            description="Bus",
            amount=Decimal("20"),
            category="Transportation",
            date=datetime(2024, 3, 4),
        )
        assert draft.category == ExpenseCategory.TRANSPORTATION

    def test_unknown_category_rejected(self):
        """Test free-text categories are rejected."""
        with pytest.raises(ValueError):
            ExpenseDraft(
                user_id="u",
                description="Bus",
                amount=Decimal("20"),
                category="Travel",
                date=datetime(2024, 3, 4),
            )

    def test_negative_amount_rejected(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            BudgetGoalDraft(user_id="u", category=ExpenseCategory.SHOPPING, amount=Decimal("-1"))

    def test_aware_date_normalized_to_naive_utc(self):
        """Test timezone-aware dates are stored as naive UTC."""
        draft = ExpenseDraft(
            user_id="u",
            description="Late dinner",
            amount=Decimal("1"),
            category=ExpenseCategory.FOOD_AND_DRINKS,
            date=datetime(2024, 3, 4, 23, 30, tzinfo=timezone.utc),
        )
        assert draft.date == datetime(2024, 3, 4, 23, 30)
        assert draft.date.tzinfo is None

    def test_owner_required(self):
        """Test an empty user id is rejected."""
        with pytest.raises(ValueError):
            BudgetGoal(id="b-1", user_id="", category=ExpenseCategory.HOUSING, amount=Decimal("1"))

    def test_json_dump_round_trip(self):
        """Test the JSON-mode dump used by change events loads back."""
        goal = BudgetGoal(id="b-1", user_id="u", category=ExpenseCategory.HOUSING, amount=Decimal("20000"))
        assert BudgetGoal.model_validate(goal.model_dump(mode="json")) == goal


class TestValidationModels:
    """Tests for validation result models."""

    def test_validation_result(self):
        """Test ValidationResult model creation."""
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="not_positive",
                    message="Amount must be positive.",
                    severity="error",
                )
            ],
            warnings=["The expense date is in the future."],
        )
        assert not result.is_valid
        assert result.issues[0].field == "amount"
        assert result.warnings == ["The expense date is in the future."]

    def test_errors_for_field(self):
        """Test error messages can be looked up per form field."""
        result = ValidationResult(
            is_valid=False,
            issues=[
                ValidationIssue(field="amount", issue_type="not_positive", message="Amount must be positive.", severity="error"),
                ValidationIssue(field="amount", issue_type="large", message="That is a lot.", severity="info"),
                ValidationIssue(field="date", issue_type="missing", message="A date is required.", severity="error"),
            ],
        )
        assert result.has_errors
        assert result.error_count == 2
        assert result.errors_for("amount") == ["Amount must be positive."]
        assert result.errors_for("description") == []


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_SAVED,
            description="Expense saved",
            user_id="user-1",
        )
        assert event.event_type == AuditEventType.EXPENSE_SAVED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.BUDGET_DELETED,
            description="Budget deleted",
            correlation_id=correlation_id,
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "budget_deleted"
        assert log_dict["correlation_id"] == str(correlation_id)

    def test_audit_event_to_sheets_row(self):
        """Test conversion to spreadsheet row."""
        event = AuditEventBuilder.record_saved(
            entity_type="expense",
            entity_id="e-1",
            user_id="user-1",
            category="Shopping",
            amount="1999.00",
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "expense_saved"
        assert json.loads(row[9]) == {"category": "Shopping", "amount": "1999.00"}
        assert row[11] == "True"

    def test_builder_picks_event_type_per_entity(self):
        """Test saved/updated/deleted events map to the right type."""
        assert AuditEventBuilder.record_saved("budget", "b", "u", "Housing", "1").event_type == AuditEventType.BUDGET_SAVED
        assert AuditEventBuilder.record_updated("expense", "e", "u", ["amount"]).event_type == AuditEventType.EXPENSE_UPDATED
        assert AuditEventBuilder.record_deleted("budget", "b", "u").event_type == AuditEventType.BUDGET_DELETED

    def test_fallback_event_is_a_warning(self):
        """Test the AI fallback is recorded as a warning with the reason."""
        event = AuditEventBuilder.tips_fallback_used("u", reason="quota exceeded")
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "quota exceeded"

    def test_session_events(self):
        """Test sign-in and sign-out event types."""
        assert AuditEventBuilder.session_changed("u", True).event_type == AuditEventType.USER_SIGNED_IN
        assert AuditEventBuilder.session_changed("u", False).event_type == AuditEventType.USER_SIGNED_OUT
