"""
Tests for the expense and budget form validators.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from moneywise.config import AppSettings
from moneywise.models import ExpenseCategory
from moneywise.validation import (
    BudgetFormValidator,
    ExpenseFormValidator,
    parse_amount,
    parse_category,
)


FOOD = ExpenseCategory.FOOD_AND_DRINKS


def messages(result):
    return [issue.message for issue in result.issues]


class TestParsing:
    """Tests for form value coercion."""

    @pytest.mark.parametrize("value, expected", [
        ("12.50", Decimal("12.50")),
        (" 7 ", Decimal("7")),
        (3, Decimal("3")),
        (2.5, Decimal("2.5")),
        ("-4", Decimal("-4")),
    ])
    def test_parse_amount(self, value, expected):
        """Test numeric input becomes Decimal."""
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", "NaN", "inf", True, "1,000"])
    def test_parse_amount_rejects(self, value):
        """Test non-numbers, non-finite numbers and booleans are refused."""
        assert parse_amount(value) is None

    def test_parse_category(self):
        """Test categories parse from their display value."""
        assert parse_category("Food & Drinks") == FOOD
        assert parse_category(FOOD) == FOOD
        assert parse_category("Groceries") is None


class TestExpenseFormValidator:
    """Tests for the expense form rules."""

    def setup_method(self):
        self.validator = ExpenseFormValidator(AppSettings())

    def test_valid_form(self):
        """Test a complete form passes without warnings."""
        result = self.validator.validate("Lunch", "250", FOOD, date(2024, 3, 4))
        assert result.is_valid
        assert result.issues == []
        assert result.warnings == []

    def test_short_description(self):
        """Test the minimum description length applies after trimming."""
        result = self.validator.validate("  a  ", "250", FOOD, date(2024, 3, 4))
        assert not result.is_valid
        assert "Description must be at least 2 characters." in messages(result)

    def test_long_description(self):
        """Test the maximum description length."""
        result = self.validator.validate("x" * 101, "250", FOOD, date(2024, 3, 4))
        assert "Description must be at most 100 characters." in messages(result)

    @pytest.mark.parametrize("amount", ["0", "-5", 0])
    def test_non_positive_amount(self, amount):
        """Test zero and negative amounts are rejected."""
        result = self.validator.validate("Lunch", amount, FOOD, date(2024, 3, 4))
        assert "Amount must be positive." in messages(result)

    def test_non_numeric_amount(self):
        """Test text amounts are rejected."""
        result = self.validator.validate("Lunch", "lots", FOOD, date(2024, 3, 4))
        assert "Amount must be a number." in messages(result)

    def test_invalid_category(self):
        """Test unknown categories are rejected."""
        result = self.validator.validate("Lunch", "250", "Groceries", date(2024, 3, 4))
        assert "Please select a valid category." in messages(result)

    def test_missing_date(self):
        """Test the date is required."""
        result = self.validator.validate("Lunch", "250", FOOD, None)
        assert "A date is required." in messages(result)

    def test_future_date_is_only_a_warning(self):
        """Test a future date warns but does not block."""
        tomorrow = datetime.now() + timedelta(days=2)
        result = self.validator.validate("Lunch", "250", FOOD, tomorrow)
        assert result.is_valid
        assert result.warnings == ["The expense date is in the future."]

    def test_reports_every_problem(self):
        """Test all issues are returned at once."""
        result = self.validator.validate("", "-1", "nope", None)
        fields = {issue.field for issue in result.issues}
        assert fields == {"description", "amount", "category", "date"}

    def test_configured_lengths(self):
        """Test the length limits come from settings."""
        validator = ExpenseFormValidator(AppSettings(description_min_length=5))
        result = validator.validate("Taxi", "100", FOOD, date(2024, 3, 4))
        assert "Description must be at least 5 characters." in messages(result)


class TestBudgetFormValidator:
    """Tests for the budget form rules."""

    def setup_method(self):
        self.validator = BudgetFormValidator()

    def test_valid_budget(self):
        """Test a new category with a positive amount passes."""
        assert self.validator.validate(FOOD, "1000").is_valid

    def test_non_positive_amount(self):
        """Test budget amounts must be positive."""
        result = self.validator.validate(FOOD, "0")
        assert "Budget amount must be positive." in messages(result)

    def test_duplicate_category(self):
        """Test one budget per category."""
        result = self.validator.validate(FOOD, "1000", existing_categories=[FOOD])
        assert not result.is_valid
        assert "A budget for Food & Drinks already exists." in messages(result)

    def test_editing_keeps_own_category(self):
        """Test the budget being edited may keep its category."""
        result = self.validator.validate(
            FOOD, "1200", existing_categories=[FOOD], editing_category=FOOD
        )
        assert result.is_valid

    def test_editing_into_taken_category(self):
        """Test moving a budget onto another budgeted category is rejected."""
        result = self.validator.validate(
            ExpenseCategory.SHOPPING,
            "100",
            existing_categories=[FOOD, ExpenseCategory.SHOPPING],
            editing_category=FOOD,
        )
        assert not result.is_valid

    def test_string_categories_accepted(self):
        """Test existing categories may be given as display values."""
        result = self.validator.validate("Food & Drinks", "10", existing_categories=["Food & Drinks"])
        assert not result.is_valid
