"""
Main Orchestrator for MoneyWise

This module ties together all the components and defines the
end-to-end flows for:
1. Expenses (form → validate → persist → audit → notice)
2. Budgets (form → validate incl. one-per-category → persist → audit → notice)
3. Savings tips (habits text → AI advisor, or local fallback → notice)

DESIGN DECISION: Every collaborator is constructed once, explicitly, in
create_app_components() and passed down. No module reaches for a global
client. Tests build the same graph with in-memory storage and a fake
model.

The flows enforce the boundaries:
- Invalid forms never reach storage
- External-service failures become a generic "Error" notice, never an exception in the UI
- The savings page always shows tips, falling back to local ones
- Every step is audited
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Callable, Iterable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict

from moneywise.agents import (
    SavingsAdvisorAgent,
    SavingTipsRequest,
    SavingTipsResponse,
    generate_fallback_tips,
)
from moneywise.audit import AuditLogger, configure_logging, create_correlation_id
from moneywise.auth import IdentityProvider, SessionManager, StaticIdentityProvider
from moneywise.config import Settings, get_settings
from moneywise.models.events import BUDGETS_TABLE, EXPENSES_TABLE
from moneywise.models.finance import (
    BudgetGoal,
    BudgetGoalDraft,
    Expense,
    ExpenseDraft,
    ValidationResult,
)
from moneywise.services.changes import ChangeFeed
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
    InMemoryBudgetStorage,
    InMemoryExpenseStorage,
    InvalidRecordError,
    StorageError,
)
from moneywise.sync import LiveCollection
from moneywise.validation import (
    BudgetFormValidator,
    ExpenseFormValidator,
    parse_amount,
    parse_category,
)


logger = structlog.get_logger(__name__)


# =============================================================================
# RESULT MODELS
# =============================================================================

class Notice(BaseModel):
    """A toast message for the UI."""

    title: str
    description: str
    variant: str = "default"  # "default" | "destructive"


class FlowResult(BaseModel):
    """
    Outcome of one user action.

    ok=False with a validation result means "fix the form"; ok=False
    with only a notice means the action failed outside our control.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    ok: bool
    record: Optional[Any] = None
    notice: Optional[Notice] = None
    validation: Optional[ValidationResult] = None


def _error_notice(description: str) -> Notice:
    return Notice(title="Error", description=description, variant="destructive")


def _as_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


# =============================================================================
# FLOWS
# =============================================================================

class _RecordFlow:
    """Audit and logging shared by the expense and budget flows."""

    entity = "record"

    def __init__(self, audit_logger: Optional[AuditLogger] = None):
        self._audit_logger = audit_logger or AuditLogger()

    async def _rejected(
        self,
        validation: ValidationResult,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        await self._audit_logger.log_validation_failed(
            form=self.entity,
            user_id=user_id,
            issues=[issue.model_dump() for issue in validation.issues],
            correlation_id=correlation_id,
        )

    async def _service_failed(
        self,
        operation: str,
        error: Exception,
        user_id: str,
        correlation_id: UUID,
    ) -> None:
        logger.error(
            f"{self.entity}_{operation}_failed",
            user_id=user_id,
            error=str(error),
            error_type=type(error).__name__,
        )
        await self._audit_logger.log_external_service_error(
            service="storage",
            operation=f"{operation}_{self.entity}",
            error_message=str(error),
            user_id=user_id,
            correlation_id=correlation_id,
        )


class ExpenseFlow(_RecordFlow):
    """
    Orchestrates adding, editing and deleting expenses.

    Flow:
    1. Validate the form (nothing is stored on failure)
    2. Persist through ExpenseService (publishes the change event)
    3. Audit
    4. Return a notice for the UI
    """

    entity = "expense"

    def __init__(
        self,
        expenses: ExpenseService,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[ExpenseFormValidator] = None,
    ):
        super().__init__(audit_logger)
        self._expenses = expenses
        self._validator = validator or ExpenseFormValidator()

    async def _validate(
        self,
        user_id: str,
        description: Optional[str],
        amount: Any,
        category: Any,
        date: Optional[date | datetime],
        correlation_id: UUID,
    ) -> ValidationResult:
        validation = self._validator.validate(description, amount, category, date)
        if not validation.is_valid:
            await self._rejected(validation, user_id, correlation_id)
        return validation

    async def add(
        self,
        user_id: str,
        description: Optional[str],
        amount: Any,
        category: Any,
        date: Optional[date | datetime],
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        correlation_id = correlation_id or create_correlation_id()

        validation = await self._validate(
            user_id, description, amount, category, date, correlation_id
        )
        if not validation.is_valid:
            return FlowResult(ok=False, validation=validation)

        draft = ExpenseDraft(
            user_id=user_id,
            description=description.strip(),
            amount=parse_amount(amount),
            category=parse_category(category),
            date=_as_datetime(date),
        )
        try:
            expense = await self._expenses.add(draft)
        except StorageError as e:
            await self._service_failed("add", e, user_id, correlation_id)
            return FlowResult(
                ok=False,
                validation=validation,
                notice=_error_notice("Failed to add expense. Please try again."),
            )

        await self._audit_logger.log_record_saved(
            entity_type=self.entity,
            entity_id=expense.id,
            user_id=user_id,
            category=expense.category.value,
            amount=str(expense.amount),
            correlation_id=correlation_id,
        )
        return FlowResult(
            ok=True,
            record=expense,
            validation=validation,
            notice=Notice(
                title="Expense Added",
                description=f"{expense.description} successfully added.",
            ),
        )

    async def update(
        self,
        user_id: str,
        expense_id: Optional[str],
        description: Optional[str],
        amount: Any,
        category: Any,
        date: Optional[date | datetime],
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        correlation_id = correlation_id or create_correlation_id()

        validation = await self._validate(
            user_id, description, amount, category, date, correlation_id
        )
        if not validation.is_valid:
            return FlowResult(ok=False, validation=validation)

        changes = {
            "description": description.strip(),
            "amount": parse_amount(amount),
            "category": parse_category(category),
            "date": _as_datetime(date),
        }
        try:
            expense = await self._expenses.update(expense_id, changes, user_id)
        except InvalidRecordError as e:
            await self._service_failed("update", e, user_id, correlation_id)
            return FlowResult(
                ok=False,
                validation=validation,
                notice=_error_notice("Expense ID is missing. Cannot update expense."),
            )
        except StorageError as e:
            await self._service_failed("update", e, user_id, correlation_id)
            return FlowResult(
                ok=False,
                validation=validation,
                notice=_error_notice("Failed to update expense. Please try again."),
            )

        await self._audit_logger.log_record_updated(
            entity_type=self.entity,
            entity_id=expense.id,
            user_id=user_id,
            changed_fields=sorted(changes),
            correlation_id=correlation_id,
        )
        return FlowResult(
            ok=True,
            record=expense,
            validation=validation,
            notice=Notice(
                title="Expense Updated",
                description=f"{expense.description} successfully updated.",
            ),
        )

    async def delete(
        self,
        user_id: str,
        expense_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        correlation_id = correlation_id or create_correlation_id()
        try:
            expense = await self._expenses.delete(expense_id, user_id)
        except StorageError as e:
            await self._service_failed("delete", e, user_id, correlation_id)
            return FlowResult(
                ok=False,
                notice=_error_notice("Failed to delete expense. Please try again."),
            )

        # Already gone: nothing to report
        if expense is None:
            return FlowResult(ok=True)

        await self._audit_logger.log_record_deleted(
            entity_type=self.entity,
            entity_id=expense.id,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return FlowResult(
            ok=True,
            record=expense,
            notice=Notice(
                title="Expense Deleted",
                description=f"{expense.description} successfully deleted.",
                variant="destructive",
            ),
        )


class BudgetFlow(_RecordFlow):
    """
    Orchestrates setting, editing and deleting budget goals.

    Same shape as ExpenseFlow, plus the one-budget-per-category rule,
    checked against the user's current goals.
    """

    entity = "budget"

    def __init__(
        self,
        budgets: BudgetService,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[BudgetFormValidator] = None,
    ):
        super().__init__(audit_logger)
        self._budgets = budgets
        self._validator = validator or BudgetFormValidator()

    async def _existing(
        self,
        user_id: str,
        existing: Optional[Iterable[BudgetGoal]],
    ) -> list[BudgetGoal]:
        if existing is not None:
            return list(existing)
        return await self._budgets.list_for_user(user_id)

    async def _validate_budget(
        self,
        user_id: str,
        category: Any,
        amount: Any,
        goals: list[BudgetGoal],
        editing: Optional[BudgetGoal],
        correlation_id: UUID,
    ) -> ValidationResult:
        validation = self._validator.validate(
            category,
            amount,
            existing_categories=[goal.category for goal in goals],
            editing_category=editing.category if editing else None,
        )
        if not validation.is_valid:
            await self._rejected(validation, user_id, correlation_id)
        return validation

    async def add(
        self,
        user_id: str,
        category: Any,
        amount: Any,
        existing: Optional[Iterable[BudgetGoal]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        correlation_id = correlation_id or create_correlation_id()
        try:
            goals = await self._existing(user_id, existing)
        except StorageError as e:
            await self._service_failed("add", e, user_id, correlation_id)
            return FlowResult(ok=False, notice=_error_notice("Failed to set budget. Please try again."))

        validation = await self._validate_budget(
            user_id, category, amount, goals, None, correlation_id
        )
        if not validation.is_valid:
            return FlowResult(ok=False, validation=validation)

        draft = BudgetGoalDraft(
            user_id=user_id,
            category=parse_category(category),
            amount=parse_amount(amount),
        )
        try:
            goal = await self._budgets.add(draft)
        except StorageError as e:
            await self._service_failed("add", e, user_id, correlation_id)
            return FlowResult(
                ok=False,
                validation=validation,
                notice=_error_notice("Failed to set budget. Please try again."),
            )

        await self._audit_logger.log_record_saved(
            entity_type=self.entity,
            entity_id=goal.id,
            user_id=user_id,
            category=goal.category.value,
            amount=str(goal.amount),
            correlation_id=correlation_id,
        )
        return FlowResult(
            ok=True,
            record=goal,
            validation=validation,
            notice=Notice(
                title="Budget Set",
                description=f"Budget for {goal.category.value} successfully set.",
            ),
        )

    async def update(
        self,
        user_id: str,
        budget_id: Optional[str],
        category: Any,
        amount: Any,
        existing: Optional[Iterable[BudgetGoal]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        correlation_id = correlation_id or create_correlation_id()
        try:
            goals = await self._existing(user_id, existing)
        except StorageError as e:
            await self._service_failed("update", e, user_id, correlation_id)
            return FlowResult(ok=False, notice=_error_notice("Failed to update budget. Please try again."))

        editing = next((goal for goal in goals if goal.id == budget_id), None)
        validation = await self._validate_budget(
            user_id, category, amount, goals, editing, correlation_id
        )
        if not validation.is_valid:
            return FlowResult(ok=False, validation=validation)

        changes = {
            "category": parse_category(category),
            "amount": parse_amount(amount),
        }
        try:
            goal = await self._budgets.update(budget_id, changes, user_id)
        except InvalidRecordError as e:
            await self._service_failed("update", e, user_id, correlation_id)
            return FlowResult(
                ok=False,
                validation=validation,
                notice=_error_notice("Budget ID is missing. Cannot update budget."),
            )
        except StorageError as e:
            await self._service_failed("update", e, user_id, correlation_id)
            return FlowResult(
                ok=False,
                validation=validation,
                notice=_error_notice("Failed to update budget. Please try again."),
            )

        await self._audit_logger.log_record_updated(
            entity_type=self.entity,
            entity_id=goal.id,
            user_id=user_id,
            changed_fields=sorted(changes),
            correlation_id=correlation_id,
        )
        return FlowResult(
            ok=True,
            record=goal,
            validation=validation,
            notice=Notice(
                title="Budget Updated",
                description=f"Budget for {goal.category.value} successfully updated.",
            ),
        )

    async def delete(
        self,
        user_id: str,
        budget_id: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        correlation_id = correlation_id or create_correlation_id()
        try:
            goal = await self._budgets.delete(budget_id, user_id)
        except StorageError as e:
            await self._service_failed("delete", e, user_id, correlation_id)
            return FlowResult(
                ok=False,
                notice=_error_notice("Failed to delete budget. Please try again."),
            )

        if goal is None:
            return FlowResult(ok=True)

        await self._audit_logger.log_record_deleted(
            entity_type=self.entity,
            entity_id=goal.id,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        return FlowResult(
            ok=True,
            record=goal,
            notice=Notice(
                title="Budget Deleted",
                description=f"Budget for {goal.category.value} successfully deleted.",
                variant="destructive",
            ),
        )


class SavingsTipsFlow:
    """
    Orchestrates the AI savings advisor.

    The page always ends up with tips: if the advisor is not configured
    or fails in any way, local fallback tips are shown with a distinct
    notice. Only blank input is refused.
    """

    def __init__(
        self,
        advisor: Optional[SavingsAdvisorAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._advisor = advisor
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def has_advisor(self) -> bool:
        return self._advisor is not None

    async def get_tips(
        self,
        habits: Optional[str],
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> FlowResult:
        correlation_id = correlation_id or create_correlation_id()
        text = (habits or "").strip()

        if not text:
            return FlowResult(
                ok=False,
                notice=Notice(
                    title="Input Required",
                    description=(
                        "Please describe your spending habits or ensure "
                        "expenses are recorded."
                    ),
                    variant="destructive",
                ),
            )

        try:
            if self._advisor is None:
                raise RuntimeError("AI advisor is not configured")
            response = await self._advisor.get_saving_tips(
                SavingTipsRequest(spending_habits=text)
            )
        except Exception as e:
            logger.warning("saving_tips_fallback", user_id=user_id, error=str(e))
            await self._audit_logger.log_tips_fallback_used(
                user_id=user_id,
                reason=str(e),
                correlation_id=correlation_id,
            )
            return FlowResult(
                ok=True,
                record=SavingTipsResponse(
                    saving_tips=generate_fallback_tips(text),
                    used_fallback=True,
                ),
                notice=Notice(
                    title="Using Fallback Tips",
                    description=(
                        "The AI service is currently unavailable. "
                        "Showing basic tips instead."
                    ),
                    variant="destructive",
                ),
            )

        await self._audit_logger.log_tips_generated(
            user_id=user_id,
            model_name=response.model_name or "unknown",
            input_length=len(text),
            output_length=len(response.saving_tips),
            correlation_id=correlation_id,
        )
        return FlowResult(
            ok=True,
            record=response,
            notice=Notice(
                title="Savings Tips Generated!",
                description="Check out your personalized advice below.",
            ),
        )


# =============================================================================
# COMPOSITION ROOT
# =============================================================================

@dataclass
class AppComponents:
    """Every long-lived collaborator, constructed once."""

    settings: Settings
    change_feed: ChangeFeed
    expense_service: ExpenseService
    budget_service: BudgetService
    audit_logger: AuditLogger
    session_manager: SessionManager
    preferences: PreferenceStore
    expense_flow: ExpenseFlow
    budget_flow: BudgetFlow
    tips_flow: SavingsTipsFlow
    advisor: Optional[SavingsAdvisorAgent] = None
    sheets_client: Optional[GoogleSheetsClient] = None
    reconcile_interval: float = 60.0
    clock: Optional[Callable[[], float]] = field(default=None, repr=False)

    @property
    def uses_sheets(self) -> bool:
        return self.sheets_client is not None

    def expense_collection(self, user_id: str) -> LiveCollection[Expense]:
        """Live cache of a user's expenses, newest first, attached to the feed."""
        kwargs = {"clock": self.clock} if self.clock else {}
        collection = LiveCollection(
            table=EXPENSES_TABLE,
            user_id=user_id,
            model=Expense,
            fetch=lambda: self.expense_service.list_for_user(user_id),
            sort_key=lambda e: e.date,
            reverse=True,
            reconcile_interval=self.reconcile_interval,
            **kwargs,
        )
        collection.attach(self.change_feed)
        return collection

    def budget_collection(self, user_id: str) -> LiveCollection[BudgetGoal]:
        """Live cache of a user's budget goals, by category name."""
        kwargs = {"clock": self.clock} if self.clock else {}
        collection = LiveCollection(
            table=BUDGETS_TABLE,
            user_id=user_id,
            model=BudgetGoal,
            fetch=lambda: self.budget_service.list_for_user(user_id),
            sort_key=lambda g: g.category.value,
            reconcile_interval=self.reconcile_interval,
            **kwargs,
        )
        collection.attach(self.change_feed)
        return collection


def _default_identity(settings: Settings) -> IdentityProvider:
    auth = settings.auth
    if auth.dev_user_id:
        logger.warning("static_identity_in_use", user_id=auth.dev_user_id)
        return StaticIdentityProvider(
            user_id=auth.dev_user_id,
            email=auth.dev_user_email,
            signed_in=True,
        )

    # Imported here so the package works without a Streamlit runtime
    from moneywise.auth.streamlit_provider import StreamlitIdentityProvider
    return StreamlitIdentityProvider(provider=auth.provider)


def create_app_components(
    settings: Optional[Settings] = None,
    use_storage: bool = True,
    identity: Optional[IdentityProvider] = None,
    advisor: Optional[SavingsAdvisorAgent] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use. Loaded from the environment if omitted.
        use_storage: Whether to use Google Sheets storage.
                    Set to False for in-memory storage (tests, offline).
        identity: Identity provider. Chosen from AUTH_ settings if omitted.
        advisor: Savings advisor. Built from GEMINI_ settings if omitted;
                 left out (fallback tips only) if Gemini isn't configured.
    """
    settings = settings or get_settings()
    app_settings = settings.app
    configure_logging(app_settings.debug_mode)

    sheets_client: Optional[GoogleSheetsClient] = None
    expense_storage: ExpenseStorageInterface
    budget_storage: BudgetStorageInterface
    audit_storage: Optional[AuditStorageInterface] = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            expense_storage = GoogleSheetsExpenseStorage(sheets_client)
            budget_storage = GoogleSheetsBudgetStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    if sheets_client is None:
        expense_storage = InMemoryExpenseStorage()
        budget_storage = InMemoryBudgetStorage()
        audit_storage = None  # Local-only audit logging

    if advisor is None:
        try:
            advisor = SavingsAdvisorAgent(settings.gemini)
        except Exception as e:
            logger.warning("ai_advisor_not_configured", error=str(e))
            advisor = None

    feed = ChangeFeed()
    audit_logger = AuditLogger(audit_storage)
    expense_service = ExpenseService(expense_storage, feed)
    budget_service = BudgetService(budget_storage, feed)

    return AppComponents(
        settings=settings,
        change_feed=feed,
        expense_service=expense_service,
        budget_service=budget_service,
        audit_logger=audit_logger,
        session_manager=SessionManager(identity or _default_identity(settings)),
        preferences=PreferenceStore(app_settings.preferences_path),
        expense_flow=ExpenseFlow(
            expense_service,
            audit_logger,
            ExpenseFormValidator(app_settings),
        ),
        budget_flow=BudgetFlow(budget_service, audit_logger),
        tips_flow=SavingsTipsFlow(advisor, audit_logger),
        advisor=advisor,
        sheets_client=sheets_client,
        reconcile_interval=float(app_settings.reconcile_interval_seconds),
    )
