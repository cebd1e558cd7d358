"""
Streamlit Frontend for MoneyWise

The user interface for tracking expenses, setting monthly budgets,
viewing spending charts and asking the AI advisor for saving tips.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Every action ends with a visible notice
3. Form errors appear next to the form, in plain language
4. A failing page shows an error card, never a stack trace
5. No hidden actions

Data flow:
- Each browser session keeps a LiveCollection per table
- Writes go through the flows; their change events update the
  collections directly, and a periodic reconcile picks up outside edits
"""

import asyncio
from datetime import date, datetime
from typing import Callable, Optional

import pandas as pd
import plotly.express as px
import streamlit as st
import structlog

from moneywise.analytics import (
    aggregate_budgets,
    budget_overview,
    build_spending_summary,
    daily_spending,
    filter_by_month,
    format_currency,
    month_options,
    recent_expenses,
    summarize_by_category,
    total_budgeted,
    total_spent,
    total_spent_against,
    unbudgeted_categories,
)
from moneywise.auth import AuthError, SessionEvent, SessionManager, UserSession
from moneywise.config import validate_all_settings
from moneywise.models import BudgetGoal, Expense, ExpenseCategory
from moneywise.orchestrator import AppComponents, FlowResult, Notice, create_app_components
from moneywise.rendering import render_markdown
from moneywise.services.preferences import CHART_MONTH_KEY, SPENDING_HABITS_KEY
from moneywise.sync import LiveCollection, release_user_state


logger = structlog.get_logger(__name__)

ALL_MONTHS = "All months"


# Page configuration
st.set_page_config(
    page_title="MoneyWise - Personal Finance Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
    .info-box {
        padding: 20px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
    }
    .tips-content h1, .tips-content h2, .tips-content h3 {
        margin-top: 0.8em;
    }
    .over-budget {
        color: #dc3545;
        font-weight: bold;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


# =============================================================================
# SESSION STATE
# =============================================================================

def get_session_manager(components: AppComponents) -> SessionManager:
    """One SessionManager per browser session, sharing the app's provider."""
    if "session_manager" not in st.session_state:
        manager = SessionManager(components.session_manager.provider)

        def audit_session(event: SessionEvent, session: Optional[UserSession]) -> None:
            user_id = session.user_id if session else st.session_state.get("last_user_id")
            if user_id:
                run_async(components.audit_logger.log_session_changed(
                    user_id=user_id,
                    signed_in=event == SessionEvent.SIGNED_IN,
                    provider=session.provider if session else None,
                ))

        manager.on_change(audit_session)
        st.session_state.session_manager = manager
    return st.session_state.session_manager


def get_collections(
    components: AppComponents,
    user_id: str,
) -> tuple[LiveCollection[Expense], LiveCollection[BudgetGoal]]:
    """The session's live caches, rebuilt when the signed-in user changes."""
    if st.session_state.get("collections_user") != user_id:
        close_collections()
        st.session_state.expense_collection = components.expense_collection(user_id)
        st.session_state.budget_collection = components.budget_collection(user_id)
        st.session_state.collections_user = user_id
    return st.session_state.expense_collection, st.session_state.budget_collection


def close_collections() -> None:
    release_user_state(st.session_state)


def sync_collections(
    expenses: LiveCollection[Expense],
    budgets: LiveCollection[BudgetGoal],
    force: bool = False,
) -> None:
    """Load both tables concurrently, or refresh them if stale."""
    async def sync():
        await asyncio.gather(
            expenses.reconcile(force=force),
            budgets.reconcile(force=force),
        )

    run_async(sync())


def queue_notice(notice: Optional[Notice]) -> None:
    """Show a notice after the next rerun."""
    if notice is not None:
        st.session_state.setdefault("pending_notices", []).append(notice)


def show_pending_notices() -> None:
    for notice in st.session_state.pop("pending_notices", []):
        icon = "⚠️" if notice.variant == "destructive" else "✅"
        st.toast(f"**{notice.title}**  \n{notice.description}", icon=icon)


def show_form_errors(result: FlowResult) -> None:
    if result.validation is None:
        return
    for field in ("description", "amount", "category", "date"):
        for message in result.validation.errors_for(field):
            st.error(message)
    for warning in result.validation.warnings:
        st.warning(warning)


def finish_action(result: FlowResult) -> None:
    """Queue the notice and rerun on success; show errors in place otherwise."""
    queue_notice(result.notice)
    if result.ok:
        st.rerun()
    show_form_errors(result)
    show_pending_notices()


# =============================================================================
# ERROR BOUNDARY
# =============================================================================

def render_page_safely(render: Callable[..., None], *args) -> None:
    """
    Render one page inside an error boundary.

    An uncaught exception becomes an error card with a "Try again" button
    that reruns the page. The rest of the app keeps working.
    """
    try:
        render(*args)
    except Exception as e:
        logger.exception("page_render_failed", page=render.__name__, error=str(e))
        st.markdown(
            f"""
            <div class="error-box">
                <h3>Something went wrong</h3>
                <p>This page could not be displayed. {type(e).__name__}: {e}</p>
            </div>
            """,
            unsafe_allow_html=True,
        )
        if st.button("Try again", key=f"retry_{render.__name__}"):
            st.session_state.force_sync = True
            st.rerun()


# =============================================================================
# MAIN
# =============================================================================

def main():
    """Main application entry point."""
    components = get_components()
    sessions = get_session_manager(components)
    session = sessions.refresh()

    st.sidebar.title("💰 MoneyWise")
    st.sidebar.markdown("---")

    if session is None:
        close_collections()
        render_page_safely(render_signin_page, sessions, components.settings.auth.provider)
        return

    st.session_state.last_user_id = session.user_id
    expenses, budgets = get_collections(components, session.user_id)
    sync_collections(expenses, budgets, force=st.session_state.pop("force_sync", False))

    page = st.sidebar.radio(
        "Navigate to:",
        [
            "🏠 Dashboard",
            "🧾 Expenses",
            "🎯 Budgets",
            "📊 Charts",
            "💡 AI Savings",
            "⚙️ Settings",
        ],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(f"Signed in as **{session.label}**")
    if st.sidebar.button("Sign out"):
        try:
            sessions.sign_out()
        except AuthError as e:
            st.sidebar.error(str(e))
        else:
            close_collections()
            st.rerun()

    show_pending_notices()

    if page == "🏠 Dashboard":
        render_page_safely(render_dashboard_page, components, expenses, budgets)
    elif page == "🧾 Expenses":
        render_page_safely(render_expenses_page, components, session, expenses)
    elif page == "🎯 Budgets":
        render_page_safely(render_budgets_page, components, session, expenses, budgets)
    elif page == "📊 Charts":
        render_page_safely(render_charts_page, components, session, expenses)
    elif page == "💡 AI Savings":
        render_page_safely(render_savings_page, components, session, expenses)
    elif page == "⚙️ Settings":
        render_page_safely(render_settings_page, components)


def render_signin_page(sessions: SessionManager, provider: str):
    """Render the sign-in page."""
    st.title("Welcome to MoneyWise")
    st.markdown(
        "Manage your expenses, track budgets, and get AI-powered saving tips."
    )
    st.markdown("---")

    if st.button("Sign in with Google", type="primary"):
        try:
            if sessions.sign_in(provider):
                st.rerun()
        except AuthError as e:
            st.error(str(e))


# =============================================================================
# PAGES
# =============================================================================

def render_dashboard_page(
    components: AppComponents,
    expenses: LiveCollection[Expense],
    budgets: LiveCollection[BudgetGoal],
):
    """Render the dashboard."""
    app = components.settings.app
    currency = app.currency
    expense_list = expenses.items()
    goals = budgets.items()

    st.title("🏠 Dashboard")

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Total Expenses", format_currency(total_spent(expense_list), currency))
        st.caption(f"{len(expense_list)} expenses recorded")
    with col2:
        progress = aggregate_budgets(expense_list, goals)
        st.metric("Budget Goals", len(goals))
        st.caption(
            f"{format_currency(total_spent_against(progress), currency)} spent of "
            f"{format_currency(total_budgeted(goals), currency)} budgeted"
        )
    with col3:
        st.metric("AI Savings Tips", "Ready" if components.tips_flow.has_advisor else "Basic")
        st.caption("Get personalized advice on the AI Savings page")

    if not expense_list and not goals:
        st.markdown(
            '<div class="info-box">Get started by adding your first expense '
            "or setting a budget goal.</div>",
            unsafe_allow_html=True,
        )
        return

    st.markdown("---")
    left, right = st.columns(2)

    with left:
        st.markdown("### Spending by Category")
        render_category_pie(expense_list)

    with right:
        st.markdown("### Budget Overview")
        overview = budget_overview(expense_list, goals, limit=app.budget_overview_limit)
        if not overview:
            st.info("No budgets set yet.")
        for item in overview:
            render_budget_progress(item, currency)

    st.markdown("### Recent Expenses")
    recent = recent_expenses(expense_list, limit=app.recent_expenses_limit)
    if recent:
        st.dataframe(expenses_frame(recent, currency), hide_index=True, use_container_width=True)
    else:
        st.info("No expenses yet.")


def render_expenses_page(
    components: AppComponents,
    session: UserSession,
    expenses: LiveCollection[Expense],
):
    """Render the expenses page (add, edit, delete)."""
    currency = components.settings.app.currency
    flow = components.expense_flow

    st.title("🧾 Expenses")
    st.markdown("Record what you spend and keep the list tidy.")

    with st.expander("➕ Add Expense", expanded=not len(expenses)):
        with st.form("add_expense", clear_on_submit=True):
            description = st.text_input("Description", placeholder="e.g. Groceries")
            amount = st.number_input("Amount", min_value=0.0, step=10.0, format="%.2f")
            category = st.selectbox("Category", options=list(ExpenseCategory), format_func=lambda c: c.value)
            expense_date = st.date_input("Date", value=date.today())
            submitted = st.form_submit_button("Add Expense", type="primary")

        if submitted:
            result = run_async(flow.add(
                user_id=session.user_id,
                description=description,
                amount=amount,
                category=category,
                date=expense_date,
            ))
            finish_action(result)

    st.markdown("---")

    items = expenses.items()
    if not items:
        st.info("No expenses yet. Add your first one above.")
        return

    st.markdown(f"**{len(items)} expenses** · total {format_currency(total_spent(items), currency)}")

    for expense in items:
        render_expense_row(flow, session, expense, currency)


def render_expense_row(flow, session: UserSession, expense: Expense, currency: str):
    editing_key = f"editing_expense_{expense.id}"
    col1, col2, col3, col4, col5 = st.columns([2, 4, 3, 2, 2])
    col1.write(expense.date.strftime("%d %b %Y"))
    col2.write(expense.description)
    col3.write(expense.category.value)
    col4.write(format_currency(expense.amount, currency))

    with col5:
        edit_col, delete_col = st.columns(2)
        if edit_col.button("✏️", key=f"edit_{expense.id}", help="Edit"):
            st.session_state[editing_key] = not st.session_state.get(editing_key, False)
        if delete_col.button("🗑️", key=f"delete_{expense.id}", help="Delete"):
            st.session_state[f"confirm_delete_{expense.id}"] = True

    if st.session_state.get(f"confirm_delete_{expense.id}"):
        st.warning(f"Delete '{expense.description}'? This cannot be undone.")
        yes, no = st.columns(2)
        if yes.button("Yes, delete", key=f"confirm_yes_{expense.id}", type="primary"):
            st.session_state.pop(f"confirm_delete_{expense.id}", None)
            finish_action(run_async(flow.delete(session.user_id, expense.id)))
        if no.button("Cancel", key=f"confirm_no_{expense.id}"):
            st.session_state.pop(f"confirm_delete_{expense.id}", None)
            st.rerun()

    if st.session_state.get(editing_key):
        with st.form(f"edit_expense_{expense.id}"):
            description = st.text_input("Description", value=expense.description)
            amount = st.number_input("Amount", min_value=0.0, value=float(expense.amount), step=10.0, format="%.2f")
            categories = list(ExpenseCategory)
            category = st.selectbox(
                "Category",
                options=categories,
                index=categories.index(expense.category),
                format_func=lambda c: c.value,
            )
            expense_date = st.date_input("Date", value=expense.date.date())
            saved = st.form_submit_button("Save changes", type="primary")

        if saved:
            result = run_async(flow.update(
                user_id=session.user_id,
                expense_id=expense.id,
                description=description,
                amount=amount,
                category=category,
                date=expense_date,
            ))
            if result.ok:
                st.session_state.pop(editing_key, None)
            finish_action(result)


def render_budgets_page(
    components: AppComponents,
    session: UserSession,
    expenses: LiveCollection[Expense],
    budgets: LiveCollection[BudgetGoal],
):
    """Render the budgets page."""
    currency = components.settings.app.currency
    flow = components.budget_flow
    goals = budgets.items()

    st.title("🎯 Budgets")
    st.markdown("Set a monthly spending cap per category and watch your progress.")

    free_categories = unbudgeted_categories(goals)
    with st.expander("➕ Set Budget", expanded=not goals):
        if not free_categories:
            st.info("Every category already has a budget. Edit one below instead.")
        else:
            with st.form("add_budget", clear_on_submit=True):
                category = st.selectbox("Category", options=free_categories, format_func=lambda c: c.value)
                amount = st.number_input("Monthly budget", min_value=0.0, step=100.0, format="%.2f")
                submitted = st.form_submit_button("Set Budget", type="primary")

            if submitted:
                result = run_async(flow.add(
                    user_id=session.user_id,
                    category=category,
                    amount=amount,
                    existing=goals,
                ))
                finish_action(result)

    st.markdown("---")

    if not goals:
        st.info("No budgets set yet.")
        return

    for item in aggregate_budgets(expenses.items(), goals):
        render_budget_progress(item, currency)
        edit_col, delete_col = st.columns(2)
        if edit_col.button("Edit", key=f"edit_budget_{item.id}"):
            key = f"editing_budget_{item.id}"
            st.session_state[key] = not st.session_state.get(key, False)
        if delete_col.button("Delete", key=f"delete_budget_{item.id}"):
            finish_action(run_async(flow.delete(session.user_id, item.id)))

        if st.session_state.get(f"editing_budget_{item.id}"):
            options = [item.category] + free_categories
            with st.form(f"edit_budget_form_{item.id}"):
                category = st.selectbox("Category", options=options, format_func=lambda c: c.value)
                amount = st.number_input(
                    "Monthly budget",
                    min_value=0.0,
                    value=float(item.amount),
                    step=100.0,
                    format="%.2f",
                )
                saved = st.form_submit_button("Save changes", type="primary")

            if saved:
                result = run_async(flow.update(
                    user_id=session.user_id,
                    budget_id=item.id,
                    category=category,
                    amount=amount,
                    existing=goals,
                ))
                if result.ok:
                    st.session_state.pop(f"editing_budget_{item.id}", None)
                finish_action(result)
        st.markdown("---")


def render_charts_page(
    components: AppComponents,
    session: UserSession,
    expenses: LiveCollection[Expense],
):
    """Render the spending charts page."""
    app = components.settings.app
    prefs = components.preferences
    expense_list = expenses.items()

    st.title("📊 Spending Charts")

    options = [ALL_MONTHS] + month_options(expense_list, date.today(), lookback=app.month_lookback)
    saved_month = prefs.get(session.user_id, CHART_MONTH_KEY, ALL_MONTHS)
    index = options.index(saved_month) if saved_month in options else 0
    month = st.selectbox(
        "Month",
        options=options,
        index=index,
        format_func=lambda m: m if m == ALL_MONTHS else datetime.strptime(m, "%Y-%m").strftime("%B %Y"),
    )
    if month != saved_month:
        prefs.set(session.user_id, CHART_MONTH_KEY, month)

    selected = filter_by_month(expense_list, None if month == ALL_MONTHS else month)
    st.caption(f"{len(selected)} expenses · {format_currency(total_spent(selected), app.currency)}")

    if not selected:
        st.info("No expenses in this period.")
        return

    left, right = st.columns(2)
    with left:
        st.markdown("### Spending by Category")
        render_category_pie(selected)
    with right:
        st.markdown("### Daily Spending Trend")
        daily = daily_spending(selected)
        df = pd.DataFrame(
            {"day": [d.label for d in daily], "total": [float(d.total) for d in daily]}
        )
        fig = px.bar(df, x="day", y="total", labels={"day": "", "total": app.currency})
        fig.update_layout(margin=dict(t=30, b=10, l=10, r=10))
        st.plotly_chart(fig, use_container_width=True)


def render_savings_page(
    components: AppComponents,
    session: UserSession,
    expenses: LiveCollection[Expense],
):
    """Render the AI savings advisor page."""
    prefs = components.preferences
    currency = components.settings.app.currency

    st.title("💡 AI Savings Tips")
    st.markdown(
        "Describe your spending habits (we've started you off with a summary "
        "of your recorded expenses) and get personalized saving tips."
    )

    default_habits = prefs.get(session.user_id, SPENDING_HABITS_KEY) or build_spending_summary(
        expenses.items(), currency
    )
    habits = st.text_area("Your spending habits", value=default_habits, height=220)

    col1, col2 = st.columns(2)
    if col2.button("Reset to my expense summary"):
        prefs.delete(session.user_id, SPENDING_HABITS_KEY)
        st.rerun()

    if col1.button("Get Saving Tips", type="primary"):
        prefs.set(session.user_id, SPENDING_HABITS_KEY, habits)
        with st.spinner("Thinking about ways to save..."):
            result = run_async(components.tips_flow.get_tips(habits, user_id=session.user_id))
        queue_notice(result.notice)
        show_pending_notices()
        if result.ok:
            st.session_state.saving_tips = result.record.saving_tips

    tips = st.session_state.get("saving_tips")
    if tips:
        st.markdown("### Your Personalized Saving Tips")
        st.markdown(
            f'<div class="tips-content">{render_markdown(tips)}</div>',
            unsafe_allow_html=True,
        )


def render_settings_page(components: AppComponents):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (AI Savings Tips)", "gemini"),
        ("Sign-in", "auth"),
        ("App", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if not components.uses_sheets:
        st.warning(
            "Google Sheets is not configured: data is kept in memory and "
            "will be lost when the app restarts."
        )

    st.markdown("---")
    st.markdown("### Recent Activity")
    storage = components.audit_logger.storage
    if storage is None:
        st.info("The activity log is only written to the console while storage is not configured.")
    else:
        events = run_async(storage.get_recent_events(limit=20))
        if events:
            st.dataframe(
                pd.DataFrame([
                    {
                        "When": e.timestamp.strftime("%Y-%m-%d %H:%M"),
                        "Event": e.event_type.value,
                        "Description": e.description,
                    }
                    for e in events
                ]),
                hide_index=True,
                use_container_width=True,
            )
        else:
            st.info("No activity yet.")

    if st.button("Refresh data now"):
        st.session_state.force_sync = True
        st.rerun()

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


# =============================================================================
# SHARED WIDGETS
# =============================================================================

def expenses_frame(items: list[Expense], currency: str) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "Date": e.date.strftime("%d %b %Y"),
            "Description": e.description,
            "Category": e.category.value,
            "Amount": format_currency(e.amount, currency),
        }
        for e in items
    ])


def render_category_pie(items: list[Expense]) -> None:
    summary = summarize_by_category(items)
    if not summary:
        st.info("No spending to show yet.")
        return
    df = pd.DataFrame(
        {"category": [s.category.value for s in summary], "total": [float(s.total) for s in summary]}
    )
    fig = px.pie(df, names="category", values="total", hole=0.3)
    fig.update_layout(margin=dict(t=30, b=10, l=10, r=10))
    st.plotly_chart(fig, use_container_width=True)


def render_budget_progress(item, currency: str) -> None:
    st.markdown(f"**{item.category.value}**")
    st.progress(float(item.progress) / 100)
    text = (
        f"{format_currency(item.spent, currency)} of "
        f"{format_currency(item.amount, currency)}"
    )
    if item.is_over_budget:
        text += (
            f' · <span class="over-budget">over by '
            f"{format_currency(item.overspent, currency)}</span>"
        )
    st.markdown(text, unsafe_allow_html=True)


if __name__ == "__main__":
    main()
