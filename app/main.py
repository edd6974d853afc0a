"""
Streamlit Frontend for cashflow

The dashboard a signed-in user works with daily: add income and
expenses, flip through months, see where the money went and ask for
advice.

The page only renders Tracker state. Buttons call Tracker methods and
the result comes back as new state on the next rerun, so records are
never copied into st.session_state.
"""

import asyncio
import threading
from typing import Optional

import streamlit as st

from cashflow.auth import IdentityProvider, Principal
from cashflow.categories import category_options, get_category_label
from cashflow.config import ConfigError, get_settings, validate_all_settings
from cashflow.models.transaction import Expense, TransactionForm, TransactionKind
from cashflow.orchestrator import Tracker, create_app_components
from cashflow.reports import breakdown_chart, feed_entry, format_currency


# Page configuration
st.set_page_config(
    page_title="cashflow",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Feed amount colours
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .feed-expense {
        color: #dc3545;
        font-weight: bold;
    }
    .feed-income {
        color: #28a745;
        font-weight: bold;
    }
</style>
""", unsafe_allow_html=True)


class StreamlitIdentityProvider(IdentityProvider):
    """
    Identity from Streamlit's built-in OIDC login.

    st.login() redirects to the provider, so sign_in() never returns a
    principal itself. The next page run picks it up through
    Tracker.sync_identity().
    """

    def __init__(self, provider: Optional[str] = None):
        self._provider = provider

    def current_principal(self) -> Optional[Principal]:
        if not st.user.is_logged_in:
            return None
        uid = st.user.get("sub") or st.user.get("email")
        if not uid:
            return None
        return Principal(
            uid=uid,
            display_name=st.user.get("name"),
            photo_url=st.user.get("picture"),
        )

    async def sign_in(self) -> Optional[Principal]:
        if self._provider:
            st.login(self._provider)
        else:
            st.login()
        return None

    async def sign_out(self) -> None:
        st.logout()


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """One long-lived loop for store I/O and subscription polling (cached)."""
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, name="cashflow-loop", daemon=True)
    thread.start()
    return loop


def run_async(coro):
    """Run a coroutine on the background loop and wait for its result."""
    return asyncio.run_coroutine_threadsafe(coro, get_event_loop()).result()


def run_on_script_thread(coro):
    """st.login / st.logout need the script thread, not the background loop."""
    return asyncio.run(coro)


def get_tracker() -> Tracker:
    """Get or create this browser session's Tracker."""
    if "tracker" not in st.session_state:
        st.session_state.tracker = create_app_components(
            StreamlitIdentityProvider(),
            loop=get_event_loop(),
        )
        st.session_state.form_version = 0
    return st.session_state.tracker


def main():
    """Main application entry point."""
    try:
        tracker = get_tracker()
    except ConfigError as e:
        st.error(f"⚠️ {e}")
        st.stop()

    tracker.sync_identity()
    state = tracker.state

    if state.config_error:
        st.error(f"⚠️ {state.config_error}")
        st.stop()

    if not state.signed_in:
        render_sign_in_page(tracker)
        return

    # Sidebar navigation
    st.sidebar.title("💸 cashflow")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "⚙️ Settings"],
        index=0,
    )

    if page == "📊 Dashboard":
        render_dashboard(tracker)
    elif page == "⚙️ Settings":
        render_settings_page(tracker)

    st.session_state.rendered_state = tracker.state
    watch = st.fragment(run_every=get_settings().app.poll_interval_seconds)(_rerun_if_changed)
    watch(tracker)


def _rerun_if_changed(tracker: Tracker):
    """Rerun the page when a snapshot arrived since the last render."""
    if tracker.state is not st.session_state.get("rendered_state"):
        st.rerun()


def render_sign_in_page(tracker: Tracker):
    """Render the sign-in screen."""
    st.title("💸 cashflow")
    st.markdown("Track your income and expenses, month by month.")

    state = tracker.state
    if state.error:
        st.error(state.error)

    if st.button("🔐 Sign in with Google", type="primary"):
        run_on_script_thread(tracker.sign_in())
        st.rerun()


def render_header(tracker: Tracker):
    principal = tracker.state.principal

    col1, col2, col3 = st.columns([1, 8, 2])
    with col1:
        if principal.photo_url:
            st.image(principal.photo_url, width=48)
    with col2:
        st.markdown(f"### Hello, {principal.display_name or 'friend'}!")
    with col3:
        if st.button("🚪 Sign out"):
            run_on_script_thread(tracker.sign_out())
            st.rerun()


def render_banners(tracker: Tracker):
    state = tracker.state

    if state.error:
        col1, col2 = st.columns([10, 1])
        with col1:
            st.error(state.error)
        with col2:
            if st.button("✖", key="dismiss_error"):
                tracker.dismiss_error()
                st.rerun()

    if state.notice:
        st.toast(state.notice, icon="✅")
        tracker.dismiss_notice()


def render_dashboard(tracker: Tracker):
    """Render the main dashboard."""
    render_header(tracker)
    render_banners(tracker)

    col1, col2 = st.columns([1, 2])
    with col1:
        render_entry_form(tracker)
    with col2:
        render_month_summary(tracker)

    st.markdown("---")
    render_feed(tracker)

    state = tracker.state
    if state.editing is not None:
        edit_dialog(tracker)
    elif state.pending_delete is not None:
        delete_dialog(tracker)


def _category_select(label: str, current: str, key: str) -> str:
    options = [code for code, _ in category_options()]
    if current not in options:
        # Keep unknown codes editable
        options.append(current)
    return st.selectbox(
        label,
        options=options,
        index=options.index(current),
        format_func=get_category_label,
        key=key,
    )


def _form_fields(kind: TransactionKind, form: TransactionForm, prefix: str) -> TransactionForm:
    """Render the fields for `kind` and return what the user typed."""
    currency = get_settings().app.currency_symbol

    amount = st.text_input(f"Amount ({currency}) *", value=form.amount, key=f"{prefix}_amount")
    if kind == TransactionKind.EXPENSE:
        category = _category_select("Category *", form.category, key=f"{prefix}_category")
        reason = st.text_input(
            "Reason (optional)",
            value=form.reason,
            placeholder="e.g. Weekly vegetables",
            key=f"{prefix}_reason",
        )
        source = form.source
    else:
        source = st.text_input(
            "Source *",
            value=form.source,
            placeholder="e.g. Salary",
            key=f"{prefix}_source",
        )
        category = form.category
        reason = form.reason
    entry_date = st.date_input("Date *", value=form.date, key=f"{prefix}_date")

    return TransactionForm(
        amount=amount,
        category=category,
        reason=reason,
        source=source,
        date=entry_date,
    )


def render_entry_form(tracker: Tracker):
    """Render the add-transaction form."""
    state = tracker.state
    st.subheader("➕ Add Transaction")

    kind = st.radio(
        "Type",
        options=[TransactionKind.EXPENSE, TransactionKind.INCOME],
        index=0 if state.form_type == TransactionKind.EXPENSE else 1,
        format_func=lambda k: "💸 Expense" if k == TransactionKind.EXPENSE else "💰 Income",
        horizontal=True,
    )
    if kind != state.form_type:
        tracker.select_form_type(kind)
        st.rerun()

    # A new version gives fresh widgets after a successful add
    version = st.session_state.get("form_version", 0)
    with st.form(f"entry_form_{version}"):
        form = _form_fields(kind, state.form, prefix=f"entry_{version}")
        submitted = st.form_submit_button("Add", type="primary")

    if state.form_error:
        st.error(state.form_error)

    if submitted:
        if run_async(tracker.submit_form(form)):
            st.session_state.form_version = version + 1
        st.rerun()


def render_month_summary(tracker: Tracker):
    """Month navigator, cards, advice and the breakdown chart."""
    state = tracker.state
    view = tracker.view()
    currency = get_settings().app.currency_symbol

    col1, col2, col3 = st.columns([1, 4, 1])
    with col1:
        if st.button("◀", key="prev_month"):
            tracker.shift_month(-1)
            st.rerun()
    with col2:
        st.markdown(f"<h3 style='text-align:center'>{view.month.label}</h3>", unsafe_allow_html=True)
    with col3:
        if st.button("▶", key="next_month"):
            tracker.shift_month(1)
            st.rerun()

    if state.loading:
        st.caption("Loading your transactions...")

    col1, col2, col3 = st.columns(3)
    col1.metric("Income", format_currency(view.total_income, currency))
    col2.metric("Expenses", format_currency(view.total_expense, currency))
    col3.metric("Balance", format_currency(view.balance, currency))

    label = "⏳ Analyzing..." if state.advice_busy else "✨ Get Financial Advice"
    if st.button(label, disabled=state.advice_busy):
        with st.spinner("Analyzing your month..."):
            run_async(tracker.request_advice())
        st.rerun()

    state = tracker.state
    if state.advice_error:
        st.warning(state.advice_error)
    elif state.advice:
        with st.container(border=True):
            st.markdown(state.advice)

    st.plotly_chart(breakdown_chart(view, currency), use_container_width=True)


def render_feed(tracker: Tracker):
    """Render the transaction history."""
    view = tracker.view()
    currency = get_settings().app.currency_symbol

    st.subheader("🧾 Transaction History")
    if not view.chronological_feed:
        st.info("No transactions yet. Add your first one above.")
        return

    for transaction in view.chronological_feed:
        entry = feed_entry(transaction, currency)
        css = "feed-expense" if entry.is_expense else "feed-income"

        col1, col2, col3, col4 = st.columns([6, 2, 1, 1])
        with col1:
            st.markdown(f"**{entry.title}**  \n{entry.subtitle}  \n*{entry.date_label}*")
        with col2:
            st.markdown(f'<span class="{css}">{entry.amount_label}</span>', unsafe_allow_html=True)
        with col3:
            if st.button("✏️", key=f"edit_{transaction.kind}_{transaction.id}"):
                tracker.begin_edit(transaction)
                st.rerun()
        with col4:
            if st.button("🗑️", key=f"delete_{transaction.kind}_{transaction.id}"):
                tracker.request_delete(transaction)
                st.rerun()


@st.dialog("Edit Transaction")
def edit_dialog(tracker: Tracker):
    state = tracker.state
    editing = state.editing
    kind = editing.transaction_kind

    form = _form_fields(kind, state.edit_form, prefix=f"edit_{editing.id}")

    if state.edit_error:
        st.error(state.edit_error)

    col1, col2 = st.columns(2)
    with col1:
        if st.button("💾 Save", type="primary"):
            run_async(tracker.save_edit(form))
            st.rerun()
    with col2:
        if st.button("Cancel"):
            tracker.cancel_edit()
            st.rerun()


@st.dialog("Delete Transaction?")
def delete_dialog(tracker: Tracker):
    transaction = tracker.state.pending_delete
    entry = feed_entry(transaction, get_settings().app.currency_symbol)

    kind = "expense" if isinstance(transaction, Expense) else "income"
    st.markdown(
        f"Delete this {kind}? **{entry.title}**, {entry.amount_label} on {entry.date_label}. "
        "This cannot be undone."
    )

    col1, col2 = st.columns(2)
    with col1:
        if st.button("🗑️ Delete", type="primary"):
            run_async(tracker.confirm_delete())
            st.rerun()
    with col2:
        if st.button("Cancel"):
            tracker.cancel_delete()
            st.rerun()


def render_settings_page(tracker: Tracker):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()
    app_settings = get_settings().app
    backend = app_settings.storage_backend

    services = [("Gemini (Advice)", "gemini"), ("App Settings", "app")]
    if backend == "sheets":
        services.insert(0, ("Google Sheets (Storage)", "google_sheets"))
    else:
        st.info("💾 Using in-memory storage. Data is lost when the app restarts.")

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Recent Activity")
    events = tracker.audit_logger.recent_events(limit=20)
    if not events:
        st.caption("Nothing yet.")
    for event in events:
        st.markdown(
            f"- `{event.timestamp:%H:%M:%S}` **{event.event_type.value}** {event.description}"
        )
        if app_settings.debug_mode:
            with st.expander("Details"):
                st.json(event.to_log_dict())

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your settings. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
