"""
Application State

DESIGN DECISION: The whole UI state is ONE immutable value.
Every user action or backend event is an intent, and reduce() is the
only way to get from one state to the next.

- Records mirror the last snapshot received from the store
  (no optimistic local edits)
- The monthly view is derived on demand, never stored
- Expense and income snapshots (and their loading flags) are kept
  independently so one failing collection never blocks the other
"""

from dataclasses import dataclass
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from cashflow.auth import Principal
from cashflow.models.report import MonthKey, MonthlyView
from cashflow.models.transaction import (
    Expense,
    Income,
    TransactionForm,
    TransactionKind,
)
from cashflow.reports.aggregation import build_monthly_view


class AppState(BaseModel):
    """Everything the dashboard renders."""

    model_config = ConfigDict(frozen=True)

    principal: Optional[Principal] = None
    month: MonthKey = Field(default_factory=MonthKey.current)

    # Latest snapshots
    expenses: list[Expense] = Field(default_factory=list)
    incomes: list[Income] = Field(default_factory=list)
    expenses_loading: bool = False
    incomes_loading: bool = False

    # Banners
    error: Optional[str] = None
    config_error: Optional[str] = None
    notice: Optional[str] = None

    # Entry form
    form_type: TransactionKind = TransactionKind.EXPENSE
    form: TransactionForm = Field(default_factory=TransactionForm)
    form_error: Optional[str] = None

    # Edit / delete dialogs
    editing: Optional[Union[Expense, Income]] = None
    edit_form: Optional[TransactionForm] = None
    edit_error: Optional[str] = None
    pending_delete: Optional[Union[Expense, Income]] = None

    # Advice
    advice: Optional[str] = None
    advice_error: Optional[str] = None
    advice_busy: bool = False

    @property
    def signed_in(self) -> bool:
        return self.principal is not None

    @property
    def loading(self) -> bool:
        return self.expenses_loading or self.incomes_loading

    def view(self) -> MonthlyView:
        """Aggregate for the selected month, recomputed from the latest snapshots."""
        return build_monthly_view(self.expenses, self.incomes, self.month)


# =============================================================================
# INTENTS
# =============================================================================

@dataclass(frozen=True)
class PrincipalChanged:
    principal: Optional[Principal]


@dataclass(frozen=True)
class SnapshotReceived:
    kind: TransactionKind
    records: list


@dataclass(frozen=True)
class SubscriptionFailed:
    kind: TransactionKind
    message: str


@dataclass(frozen=True)
class ConfigFailed:
    message: str


@dataclass(frozen=True)
class ErrorRaised:
    message: str


@dataclass(frozen=True)
class ErrorDismissed:
    pass


@dataclass(frozen=True)
class NoticeDismissed:
    pass


@dataclass(frozen=True)
class MonthShifted:
    delta: int


@dataclass(frozen=True)
class FormTypeSelected:
    kind: TransactionKind


@dataclass(frozen=True)
class FormEdited:
    form: TransactionForm


@dataclass(frozen=True)
class FormRejected:
    message: str


@dataclass(frozen=True)
class TransactionAdded:
    kind: TransactionKind


@dataclass(frozen=True)
class EditStarted:
    transaction: Union[Expense, Income]


@dataclass(frozen=True)
class EditRejected:
    message: str


@dataclass(frozen=True)
class EditFinished:
    """Edit dialog closed, saved or cancelled."""
    saved: bool = False


@dataclass(frozen=True)
class DeleteRequested:
    transaction: Union[Expense, Income]


@dataclass(frozen=True)
class DeleteFinished:
    """Delete dialog closed, confirmed or cancelled."""
    deleted: bool = False


@dataclass(frozen=True)
class AdviceStarted:
    pass


@dataclass(frozen=True)
class AdviceReceived:
    """Advice text for the principal and month the request was made for."""
    text: str
    principal_id: Optional[str] = None
    month: Optional[MonthKey] = None


@dataclass(frozen=True)
class AdviceFailed:
    message: str
    principal_id: Optional[str] = None
    month: Optional[MonthKey] = None


Intent = Union[
    PrincipalChanged,
    SnapshotReceived,
    SubscriptionFailed,
    ConfigFailed,
    ErrorRaised,
    ErrorDismissed,
    NoticeDismissed,
    MonthShifted,
    FormTypeSelected,
    FormEdited,
    FormRejected,
    TransactionAdded,
    EditStarted,
    EditRejected,
    EditFinished,
    DeleteRequested,
    DeleteFinished,
    AdviceStarted,
    AdviceReceived,
    AdviceFailed,
]


# =============================================================================
# REDUCER
# =============================================================================

def _principal_changed(state: AppState, intent: PrincipalChanged) -> AppState:
    if intent.principal is None:
        # Signed out: drop everything derived from the old principal
        return AppState(month=state.month, config_error=state.config_error)

    # New principal: start from scratch and wait for both snapshots
    return AppState(
        principal=intent.principal,
        month=state.month,
        config_error=state.config_error,
        expenses_loading=True,
        incomes_loading=True,
    )


def _snapshot_received(state: AppState, intent: SnapshotReceived) -> AppState:
    if intent.kind == TransactionKind.EXPENSE:
        expenses = [r for r in intent.records if isinstance(r, Expense)]
        return state.model_copy(update={"expenses": expenses, "expenses_loading": False})
    if intent.kind == TransactionKind.INCOME:
        incomes = [r for r in intent.records if isinstance(r, Income)]
        return state.model_copy(update={"incomes": incomes, "incomes_loading": False})
    raise ValueError(f"Unknown transaction kind: {intent.kind}")


def _subscription_failed(state: AppState, intent: SubscriptionFailed) -> AppState:
    flag = (
        "expenses_loading"
        if intent.kind == TransactionKind.EXPENSE
        else "incomes_loading"
    )
    return state.model_copy(update={flag: False, "error": intent.message})


def _month_shifted(state: AppState, intent: MonthShifted) -> AppState:
    # Advice belongs to the month it was generated for
    return state.model_copy(update={
        "month": state.month.shift(intent.delta),
        "advice": None,
        "advice_error": None,
    })


def _transaction_added(state: AppState, intent: TransactionAdded) -> AppState:
    label = "Expense" if intent.kind == TransactionKind.EXPENSE else "Income"
    return state.model_copy(update={
        "form": TransactionForm(),
        "form_error": None,
        "notice": f"{label} added!",
    })


def _edit_started(state: AppState, intent: EditStarted) -> AppState:
    return state.model_copy(update={
        "editing": intent.transaction,
        "edit_form": TransactionForm.from_transaction(intent.transaction),
        "edit_error": None,
    })


def _edit_finished(state: AppState, intent: EditFinished) -> AppState:
    update = {"editing": None, "edit_form": None, "edit_error": None}
    if intent.saved:
        update["notice"] = "Transaction updated!"
    return state.model_copy(update=update)


def _delete_finished(state: AppState, intent: DeleteFinished) -> AppState:
    update = {"pending_delete": None}
    if intent.deleted:
        update["notice"] = "Transaction deleted."
    return state.model_copy(update=update)


def _advice_finished(state: AppState, intent: Union[AdviceReceived, AdviceFailed]) -> AppState:
    current_uid = state.principal.uid if state.principal else None
    stale = (
        (intent.principal_id is not None and intent.principal_id != current_uid)
        or (intent.month is not None and intent.month != state.month)
    )
    if stale:
        # The user signed out or moved on while the request was running
        return state.model_copy(update={"advice_busy": False})
    if isinstance(intent, AdviceReceived):
        return state.model_copy(update={"advice": intent.text, "advice_busy": False})
    return state.model_copy(update={"advice_error": intent.message, "advice_busy": False})


def reduce(state: AppState, intent: Intent) -> AppState:
    """
    Apply one intent.

    Pure: returns a new state and never mutates the old one.
    """
    if isinstance(intent, PrincipalChanged):
        return _principal_changed(state, intent)
    if isinstance(intent, SnapshotReceived):
        return _snapshot_received(state, intent)
    if isinstance(intent, SubscriptionFailed):
        return _subscription_failed(state, intent)
    if isinstance(intent, ConfigFailed):
        return state.model_copy(update={"config_error": intent.message})
    if isinstance(intent, ErrorRaised):
        return state.model_copy(update={"error": intent.message})
    if isinstance(intent, ErrorDismissed):
        return state.model_copy(update={"error": None})
    if isinstance(intent, NoticeDismissed):
        return state.model_copy(update={"notice": None})
    if isinstance(intent, MonthShifted):
        return _month_shifted(state, intent)
    if isinstance(intent, FormTypeSelected):
        return state.model_copy(update={"form_type": intent.kind, "form_error": None})
    if isinstance(intent, FormEdited):
        return state.model_copy(update={"form": intent.form})
    if isinstance(intent, FormRejected):
        return state.model_copy(update={"form_error": intent.message})
    if isinstance(intent, TransactionAdded):
        return _transaction_added(state, intent)
    if isinstance(intent, EditStarted):
        return _edit_started(state, intent)
    if isinstance(intent, EditRejected):
        return state.model_copy(update={"edit_error": intent.message})
    if isinstance(intent, EditFinished):
        return _edit_finished(state, intent)
    if isinstance(intent, DeleteRequested):
        return state.model_copy(update={"pending_delete": intent.transaction})
    if isinstance(intent, DeleteFinished):
        return _delete_finished(state, intent)
    if isinstance(intent, AdviceStarted):
        return state.model_copy(update={
            "advice": None,
            "advice_error": None,
            "advice_busy": True,
        })
    if isinstance(intent, (AdviceReceived, AdviceFailed)):
        return _advice_finished(state, intent)
    raise TypeError(f"Unknown intent: {type(intent).__name__}")
