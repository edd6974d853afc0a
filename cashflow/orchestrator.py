"""
Main Orchestrator for cashflow

This module ties together all the components and defines the
end-to-end flows for:
1. Session (identity change → tear down → resubscribe)
2. Transactions (form → validate → store → snapshot)
3. Advice (monthly view → prompt → advice text)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store without passing validation
- Local records only change when the store pushes a snapshot
- Every failure becomes state (banner, inline error), never a crash
- Every step is audited

LOCKING: Tracker holds its lock only around reduce(). It never holds
it while opening or closing subscriptions, because a subscription
delivers snapshots while holding its own lock.
"""

import threading
from typing import Callable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from cashflow.agents import AdviceAgent, AdviceError
from cashflow.audit import AuditLogger, configure_log_level
from cashflow.auth import AuthError, IdentityProvider, Principal, SessionManager
from cashflow.config import ConfigError, load_backend_settings
from cashflow.models.report import MonthlyView
from cashflow.models.transaction import (
    Expense,
    Income,
    TransactionForm,
    TransactionKind,
)
from cashflow.services.storage import (
    GoogleSheetsTransactionStore,
    InMemoryTransactionStore,
    StoreError,
    Subscription,
    TransactionStoreInterface,
)
from cashflow.state import (
    AdviceFailed,
    AdviceReceived,
    AdviceStarted,
    AppState,
    ConfigFailed,
    DeleteFinished,
    DeleteRequested,
    EditFinished,
    EditRejected,
    EditStarted,
    ErrorDismissed,
    ErrorRaised,
    FormEdited,
    FormRejected,
    FormTypeSelected,
    Intent,
    MonthShifted,
    NoticeDismissed,
    PrincipalChanged,
    SnapshotReceived,
    SubscriptionFailed,
    TransactionAdded,
    reduce,
)
from cashflow.validation import TransactionValidator, ValidationError


SnapshotHandler = Callable[[int, TransactionKind, list], None]
FailureHandler = Callable[[int, TransactionKind, Exception], None]


class LedgerSubscriptions:
    """
    Owns the two live collection subscriptions of one principal.

    Every open() starts a new generation. Callbacks carry the generation
    they were opened under, so a snapshot from a replaced subscription
    can be recognised and dropped.
    """

    def __init__(
        self,
        store: TransactionStoreInterface,
        on_snapshot: SnapshotHandler,
        on_error: FailureHandler,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._audit = audit_logger or AuditLogger()
        self._lock = threading.Lock()
        self._generation = 0
        self._principal_id: Optional[str] = None
        self._subscriptions: dict[TransactionKind, Subscription] = {}

    @property
    def principal_id(self) -> Optional[str]:
        return self._principal_id

    @property
    def active_kinds(self) -> list[TransactionKind]:
        return [kind for kind, sub in self._subscriptions.items() if sub.active]

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation and self._principal_id is not None

    def open(self, principal_id: str) -> int:
        """
        Subscribe to both collections of `principal_id`.

        Any previous subscriptions are closed first.

        Returns:
            The generation of the new subscriptions
        """
        self.close()

        with self._lock:
            self._generation += 1
            generation = self._generation
            self._principal_id = principal_id

        for kind in (TransactionKind.EXPENSE, TransactionKind.INCOME):
            subscription = self._store.subscribe(
                principal_id,
                kind,
                on_change=self._snapshot_callback(generation, kind),
                on_error=self._error_callback(generation, principal_id, kind),
            )
            with self._lock:
                if generation != self._generation:
                    # Replaced while subscribing
                    stale = subscription
                else:
                    stale = None
                    self._subscriptions[kind] = subscription
            if stale is not None:
                stale.unsubscribe()
                break
            self._audit.log_subscription_opened(principal_id, subscription.path)

        return generation

    def close(self) -> None:
        """Unsubscribe everything. Safe to call when nothing is open."""
        with self._lock:
            self._generation += 1
            principal_id = self._principal_id
            subscriptions = self._subscriptions
            self._subscriptions = {}
            self._principal_id = None

        for subscription in subscriptions.values():
            subscription.unsubscribe()
            self._audit.log_subscription_closed(principal_id, subscription.path)

    def _snapshot_callback(self, generation: int, kind: TransactionKind):
        def on_change(records: list) -> None:
            if self.is_current(generation):
                self._on_snapshot(generation, kind, records)
        return on_change

    def _error_callback(self, generation: int, principal_id: str, kind: TransactionKind):
        def on_error(error: Exception) -> None:
            if not self.is_current(generation):
                return
            self._audit.log_subscription_failed(
                principal_id,
                self._store.path_for(principal_id, kind),
                str(error),
            )
            self._on_error(generation, kind, error)
        return on_error


class TransactionFlow:
    """
    Orchestrates transaction mutations.

    Flow:
    1. Validate → form becomes Expense or Income (or ValidationError)
    2. Mutate → create / update / delete through the store
    3. Wait → the store pushes the new snapshot, local state is NOT touched

    Failures propagate to the caller as ValidationError or StoreError.
    Nothing is retried.
    """

    def __init__(
        self,
        store: TransactionStoreInterface,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._validator = validator or TransactionValidator()
        self._audit = audit_logger or AuditLogger()

    def _validate(
        self,
        principal_id: str,
        kind: TransactionKind,
        form: TransactionForm,
        transaction_id: Optional[str] = None,
    ) -> Union[Expense, Income]:
        try:
            return self._validator.validate(kind, form, transaction_id=transaction_id)
        except ValidationError as e:
            self._audit.log_validation_failed(principal_id, kind.value, e.issue_dicts())
            raise

    async def add(
        self,
        principal_id: str,
        kind: TransactionKind,
        form: TransactionForm,
    ) -> Union[Expense, Income]:
        """
        Validate and create a transaction.

        Returns:
            The created transaction, carrying its store-assigned id
        """
        kind = TransactionKind(kind)
        record = self._validate(principal_id, kind, form)

        try:
            record_id = await self._store.create(principal_id, record)
        except StoreError as e:
            self._audit.log_store_failed(principal_id, f"create_{kind.value}", str(e))
            raise

        self._audit.log_transaction_created(principal_id, kind.value, record_id, str(record.amount))
        return record.model_copy(update={"id": record_id})

    async def update(
        self,
        principal_id: str,
        original: Union[Expense, Income],
        form: TransactionForm,
    ) -> Union[Expense, Income]:
        """
        Validate and overwrite an existing transaction.

        The kind cannot change: the form is validated as the original's kind.
        """
        kind = original.transaction_kind
        record = self._validate(principal_id, kind, form, transaction_id=original.id)

        try:
            await self._store.update(principal_id, record)
        except StoreError as e:
            self._audit.log_store_failed(principal_id, f"update_{kind.value}", str(e))
            raise

        self._audit.log_transaction_updated(principal_id, kind.value, record.id, str(record.amount))
        return record

    async def delete(
        self,
        principal_id: str,
        transaction: Union[Expense, Income],
    ) -> None:
        kind = transaction.transaction_kind
        try:
            await self._store.delete(principal_id, kind, transaction.id)
        except StoreError as e:
            self._audit.log_store_failed(principal_id, f"delete_{kind.value}", str(e))
            raise

        self._audit.log_transaction_deleted(principal_id, kind.value, transaction.id)


class AdviceFlow:
    """
    At most one advice request in flight.

    A request made while another is running returns None without
    reaching the agent.
    """

    def __init__(
        self,
        agent: Optional[AdviceAgent],
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._agent = agent
        self._audit = audit_logger or AuditLogger()
        self._busy = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    async def request(
        self,
        view: MonthlyView,
        principal_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Request advice for `view`.

        Returns:
            The advice text, or None if a request was already in flight

        Raises:
            AdviceError: Including InsufficientDataError for an empty month
        """
        if not self._busy.acquire(blocking=False):
            return None

        month = view.month.label
        try:
            self._audit.log_advice_requested(principal_id, month)
            if self._agent is None:
                raise AdviceError()
            text = await self._agent.request_advice(view)
        except AdviceError as e:
            self._audit.log_advice_failed(principal_id, month, str(e))
            raise
        finally:
            self._busy.release()

        self._audit.log_advice_generated(principal_id, month, len(text))
        return text


class Tracker:
    """
    The application controller.

    Binds the session, the ledger subscriptions and both flows to one
    AppState. Every public method turns its outcome into an intent;
    none of them raise for expected failures.
    """

    def __init__(
        self,
        session: SessionManager,
        store: TransactionStoreInterface,
        advice_agent: Optional[AdviceAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[TransactionValidator] = None,
    ):
        self._audit = audit_logger or AuditLogger()
        self._session = session
        self._store = store
        self._lock = threading.RLock()
        self._state = AppState()
        self._ledger = LedgerSubscriptions(
            store,
            on_snapshot=self._handle_snapshot,
            on_error=self._handle_subscription_error,
            audit_logger=self._audit,
        )
        self._transactions = TransactionFlow(store, validator, self._audit)
        self._advice = AdviceFlow(advice_agent, self._audit)
        self._unlisten = session.on_change(self._handle_principal_changed)

        principal = session.current_principal()
        if principal is not None:
            self._handle_principal_changed(principal)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> AppState:
        with self._lock:
            return self._state

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    @property
    def ledger(self) -> LedgerSubscriptions:
        return self._ledger

    def view(self) -> MonthlyView:
        return self.state.view()

    def dispatch(self, intent: Intent) -> AppState:
        with self._lock:
            self._state = reduce(self._state, intent)
            return self._state

    def _principal(self) -> Optional[Principal]:
        return self.state.principal

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def _handle_principal_changed(self, principal: Optional[Principal]) -> None:
        # Old subscriptions are gone before the new principal is visible
        self._ledger.close()
        self.dispatch(PrincipalChanged(principal))
        if principal is not None:
            try:
                self._ledger.open(principal.uid)
            except StoreError as e:
                self.dispatch(ErrorRaised(f"Failed to load your data: {e}"))

    def _handle_snapshot(self, generation: int, kind: TransactionKind, records: list) -> None:
        with self._lock:
            if not self._ledger.is_current(generation):
                return
            self._state = reduce(self._state, SnapshotReceived(kind, records))

    def _handle_subscription_error(
        self,
        generation: int,
        kind: TransactionKind,
        error: Exception,
    ) -> None:
        with self._lock:
            if not self._ledger.is_current(generation):
                return
            self._state = reduce(
                self._state,
                SubscriptionFailed(kind, f"Failed to load {kind.collection_name}."),
            )

    def sync_identity(self) -> None:
        """Pick up sign-ins and sign-outs completed outside the app (redirects)."""
        try:
            self._session.refresh()
        except AuthError:
            self.dispatch(ErrorRaised("Could not read your sign-in status."))

    async def sign_in(self) -> None:
        try:
            await self._session.sign_in()
        except AuthError:
            self.dispatch(ErrorRaised("Could not sign in. Please try again."))

    async def sign_out(self) -> None:
        try:
            await self._session.sign_out()
        except AuthError:
            self.dispatch(ErrorRaised("Failed to sign out."))

    # ------------------------------------------------------------------
    # Navigation and banners
    # ------------------------------------------------------------------

    def shift_month(self, delta: int) -> None:
        self.dispatch(MonthShifted(delta))

    def dismiss_error(self) -> None:
        self.dispatch(ErrorDismissed())

    def dismiss_notice(self) -> None:
        self.dispatch(NoticeDismissed())

    def report_config_error(self, message: str) -> None:
        self._audit.log_config_error(message)
        self.dispatch(ConfigFailed(message))

    # ------------------------------------------------------------------
    # Entry form
    # ------------------------------------------------------------------

    def select_form_type(self, kind: TransactionKind) -> None:
        self.dispatch(FormTypeSelected(TransactionKind(kind)))

    def edit_form(self, form: TransactionForm) -> None:
        self.dispatch(FormEdited(form))

    async def submit_form(self, form: Optional[TransactionForm] = None) -> bool:
        """
        Add the entry form's transaction.

        Returns:
            True if the store accepted it (the form is reset)
        """
        if form is not None:
            self.dispatch(FormEdited(form))
        state = self.state
        if state.principal is None:
            return False

        try:
            await self._transactions.add(state.principal.uid, state.form_type, state.form)
        except ValidationError as e:
            self.dispatch(FormRejected(str(e)))
            return False
        except StoreError:
            self.dispatch(ErrorRaised(f"Failed to add {state.form_type.value}."))
            return False

        self.dispatch(TransactionAdded(state.form_type))
        return True

    # ------------------------------------------------------------------
    # Edit and delete
    # ------------------------------------------------------------------

    def begin_edit(self, transaction: Union[Expense, Income]) -> None:
        self.dispatch(EditStarted(transaction))

    def cancel_edit(self) -> None:
        self.dispatch(EditFinished(saved=False))

    async def save_edit(self, form: TransactionForm) -> bool:
        """
        Save the edit dialog.

        On a store failure the dialog stays open and the banner is shown.
        """
        state = self.state
        if state.principal is None or state.editing is None:
            return False

        try:
            await self._transactions.update(state.principal.uid, state.editing, form)
        except ValidationError as e:
            self.dispatch(EditRejected(str(e)))
            return False
        except StoreError:
            self.dispatch(ErrorRaised("Failed to update."))
            return False

        self.dispatch(EditFinished(saved=True))
        return True

    def request_delete(self, transaction: Union[Expense, Income]) -> None:
        self.dispatch(DeleteRequested(transaction))

    def cancel_delete(self) -> None:
        self.dispatch(DeleteFinished(deleted=False))

    async def confirm_delete(self) -> bool:
        """Delete the pending transaction. The dialog closes either way."""
        state = self.state
        if state.principal is None or state.pending_delete is None:
            return False

        try:
            await self._transactions.delete(state.principal.uid, state.pending_delete)
        except StoreError:
            self.dispatch(ErrorRaised("Failed to delete."))
            self.dispatch(DeleteFinished(deleted=False))
            return False

        self.dispatch(DeleteFinished(deleted=True))
        return True

    # ------------------------------------------------------------------
    # Advice
    # ------------------------------------------------------------------

    async def request_advice(self) -> Optional[str]:
        """Ask for advice on the selected month. No-op while a request is running."""
        if self._advice.busy:
            return None

        state = self.state
        self.dispatch(AdviceStarted())
        principal_id = state.principal.uid if state.principal else None
        try:
            text = await self._advice.request(state.view(), principal_id)
        except AdviceError as e:
            self.dispatch(AdviceFailed(str(e), principal_id, state.month))
            return None

        if text is not None:
            self.dispatch(AdviceReceived(text, principal_id, state.month))
        return text

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        self._unlisten()
        self._ledger.close()
        await self._store.close()


def create_app_components(
    identity_provider: IdentityProvider,
    loop=None,
    store: Optional[TransactionStoreInterface] = None,
    advice_agent: Optional[AdviceAgent] = None,
) -> Tracker:
    """
    Factory function to create a configured Tracker.

    Args:
        identity_provider: Source of the signed-in principal
        loop: Event loop running background subscription tasks
        store: Pre-built store (otherwise chosen by APP_STORAGE_BACKEND)
        advice_agent: Pre-built agent (otherwise built from GEMINI_ settings)

    Raises:
        ConfigError: If the storage backend is not configured
    """
    audit_logger = AuditLogger()
    try:
        app_settings = load_backend_settings()
    except ConfigError as e:
        audit_logger.log_config_error(str(e))
        raise

    configure_log_level(app_settings.log_level)

    if store is None:
        if app_settings.storage_backend == "memory":
            store = InMemoryTransactionStore(namespace=app_settings.namespace)
        else:
            store = GoogleSheetsTransactionStore(
                namespace=app_settings.namespace,
                poll_interval=app_settings.poll_interval_seconds,
                loop=loop,
            )

    if advice_agent is None:
        try:
            advice_agent = AdviceAgent(app_settings=app_settings)
        except PydanticValidationError as e:
            # Advice is optional; the button reports a failure instead
            audit_logger.log_config_error(f"Advice service not configured: {e}")

    # Identity is read on the first sync_identity() call
    session = SessionManager(identity_provider, audit_logger)

    return Tracker(
        session=session,
        store=store,
        advice_agent=advice_agent,
        audit_logger=audit_logger,
    )
