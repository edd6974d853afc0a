"""
In-Memory Storage Implementation

Used by the test-suite and by APP_STORAGE_BACKEND=memory for local demos.
Snapshots are pushed synchronously to every subscriber of a collection
right after each mutation.
"""

import threading
from typing import Optional, Union
from uuid import uuid4

from cashflow.models.transaction import Expense, Income, TransactionKind
from cashflow.services.storage.interface import (
    ErrorCallback,
    NotFoundError,
    Snapshot,
    SnapshotCallback,
    StoreError,
    Subscription,
    TransactionStoreInterface,
)


class InMemoryTransactionStore(TransactionStoreInterface):
    """
    Dict-backed transaction store.

    Failures can be injected per operation with fail_next() so callers'
    error handling can be exercised without a real backend.
    """

    def __init__(self, namespace: str = "default-app-id"):
        super().__init__(namespace)
        self._collections: dict[str, dict[str, Union[Expense, Income]]] = {}
        self._subscribers: dict[str, list[Subscription]] = {}
        self._pending_failures: dict[str, Exception] = {}
        self._lock = threading.RLock()
        self.calls: list[str] = []

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def fail_next(self, operation: str, error: Optional[Exception] = None) -> None:
        """Make the next `operation` ('create', 'update', 'delete', 'subscribe') fail."""
        self._pending_failures[operation] = error or StoreError(f"{operation} failed")

    def break_subscriptions(self, principal_id: str, kind: TransactionKind, error: Exception) -> None:
        """Report `error` to every live subscriber of a collection."""
        path = self.path_for(principal_id, kind)
        for subscription in list(self._subscribers.get(path, [])):
            subscription.fail(error)

    def subscriber_count(self, principal_id: str, kind: TransactionKind) -> int:
        path = self.path_for(principal_id, kind)
        return sum(1 for s in self._subscribers.get(path, []) if s.active)

    def records(self, principal_id: str, kind: TransactionKind) -> Snapshot:
        return list(self._collections.get(self.path_for(principal_id, kind), {}).values())

    # ------------------------------------------------------------------
    # Interface
    # ------------------------------------------------------------------

    def _raise_if_failing(self, operation: str) -> None:
        self.calls.append(operation)
        error = self._pending_failures.pop(operation, None)
        if error is not None:
            raise error

    def _publish(self, path: str) -> None:
        snapshot = list(self._collections.get(path, {}).values())
        for subscription in list(self._subscribers.get(path, [])):
            subscription.deliver(snapshot)

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.path, [])
            if subscription in subscribers:
                subscribers.remove(subscription)

    def subscribe(
        self,
        principal_id: str,
        kind: TransactionKind,
        on_change: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        path = self.path_for(principal_id, kind)
        subscription = Subscription(
            path=path,
            on_change=on_change,
            on_error=on_error,
            on_cancel=self._remove_subscription,
        )

        try:
            self._raise_if_failing("subscribe")
        except Exception as e:
            subscription.fail(e)
            return subscription

        with self._lock:
            self._subscribers.setdefault(path, []).append(subscription)
        subscription.deliver(list(self._collections.get(path, {}).values()))
        return subscription

    async def create(
        self,
        principal_id: str,
        record: Union[Expense, Income],
    ) -> str:
        self._raise_if_failing("create")

        path = self.path_for(principal_id, record.transaction_kind)
        record_id = uuid4().hex
        with self._lock:
            self._collections.setdefault(path, {})[record_id] = record.model_copy(
                update={"id": record_id}
            )
        self._publish(path)
        return record_id

    async def update(
        self,
        principal_id: str,
        record: Union[Expense, Income],
    ) -> None:
        self._raise_if_failing("update")

        path = self.path_for(principal_id, record.transaction_kind)
        with self._lock:
            collection = self._collections.get(path, {})
            if not record.id or record.id not in collection:
                raise NotFoundError(f"Transaction not found: {record.id}")
            collection[record.id] = record
        self._publish(path)

    async def delete(
        self,
        principal_id: str,
        kind: TransactionKind,
        record_id: str,
    ) -> None:
        self._raise_if_failing("delete")

        path = self.path_for(principal_id, kind)
        with self._lock:
            collection = self._collections.get(path, {})
            if record_id not in collection:
                raise NotFoundError(f"Transaction not found: {record_id}")
            del collection[record_id]
        self._publish(path)
