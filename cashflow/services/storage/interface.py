"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the transaction store.
This allows us to:
1. Use Google Sheets in production
2. Use in-memory storage for tests and local demos
3. Keep subscription and mutation logic decoupled from the backend

Every collection is addressed as {namespace}/{principal_id}/{kind}s.
Subscriptions push the FULL snapshot of a collection on every change,
never deltas. The store gives no ordering guarantee - ordering is
imposed by the aggregation engine.
"""

import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional, Union

from cashflow.models.transaction import Expense, Income, TransactionKind


Snapshot = list[Union[Expense, Income]]
SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[Exception], None]


def collection_path(namespace: str, principal_id: str, kind: TransactionKind) -> str:
    """e.g. 'default-app-id/uid-123/expenses'."""
    return f"{namespace}/{principal_id}/{TransactionKind(kind).collection_name}"


class Subscription:
    """
    Handle for a live collection subscription.

    unsubscribe() is idempotent. Once it returns, no further callbacks
    are delivered through this handle.
    """

    def __init__(
        self,
        path: str,
        on_change: SnapshotCallback,
        on_error: ErrorCallback,
        on_cancel: Optional[Callable[["Subscription"], None]] = None,
    ):
        self.path = path
        self._on_change = on_change
        self._on_error = on_error
        self._on_cancel = on_cancel
        self._active = True
        self._lock = threading.RLock()

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, snapshot: Snapshot) -> None:
        with self._lock:
            if self._active:
                self._on_change(list(snapshot))

    def fail(self, error: Exception) -> None:
        with self._lock:
            if self._active:
                self._on_error(error)

    def unsubscribe(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        if self._on_cancel:
            self._on_cancel(self)


class TransactionStoreInterface(ABC):
    """
    Abstract interface for transaction storage.

    Any storage implementation must implement these methods.
    """

    def __init__(self, namespace: str):
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    def path_for(self, principal_id: str, kind: TransactionKind) -> str:
        return collection_path(self._namespace, principal_id, kind)

    @abstractmethod
    def subscribe(
        self,
        principal_id: str,
        kind: TransactionKind,
        on_change: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """
        Subscribe to a collection.

        Args:
            principal_id: Owner of the collection
            kind: Which collection (expenses or incomes)
            on_change: Receives the full snapshot, first right after
                subscribing and then after every change
            on_error: Receives the error if the subscription fails

        Returns:
            Handle whose unsubscribe() stops all further callbacks
        """
        pass

    @abstractmethod
    async def create(
        self,
        principal_id: str,
        record: Union[Expense, Income],
    ) -> str:
        """
        Add a record to its kind's collection.

        Returns:
            The store-assigned id

        Raises:
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def update(
        self,
        principal_id: str,
        record: Union[Expense, Income],
    ) -> None:
        """
        Overwrite every field of an existing record.

        The record's id and kind address the document.

        Raises:
            NotFoundError: If the record doesn't exist
            StoreError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(
        self,
        principal_id: str,
        kind: TransactionKind,
        record_id: str,
    ) -> None:
        """
        Delete a record.

        Raises:
            NotFoundError: If the record doesn't exist
            StoreError: If the delete fails
        """
        pass

    async def close(self) -> None:
        """Release background resources. Default: nothing to release."""
        return None


class StoreError(Exception):
    """Base exception for store operations."""
    pass


class NotFoundError(StoreError):
    """Record not found in storage."""
    pass


class ConnectionError(StoreError):
    """Could not connect to storage backend."""
    pass
