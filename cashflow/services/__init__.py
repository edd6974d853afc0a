"""Services package."""

from cashflow.services.storage import (
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsTransactionStore,
    InMemoryTransactionStore,
    NotFoundError,
    StoreError,
    Subscription,
    TransactionStoreInterface,
)

__all__ = [
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStore",
    "InMemoryTransactionStore",
    "NotFoundError",
    "StoreError",
    "Subscription",
    "TransactionStoreInterface",
]
