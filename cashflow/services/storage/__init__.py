"""
Storage Services Package

Provides the abstract transaction store interface and its implementations.
Google Sheets is the production backend; the in-memory store backs tests
and local demos.
"""

from cashflow.services.storage.interface import (
    ConnectionError,
    NotFoundError,
    Snapshot,
    StoreError,
    Subscription,
    TransactionStoreInterface,
    collection_path,
)
from cashflow.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsTransactionStore,
)
from cashflow.services.storage.memory import InMemoryTransactionStore

__all__ = [
    # Interface
    "Snapshot",
    "Subscription",
    "TransactionStoreInterface",
    "collection_path",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StoreError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsTransactionStore",
    "InMemoryTransactionStore",
]
