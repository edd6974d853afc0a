"""
Data Models Package

This package contains all Pydantic models used in cashflow.
All data flowing through the system must conform to these schemas.
"""

from cashflow.models.transaction import (
    Expense,
    Income,
    Transaction,
    TransactionBase,
    TransactionForm,
    TransactionKind,
    ValidationIssue,
    parse_transaction,
    transaction_class,
)
from cashflow.models.report import (
    CategoryTotal,
    MonthKey,
    MonthlyView,
)
from cashflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "Expense",
    "Income",
    "Transaction",
    "TransactionBase",
    "TransactionForm",
    "TransactionKind",
    "ValidationIssue",
    "parse_transaction",
    "transaction_class",
    # Report models
    "CategoryTotal",
    "MonthKey",
    "MonthlyView",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
