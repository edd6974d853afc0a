"""
Core Data Models for cashflow

These models define the strict schemas for all transactions flowing
through the system. They are designed to:
1. Enforce type safety at runtime
2. Make the expense/income split explicit (tagged union, not optional fields)
3. Be serializable for storage and logging

DESIGN DECISION: A transaction is either an Expense or an Income.
Both share a spine (id, amount, date) and are discriminated on `kind`.
Every consumer dispatches on the concrete type instead of probing
optional fields.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from cashflow.categories import DEFAULT_CATEGORY, get_category_label


class TransactionKind(str, Enum):
    """
    Transaction variants.

    Each kind lives in its own collection. Changing the kind of an
    existing record is not an update - it is a delete plus a create.
    """
    EXPENSE = "expense"
    INCOME = "income"

    @property
    def collection_name(self) -> str:
        """Collection segment for this kind (e.g. 'expenses')."""
        return f"{self.value}s"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionBase(BaseModel):
    """Fields shared by every transaction."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: Optional[str] = Field(
        default=None,
        description="Store-assigned identifier (None until created)"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        max_digits=15,
        description="Positive amount in the display currency"
    )
    date: dt.date = Field(
        ...,
        description="As-of date of the transaction (date only)"
    )

    @property
    def transaction_kind(self) -> TransactionKind:
        return TransactionKind(self.kind)

    def document_fields(self) -> dict:
        """
        Fields written to the store.

        The id is the document key and the kind is the collection,
        so neither is part of the document body.
        """
        return self.model_dump(exclude={"id", "kind"})


class Expense(TransactionBase):
    """Money going out, filed under a category."""

    kind: Literal["expense"] = "expense"
    category: str = Field(
        default=DEFAULT_CATEGORY,
        min_length=1,
        description="Category code (unknown codes are kept as-is)"
    )
    reason: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Optional free-text note"
    )

    @property
    def category_label(self) -> str:
        return get_category_label(self.category)


class Income(TransactionBase):
    """Money coming in, from a named source."""

    kind: Literal["income"] = "income"
    source: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Where the money came from (e.g. Salary)"
    )


Transaction = Annotated[Union[Expense, Income], Field(discriminator="kind")]

_transaction_adapter = TypeAdapter(Transaction)


def parse_transaction(data: dict) -> Union[Expense, Income]:
    """Build the right variant from a dict carrying a `kind` key."""
    return _transaction_adapter.validate_python(data)


def transaction_class(kind: TransactionKind) -> type[TransactionBase]:
    if kind == TransactionKind.EXPENSE:
        return Expense
    if kind == TransactionKind.INCOME:
        return Income
    raise ValueError(f"Unknown transaction kind: {kind}")


# =============================================================================
# FORM INPUT
# =============================================================================

class TransactionForm(BaseModel):
    """
    Raw form contents as typed by the user.

    Nothing here is trusted. The validator turns a form into an
    Expense or Income, or reports what is wrong with it.
    Fields for both kinds are kept so switching tabs loses nothing.
    """

    model_config = ConfigDict(frozen=True)

    amount: str = ""
    category: str = DEFAULT_CATEGORY
    reason: str = ""
    source: str = ""
    date: Optional[dt.date] = Field(default_factory=dt.date.today)

    @classmethod
    def from_transaction(cls, transaction: Union[Expense, Income]) -> "TransactionForm":
        """Pre-fill a form for editing an existing transaction."""
        if isinstance(transaction, Expense):
            return cls(
                amount=str(transaction.amount),
                category=transaction.category,
                reason=transaction.reason or "",
                date=transaction.date,
            )
        if isinstance(transaction, Income):
            return cls(
                amount=str(transaction.amount),
                source=transaction.source,
                date=transaction.date,
            )
        raise TypeError(f"Not a transaction: {type(transaction).__name__}")


class ValidationIssue(BaseModel):
    """A single problem found in form input."""

    field: str = Field(
        ...,
        description="Form field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description shown next to the form"
    )
