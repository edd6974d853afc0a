"""Display helpers for amounts, dates and feed rows."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Union

from cashflow.models.transaction import Expense, Income


def format_currency(amount: Decimal, symbol: str = "₹") -> str:
    """e.g. ₹1,250.50 / -₹30.00"""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_date(value: date) -> str:
    return value.strftime("%d %b %Y")


@dataclass(frozen=True)
class FeedEntry:
    """One row of the transaction history, ready to render."""

    transaction: Union[Expense, Income]
    title: str
    subtitle: str
    date_label: str
    amount_label: str
    is_expense: bool


def feed_entry(transaction: Union[Expense, Income], symbol: str = "₹") -> FeedEntry:
    """Expenses show their category and reason; incomes show their source."""
    if isinstance(transaction, Expense):
        return FeedEntry(
            transaction=transaction,
            title=transaction.category_label,
            subtitle=transaction.reason or "",
            date_label=format_date(transaction.date),
            amount_label=f"-{format_currency(transaction.amount, symbol)}",
            is_expense=True,
        )
    if isinstance(transaction, Income):
        return FeedEntry(
            transaction=transaction,
            title="Income",
            subtitle=transaction.source,
            date_label=format_date(transaction.date),
            amount_label=f"+{format_currency(transaction.amount, symbol)}",
            is_expense=False,
        )
    raise TypeError(f"Not a transaction: {type(transaction).__name__}")
