"""
Monthly Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and PURE.
Given the same snapshots and month it always produces the same
MonthlyView. It performs no I/O and never raises.

Rules:
- Totals and breakdown cover the selected month only
- The chronological feed covers every month (see DESIGN.md)
- Category totals are rounded to cents with ROUND_HALF_UP
- Malformed records are skipped, never propagated
"""

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional, Union

import structlog

from cashflow.categories import get_category_label
from cashflow.models.report import CategoryTotal, MonthKey, MonthlyView
from cashflow.models.transaction import Expense, Income, TransactionKind


CENT = Decimal("0.01")
ZERO = Decimal("0")

_KIND_ORDER = {
    TransactionKind.EXPENSE.value: 0,
    TransactionKind.INCOME.value: 1,
}

logger = structlog.get_logger(__name__)


def _malformed_reason(record: object, expected: type) -> Optional[str]:
    """Why a record cannot be aggregated, or None if it is fine."""
    if not isinstance(record, expected):
        return f"expected {expected.__name__}, got {type(record).__name__}"

    amount = getattr(record, "amount", None)
    if amount is None:
        return "missing amount"
    try:
        amount = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return "non-numeric amount"
    if not amount.is_finite() or amount <= 0:
        return "non-positive amount"

    if not isinstance(getattr(record, "date", None), dt.date):
        return "missing date"

    return None


def _well_formed(records: Iterable, expected: type) -> list:
    kept = []
    for record in records:
        reason = _malformed_reason(record, expected)
        if reason is None:
            kept.append(record)
        else:
            logger.warning(
                "record_skipped",
                kind=expected.__name__.lower(),
                transaction_id=getattr(record, "id", None),
                reason=reason,
            )
    return kept


def _amount(record: Union[Expense, Income]) -> Decimal:
    return Decimal(str(record.amount))


def filter_by_month(records: Iterable, month: MonthKey) -> list:
    """Records dated inside `month` (same calendar year and month)."""
    return [record for record in records if month.contains(record.date)]


def sum_amounts(records: Iterable) -> Decimal:
    return sum((_amount(record) for record in records), ZERO)


def summarize_categories(expenses: Iterable[Expense]) -> list[CategoryTotal]:
    """
    Group expenses by raw category code and sum them.

    Groups appear in the order their code is first seen when the
    expenses are walked by date then id. Unknown codes keep their own
    group but get the fallback label. Groups that round to zero are dropped.
    """
    ordered = sorted(expenses, key=lambda e: (e.date.toordinal(), e.id or ""))

    groups: dict[str, Decimal] = {}
    for expense in ordered:
        groups[expense.category] = groups.get(expense.category, ZERO) + _amount(expense)

    breakdown = []
    for code, total in groups.items():
        rounded = total.quantize(CENT, rounding=ROUND_HALF_UP)
        if rounded <= 0:
            continue
        breakdown.append(CategoryTotal(
            code=code,
            label=get_category_label(code),
            amount=rounded,
        ))
    return breakdown


def merge_feed(
    expenses: Iterable[Expense],
    incomes: Iterable[Income],
) -> list[Union[Expense, Income]]:
    """
    Every transaction, newest first.

    Same-day entries are ordered expense before income, then by id,
    so the feed is reproducible between recomputations.
    """
    combined = list(expenses) + list(incomes)
    return sorted(
        combined,
        key=lambda t: (-t.date.toordinal(), _KIND_ORDER[t.kind], t.id or ""),
    )


def build_monthly_view(
    expenses: Iterable[Expense],
    incomes: Iterable[Income],
    month: MonthKey,
) -> MonthlyView:
    """
    Compute the MonthlyView for `month` from full collection snapshots.
    """
    all_expenses = _well_formed(expenses, Expense)
    all_incomes = _well_formed(incomes, Income)

    monthly_expenses = filter_by_month(all_expenses, month)
    monthly_incomes = filter_by_month(all_incomes, month)

    total_expense = sum_amounts(monthly_expenses)
    total_income = sum_amounts(monthly_incomes)

    return MonthlyView(
        month=month,
        total_income=total_income,
        total_expense=total_expense,
        balance=total_income - total_expense,
        category_breakdown=summarize_categories(monthly_expenses),
        chronological_feed=merge_feed(all_expenses, all_incomes),
    )
