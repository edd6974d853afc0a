"""
Report Models

MonthKey addresses a calendar month; MonthlyView is the derived
aggregate shown on the dashboard.

CRITICAL: MonthlyView is never persisted and never mutated.
It is recomputed from the latest snapshots whenever records or the
selected month change.
"""

import calendar
import datetime as dt
from decimal import Decimal
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

from cashflow.models.transaction import Expense, Income


class MonthKey(BaseModel):
    """
    A calendar month.

    Navigation is unbounded in both directions - a month with no
    data simply aggregates to zeros.
    """

    model_config = ConfigDict(frozen=True)

    year: int
    month: int = Field(ge=1, le=12)

    @classmethod
    def from_date(cls, value: dt.date) -> "MonthKey":
        return cls(year=value.year, month=value.month)

    @classmethod
    def current(cls) -> "MonthKey":
        return cls.from_date(dt.date.today())

    def shift(self, delta: int) -> "MonthKey":
        """Move `delta` months forward (negative moves back)."""
        index = self.year * 12 + (self.month - 1) + delta
        year, month_index = divmod(index, 12)
        return MonthKey(year=year, month=month_index + 1)

    def contains(self, value: dt.date) -> bool:
        return value.year == self.year and value.month == self.month

    @property
    def month_name(self) -> str:
        return calendar.month_name[self.month]

    @property
    def label(self) -> str:
        """e.g. 'March 2024'."""
        return f"{self.month_name} {self.year}"


class CategoryTotal(BaseModel):
    """Summed expenses for one raw category code."""

    model_config = ConfigDict(frozen=True)

    code: str
    label: str
    amount: Decimal = Field(gt=0)


class MonthlyView(BaseModel):
    """
    Aggregate for one month.

    Totals and breakdown cover the selected month only.
    The chronological feed covers ALL months - see DESIGN.md.
    """

    model_config = ConfigDict(frozen=True)

    month: MonthKey
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    category_breakdown: list[CategoryTotal] = Field(default_factory=list)
    chronological_feed: list[Union[Expense, Income]] = Field(default_factory=list)

    @property
    def has_data(self) -> bool:
        """At least one non-zero total this month."""
        return self.total_income != 0 or self.total_expense != 0

    def breakdown_by_label(self) -> dict[str, Decimal]:
        """
        Breakdown keyed by display label.

        Distinct unknown codes share the fallback label, so their
        amounts are merged here.
        """
        merged: dict[str, Decimal] = {}
        for entry in self.category_breakdown:
            merged[entry.label] = merged.get(entry.label, Decimal("0")) + entry.amount
        return merged
