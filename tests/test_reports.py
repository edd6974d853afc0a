"""Tests for display formatting and charts."""

from datetime import date
from decimal import Decimal

import plotly.graph_objects as go
import pytest

from cashflow.models.report import MonthKey, MonthlyView
from cashflow.reports import breakdown_chart, build_monthly_view, feed_entry, format_currency

from conftest import make_expense, make_income


MARCH = MonthKey(year=2024, month=3)


class TestFormatting:
    """Tests for amount and feed formatting."""

    def test_format_currency(self):
        """Test grouping, cents and sign."""
        assert format_currency(Decimal("1250.5")) == "₹1,250.50"
        assert format_currency(Decimal("-30")) == "-₹30.00"
        assert format_currency(Decimal("0"), symbol="$") == "$0.00"

    def test_expense_feed_entry(self):
        """Test an expense row."""
        entry = feed_entry(make_expense("99.9", date(2024, 3, 5), "travel", reason="Bus"))
        assert entry.title == "✈️ Travel"
        assert entry.subtitle == "Bus"
        assert entry.date_label == "05 Mar 2024"
        assert entry.amount_label == "-₹99.90"
        assert entry.is_expense

    def test_income_feed_entry(self):
        """Test an income row."""
        entry = feed_entry(make_income("1000", date(2024, 3, 1), "Salary"))
        assert entry.title == "Income"
        assert entry.subtitle == "Salary"
        assert entry.amount_label == "+₹1,000.00"
        assert not entry.is_expense

    def test_feed_entry_rejects_other_types(self):
        """Test exhaustive dispatch."""
        with pytest.raises(TypeError):
            feed_entry("not a transaction")


class TestBreakdownChart:
    """Tests for the donut chart."""

    def test_donut_per_label(self):
        """Test one slice per category label."""
        view = build_monthly_view(
            [
                make_expense("100", date(2024, 3, 5), "grocery", id="e1"),
                make_expense("50", date(2024, 3, 10), "fun", id="e2"),
            ],
            [],
            MARCH,
        )
        fig = breakdown_chart(view)

        [pie] = fig.data
        assert isinstance(pie, go.Pie)
        assert list(pie.labels) == ["🛒 Grocery", "🎉 Fun"]
        assert list(pie.values) == [100.0, 50.0]
        assert pie.hole == 0.6

    def test_empty_month(self):
        """Test the placeholder figure."""
        fig = breakdown_chart(MonthlyView(month=MARCH))
        assert len(fig.data) == 0
        assert fig.layout.annotations[0].text == "no expenses this month."

