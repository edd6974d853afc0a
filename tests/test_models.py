"""
Tests for cashflow

Test strategy:
1. Unit tests for individual components (models, validators, aggregation)
2. Integration tests for flows (with in-memory store and fake services)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date
from decimal import Decimal

from cashflow.categories import (
    CATEGORY_LABELS,
    DEFAULT_CATEGORY,
    FALLBACK_LABEL,
    ExpenseCategory,
    category_options,
    get_category_label,
    is_registered,
)
from cashflow.models.transaction import (
    Expense,
    Income,
    TransactionForm,
    TransactionKind,
    parse_transaction,
    transaction_class,
)
from cashflow.models.report import CategoryTotal, MonthKey, MonthlyView
from cashflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestTransactionModels:
    """Tests for the Expense / Income variants."""

    def test_expense_creation(self):
        """Test Expense model creation."""
        expense = Expense(
            amount=Decimal("100"),
            date=date(2024, 3, 5),
            category="grocery",
            reason="Vegetables",
        )
        assert expense.kind == "expense"
        assert expense.transaction_kind == TransactionKind.EXPENSE
        assert expense.id is None
        assert expense.category_label == "🛒 Grocery"

    def test_expense_defaults_to_grocery(self):
        """Test that an expense without a category is filed under grocery."""
        expense = Expense(amount=Decimal("10"), date=date(2024, 3, 5))
        assert expense.category == DEFAULT_CATEGORY == "grocery"

    def test_income_strips_whitespace(self):
        """Test that whitespace is stripped from the source."""
        income = Income(amount=Decimal("1000"), date=date(2024, 3, 1), source="  Salary  ")
        assert income.source == "Salary"

    def test_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            Expense(amount=Decimal("0"), date=date(2024, 3, 5))
        with pytest.raises(ValueError):
            Income(amount=Decimal("-5"), date=date(2024, 3, 5), source="Salary")

    def test_income_requires_source(self):
        """Test that an income needs a non-empty source."""
        with pytest.raises(ValueError):
            Income(amount=Decimal("10"), date=date(2024, 3, 5), source="   ")

    def test_models_are_frozen(self):
        """Test that transactions cannot be mutated in place."""
        expense = Expense(amount=Decimal("10"), date=date(2024, 3, 5))
        with pytest.raises(ValueError):
            expense.amount = Decimal("20")

    def test_parse_transaction_dispatches_on_kind(self):
        """Test that the kind tag selects the variant."""
        expense = parse_transaction({"kind": "expense", "amount": "5", "date": "2024-03-05"})
        income = parse_transaction(
            {"kind": "income", "amount": "5", "date": "2024-03-05", "source": "Gift"}
        )
        assert isinstance(expense, Expense)
        assert isinstance(income, Income)
        assert expense.amount == Decimal("5")

    def test_parse_transaction_rejects_unknown_kind(self):
        """Test that an unknown kind is an error, not a guess."""
        with pytest.raises(ValueError):
            parse_transaction({"kind": "transfer", "amount": "5", "date": "2024-03-05"})

    def test_document_fields_exclude_id_and_kind(self):
        """Test the stored document body."""
        expense = Expense(id="abc", amount=Decimal("10"), date=date(2024, 3, 5))
        fields = expense.document_fields()
        assert "id" not in fields
        assert "kind" not in fields
        assert fields["category"] == "grocery"

    def test_transaction_class(self):
        """Test kind to class lookup."""
        assert transaction_class(TransactionKind.EXPENSE) is Expense
        assert transaction_class(TransactionKind.INCOME) is Income

    def test_collection_names(self):
        """Test collection segments."""
        assert TransactionKind.EXPENSE.collection_name == "expenses"
        assert TransactionKind.INCOME.collection_name == "incomes"


class TestTransactionForm:
    """Tests for raw form input."""

    def test_defaults(self):
        """Test that a fresh form defaults to grocery and today."""
        form = TransactionForm()
        assert form.amount == ""
        assert form.category == "grocery"
        assert form.date == date.today()

    def test_from_expense(self):
        """Test pre-filling the edit form from an expense."""
        expense = Expense(
            id="e1",
            amount=Decimal("12.50"),
            date=date(2024, 3, 5),
            category="fun",
            reason="Movie",
        )
        form = TransactionForm.from_transaction(expense)
        assert form.amount == "12.50"
        assert form.category == "fun"
        assert form.reason == "Movie"
        assert form.date == date(2024, 3, 5)

    def test_from_income(self):
        """Test pre-filling the edit form from an income."""
        income = Income(id="i1", amount=Decimal("1000"), date=date(2024, 3, 1), source="Salary")
        form = TransactionForm.from_transaction(income)
        assert form.source == "Salary"
        assert form.amount == "1000"


class TestMonthKey:
    """Tests for month addressing and navigation."""

    def test_shift_across_year_boundaries(self):
        """Test that navigation wraps years in both directions."""
        assert MonthKey(year=2024, month=12).shift(1) == MonthKey(year=2025, month=1)
        assert MonthKey(year=2024, month=1).shift(-1) == MonthKey(year=2023, month=12)
        assert MonthKey(year=2024, month=3).shift(-27) == MonthKey(year=2021, month=12)

    def test_contains_is_exact(self):
        """Test month membership at the boundaries."""
        march = MonthKey(year=2024, month=3)
        assert march.contains(date(2024, 3, 1))
        assert march.contains(date(2024, 3, 31))
        assert not march.contains(date(2024, 2, 29))
        assert not march.contains(date(2024, 4, 1))
        assert not march.contains(date(2023, 3, 15))

    def test_labels(self):
        """Test display names."""
        march = MonthKey(year=2024, month=3)
        assert march.month_name == "March"
        assert march.label == "March 2024"

    def test_rejects_invalid_month(self):
        """Test month bounds."""
        with pytest.raises(ValueError):
            MonthKey(year=2024, month=13)


class TestMonthlyView:
    """Tests for the derived view model."""

    def test_has_data(self):
        """Test the 'any non-zero total' check."""
        march = MonthKey(year=2024, month=3)
        assert not MonthlyView(month=march).has_data
        assert MonthlyView(month=march, total_income=Decimal("1")).has_data

    def test_breakdown_by_label_merges_fallback(self):
        """Test that distinct unknown codes share the fallback label."""
        view = MonthlyView(
            month=MonthKey(year=2024, month=3),
            category_breakdown=[
                CategoryTotal(code="legacy_a", label=FALLBACK_LABEL, amount=Decimal("10")),
                CategoryTotal(code="grocery", label="🛒 Grocery", amount=Decimal("5")),
                CategoryTotal(code="legacy_b", label=FALLBACK_LABEL, amount=Decimal("2.50")),
            ],
        )
        assert view.breakdown_by_label() == {
            FALLBACK_LABEL: Decimal("12.50"),
            "🛒 Grocery": Decimal("5"),
        }


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            description="Expense added",
        )
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to a structured log dict."""
        event = AuditEventBuilder.transaction_deleted("uid-1", "income", "abc")
        log = event.to_log_dict()
        assert log["event_type"] == "transaction_deleted"
        assert log["principal_id"] == "uid-1"
        assert log["entity_type"] == "income"
        assert log["entity_id"] == "abc"
        assert isinstance(log["timestamp"], str)

    def test_audit_event_builder_transaction_created(self):
        """Test builder for transaction created event."""
        event = AuditEventBuilder.transaction_created("uid-1", "expense", "abc", "150.00")
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.is_user_action
        assert event.details == {"amount": "150.00"}

    def test_audit_event_builder_subscription_failed(self):
        """Test builder for subscription failure event."""
        event = AuditEventBuilder.subscription_failed("uid-1", "ns/uid-1/expenses", "boom")
        assert event.severity == AuditSeverity.ERROR
        assert event.entity_id == "ns/uid-1/expenses"
        assert event.error_message == "boom"


class TestCategories:
    """Tests for the category registry."""

    def test_all_categories_labelled(self):
        """Test that every registered code has a label."""
        for category in ExpenseCategory:
            assert category.value in CATEGORY_LABELS

    def test_unknown_code_falls_back(self):
        """Test the fallback label."""
        assert get_category_label("unknown_code") == "N/A"
        assert not is_registered("unknown_code")
        assert is_registered("grocery")

    def test_options_in_registry_order(self):
        """Test select box options."""
        options = category_options()
        assert options[0] == ("grocery", "🛒 Grocery")
        assert len(options) == len(ExpenseCategory)
