"""
Transaction Form Validation

DESIGN DECISION: Form input is validated BEFORE anything reaches the
store. An invalid form never produces a store call.

Checks:
- Amount present, numeric, strictly positive and at most 12 digits
- Date present
- Income requires a source
- Expense requires a category code (unknown codes are accepted -
  they degrade to a fallback label, they are not an input error)

IMPORTANT: Validation NEVER silently fixes input.
It reports every issue so the user can correct the form in place.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from cashflow.models.transaction import (
    Expense,
    Income,
    TransactionForm,
    TransactionKind,
    ValidationIssue,
)

# Keeps amounts within what the store and audit log can carry
MAX_AMOUNT_DIGITS = 12


class ValidationError(Exception):
    """Form input cannot be turned into a transaction."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        message = issues[0].message if issues else "Invalid input."
        super().__init__(message)

    def issue_dicts(self) -> list[dict]:
        return [issue.model_dump() for issue in self.issues]


class TransactionValidator:
    """
    Turns a TransactionForm into an Expense or Income.
    """

    def _parse_amount(self, raw: str) -> tuple[Optional[Decimal], Optional[ValidationIssue]]:
        text = (raw or "").strip().replace(",", "")
        if not text:
            return None, ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Please enter a valid positive amount.",
            )

        try:
            amount = Decimal(text)
        except InvalidOperation:
            return None, ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message="Please enter a valid positive amount.",
            )

        if not amount.is_finite() or amount <= 0:
            return None, ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Please enter a valid positive amount.",
            )

        if len(amount.as_tuple().digits) > MAX_AMOUNT_DIGITS or amount.adjusted() >= MAX_AMOUNT_DIGITS:
            return None, ValidationIssue(
                field="amount",
                issue_type="too_large",
                message=f"Amounts are limited to {MAX_AMOUNT_DIGITS} digits.",
            )

        return amount, None

    def _check_form(
        self,
        kind: TransactionKind,
        form: TransactionForm,
    ) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        issues = []

        amount, amount_issue = self._parse_amount(form.amount)
        if amount_issue:
            issues.append(amount_issue)

        if kind == TransactionKind.INCOME and not form.source.strip():
            issues.append(ValidationIssue(
                field="source",
                issue_type="missing",
                message="Please enter an income source.",
            ))

        if kind == TransactionKind.EXPENSE and not form.category.strip():
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Please choose a category.",
            ))

        if form.date is None:
            issues.append(ValidationIssue(
                field="date",
                issue_type="missing",
                message="Please pick a date.",
            ))

        return amount, issues

    def validate(
        self,
        kind: TransactionKind,
        form: TransactionForm,
        transaction_id: Optional[str] = None,
    ) -> Union[Expense, Income]:
        """
        Validate a form for `kind`.

        Args:
            kind: Which variant the form is for
            form: Raw form contents
            transaction_id: Existing id when editing, None when adding

        Returns:
            The typed transaction

        Raises:
            ValidationError: With every issue found
        """
        amount, issues = self._check_form(kind, form)
        if issues:
            raise ValidationError(issues)

        try:
            if kind == TransactionKind.EXPENSE:
                return Expense(
                    id=transaction_id,
                    amount=amount,
                    date=form.date,
                    category=form.category,
                    reason=form.reason or None,
                )
            if kind == TransactionKind.INCOME:
                return Income(
                    id=transaction_id,
                    amount=amount,
                    date=form.date,
                    source=form.source,
                )
        except PydanticValidationError as e:
            raise ValidationError([
                ValidationIssue(
                    field=".".join(str(part) for part in error["loc"]) or "form",
                    issue_type=error["type"],
                    message=error["msg"],
                )
                for error in e.errors()
            ]) from e

        raise ValueError(f"Unknown transaction kind: {kind}")

    def get_user_friendly_summary(self, error: ValidationError) -> str:
        """All issues as one block of text for the inline form message."""
        return "\n".join(f"• {issue.message}" for issue in error.issues)
