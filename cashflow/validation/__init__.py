"""Form validation package."""

from cashflow.validation.validator import TransactionValidator, ValidationError

__all__ = ["TransactionValidator", "ValidationError"]
