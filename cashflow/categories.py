"""
Expense Category Registry

Static mapping from category code to display label.

DESIGN DECISION: Stored records keep the raw code, never the label.
Codes that are not registered here (old data, hand-edited sheets) are
NOT rejected - they degrade to the fallback label so the amount still
shows up in totals and in the breakdown.
"""

from enum import Enum


FALLBACK_LABEL = "N/A"


class ExpenseCategory(str, Enum):
    """Registered expense category codes."""
    GROCERY = "grocery"
    FUN = "fun"
    TRAVEL = "travel"
    DAILY_EXPENSE = "daily_expense"
    BEVERAGE = "beverage"
    BUSINESS = "business"
    FITNESS = "fitness"
    OTHER = "other"


CATEGORY_LABELS: dict[str, str] = {
    ExpenseCategory.GROCERY.value: "🛒 Grocery",
    ExpenseCategory.FUN.value: "🎉 Fun",
    ExpenseCategory.TRAVEL.value: "✈️ Travel",
    ExpenseCategory.DAILY_EXPENSE.value: "☕ Daily Expense",
    ExpenseCategory.BEVERAGE.value: "🥤 Beverage",
    ExpenseCategory.BUSINESS.value: "💼 Business",
    ExpenseCategory.FITNESS.value: "💪 Fitness",
    ExpenseCategory.OTHER.value: "📦 Miscellaneous",
}

DEFAULT_CATEGORY = ExpenseCategory.GROCERY.value

# Chart palette, cycled in breakdown order
CATEGORY_COLORS = [
    "#3B82F6",
    "#10B981",
    "#F59E0B",
    "#EF4444",
    "#8B5CF6",
    "#EC4899",
    "#6EE7B7",
    "#93C5FD",
]


def get_category_label(code: str) -> str:
    """Display label for a category code, or the fallback for unknown codes."""
    return CATEGORY_LABELS.get(code, FALLBACK_LABEL)


def is_registered(code: str) -> bool:
    return code in CATEGORY_LABELS


def category_options() -> list[tuple[str, str]]:
    """(code, label) pairs in registry order, for select boxes."""
    return [(category.value, CATEGORY_LABELS[category.value]) for category in ExpenseCategory]
