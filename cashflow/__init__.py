"""
cashflow - Source Package

A personal finance tracker: record income and expenses, review a monthly
summary and category breakdown, and ask for AI-generated advice.

DESIGN PRINCIPLES:
1. Local state mirrors the last snapshot from the store - no optimistic edits
2. Derived views are recomputed, never mutated
3. Fail visibly, never crash the session
4. Every user action is logged
5. Storage and identity backends are swappable
"""

__version__ = "1.0.0"
__author__ = "cashflow Team"
