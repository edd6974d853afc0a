"""Pytest configuration and shared fakes.

Settings are read from the environment and a ``.env`` file, and
``get_settings()`` is cached. Every test gets a clean environment, runs
from its own temporary directory (so no stray ``.env`` is picked up) and
starts with an empty settings cache.
"""

import asyncio
import os
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from typing import Optional

import pytest

from cashflow.auth import AuthError, IdentityProvider, Principal
from cashflow.config import get_settings
from cashflow.models.transaction import Expense, Income


_ENV_PREFIXES = ("APP_", "GEMINI_", "GOOGLE_SHEETS_")


@pytest.fixture(autouse=True)
def _isolate_settings(tmp_path, monkeypatch):
    """Clear configuration env vars and the settings cache around each test."""
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def memory_env(monkeypatch):
    """Configure the in-memory backend and a Gemini key."""
    monkeypatch.setenv("APP_STORAGE_BACKEND", "memory")
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")


# =============================================================================
# Record builders
# =============================================================================

def make_expense(
    amount: str,
    on: date,
    category: str = "grocery",
    id: Optional[str] = None,
    reason: Optional[str] = None,
) -> Expense:
    return Expense(id=id, amount=Decimal(amount), date=on, category=category, reason=reason)


def make_income(
    amount: str,
    on: date,
    source: str = "Salary",
    id: Optional[str] = None,
) -> Income:
    return Income(id=id, amount=Decimal(amount), date=on, source=source)


# =============================================================================
# Fakes
# =============================================================================

class FakeIdentityProvider(IdentityProvider):
    """Identity provider driven by the test."""

    def __init__(self, principal: Optional[Principal] = None):
        self.principal = principal
        self.next_sign_in: Optional[Principal] = None
        self.sign_in_error: Optional[Exception] = None
        self.sign_out_error: Optional[Exception] = None
        self.read_error: Optional[Exception] = None

    def current_principal(self) -> Optional[Principal]:
        if self.read_error:
            raise self.read_error
        return self.principal

    async def sign_in(self) -> Optional[Principal]:
        if self.sign_in_error:
            raise self.sign_in_error
        self.principal = self.next_sign_in
        return self.principal

    async def sign_out(self) -> None:
        if self.sign_out_error:
            raise self.sign_out_error
        self.principal = None


def cancelled_sign_in() -> AuthError:
    return AuthError("Sign-in was cancelled")


class FakeGeminiModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(
        self,
        text: Optional[str] = "Save more.",
        error: Optional[Exception] = None,
        response=None,
        delay: float = 0,
    ):
        self.calls: list[dict] = []
        self._delay = delay
        self._text = text
        self._error = error
        self._response = response

    @staticmethod
    def response_with(text: Optional[str]):
        part = SimpleNamespace(text=text)
        content = SimpleNamespace(parts=[part])
        return SimpleNamespace(candidates=[SimpleNamespace(content=content)])

    async def generate_content_async(self, contents=None, **kwargs):
        self.calls.append({"contents": contents, **kwargs})
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error:
            raise self._error
        if self._response is not None:
            return self._response
        return self.response_with(self._text)


class FakeWorksheet:
    """In-memory stand-in for gspread.Worksheet."""

    def __init__(self, rows: Optional[list[list]] = None):
        self.rows: list[list] = [list(row) for row in (rows or [])]
        self.read_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.reads = 0

    def get_all_values(self) -> list[list]:
        self.reads += 1
        if self.read_error:
            raise self.read_error
        return [list(row) for row in self.rows]

    def append_row(self, row, value_input_option=None):
        if self.write_error:
            raise self.write_error
        self.rows.append([str(value) for value in row])

    def update(self, range_name=None, values=None, value_input_option=None):
        if self.write_error:
            raise self.write_error
        index = int(range_name.split(":")[0][1:]) - 1
        self.rows[index] = [str(value) for value in values[0]]

    def delete_rows(self, index):
        if self.write_error:
            raise self.write_error
        del self.rows[index - 1]


class FakeSheetsClient:
    """Hands out one FakeWorksheet per collection path."""

    def __init__(self):
        self.sheets: dict[str, FakeWorksheet] = {}

    def get_collection_sheet(self, path: str) -> FakeWorksheet:
        if path not in self.sheets:
            self.sheets[path] = FakeWorksheet(
                [["id", "amount", "date", "category", "reason", "source"]]
            )
        return self.sheets[path]
