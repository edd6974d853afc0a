"""Tests for the advice agent and advice flow."""

import asyncio
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from cashflow.agents import (
    AdviceAgent,
    AdviceError,
    InsufficientDataError,
    build_advice_prompt,
)
from cashflow.config import AppSettings, GeminiSettings
from cashflow.models.report import MonthKey, MonthlyView
from cashflow.orchestrator import AdviceFlow
from cashflow.reports import build_monthly_view

from conftest import FakeGeminiModel, make_expense, make_income


MARCH = MonthKey(year=2024, month=3)


def march_view() -> MonthlyView:
    return build_monthly_view(
        [
            make_expense("100", date(2024, 3, 5), "grocery", id="e1"),
            make_expense("50", date(2024, 3, 10), "fun", id="e2"),
        ],
        [make_income("1000", date(2024, 3, 1), "salary", id="i1")],
        MARCH,
    )


def make_agent(model) -> AdviceAgent:
    return AdviceAgent(
        model=model,
        settings=GeminiSettings(api_key="test-key", request_timeout_seconds=12),
        app_settings=AppSettings(),
    )


class TestAdvicePrompt:
    """Tests for prompt construction."""

    def test_prompt_text(self):
        """Test the exact prompt for a populated month."""
        prompt = build_advice_prompt(march_view(), "March")
        assert prompt == (
            "Financial data for a user in India for March: "
            "Total Income: ₹1000.00, Total Expenses: ₹150.00. "
            "Spending Breakdown:\n"
            "- 🛒 Grocery: ₹100.00\n"
            "- 🎉 Fun: ₹50.00\n"
            "Provide 3-4 clear, encouraging, actionable financial tips "
            "in a modern, friendly tone."
        )

    def test_prompt_region_and_currency(self):
        """Test configurable region and currency symbol."""
        prompt = build_advice_prompt(march_view(), "March", currency_symbol="$", region="Canada")
        assert "a user in Canada" in prompt
        assert "Total Income: $1000.00" in prompt


class TestAdviceAgent:
    """Tests for the Gemini-backed agent."""

    def test_no_data_short_circuits(self):
        """Test that an empty month never calls the model."""
        model = FakeGeminiModel()
        agent = make_agent(model)

        with pytest.raises(InsufficientDataError) as exc_info:
            asyncio.run(agent.request_advice(MonthlyView(month=MARCH)))

        assert str(exc_info.value) == "Add some data for this month to get advice."
        assert model.calls == []

    def test_single_request_with_retries_disabled(self):
        """Test the request body and options."""
        model = FakeGeminiModel(text="  Track your grocery spend.  ")
        agent = make_agent(model)

        text = asyncio.run(agent.request_advice(march_view()))

        assert text == "Track your grocery spend."
        assert len(model.calls) == 1
        call = model.calls[0]
        assert call["contents"] == [
            {"role": "user", "parts": [{"text": build_advice_prompt(march_view(), "March")}]}
        ]
        assert call["request_options"] == {"retry": None, "timeout": 12}

    def test_transport_failure(self):
        """Test that a failed call is AdviceError with the generic message."""
        model = FakeGeminiModel(error=RuntimeError("503"))
        agent = make_agent(model)

        with pytest.raises(AdviceError) as exc_info:
            asyncio.run(agent.request_advice(march_view()))

        assert str(exc_info.value) == "Couldn't generate advice. Try again later."
        assert len(model.calls) == 1

    @pytest.mark.parametrize(
        "response",
        [
            SimpleNamespace(candidates=[]),
            SimpleNamespace(candidates=None),
            SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[]))]),
            FakeGeminiModel.response_with(None),
            FakeGeminiModel.response_with("   "),
        ],
    )
    def test_malformed_response(self, response):
        """Test that missing or empty text is a failure, never partial output."""
        agent = make_agent(FakeGeminiModel(response=response))
        with pytest.raises(AdviceError):
            asyncio.run(agent.request_advice(march_view()))

    def test_insufficient_data_is_advice_error(self):
        """Test the error hierarchy."""
        assert issubclass(InsufficientDataError, AdviceError)


class SlowAgent:
    """Agent that waits until released."""

    def __init__(self):
        self.calls = 0
        self.release = None

    async def request_advice(self, view):
        self.calls += 1
        await self.release.wait()
        return "Spend less on fun."


class TestAdviceFlow:
    """Tests for the one-in-flight guard."""

    def test_second_request_while_busy_is_noop(self):
        """Test that a concurrent request returns None without calling the agent."""
        agent = SlowAgent()
        flow = AdviceFlow(agent)

        async def scenario():
            agent.release = asyncio.Event()
            first = asyncio.create_task(flow.request(march_view()))
            await asyncio.sleep(0)
            assert flow.busy

            second = await flow.request(march_view())
            agent.release.set()
            return await first, second

        first, second = asyncio.run(scenario())

        assert first == "Spend less on fun."
        assert second is None
        assert agent.calls == 1
        assert not flow.busy

    def test_busy_flag_cleared_after_failure(self):
        """Test that a failed request frees the flow."""
        flow = AdviceFlow(make_agent(FakeGeminiModel(error=RuntimeError("boom"))))

        with pytest.raises(AdviceError):
            asyncio.run(flow.request(march_view()))
        assert not flow.busy

    def test_missing_agent_is_advice_error(self):
        """Test a flow built without a configured agent."""
        flow = AdviceFlow(None)
        with pytest.raises(AdviceError):
            asyncio.run(flow.request(march_view()))
        assert not flow.busy
