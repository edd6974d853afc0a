"""
AI Advice Agent

DESIGN DECISION: The LLM only ever sees the month's aggregate - totals
and the category breakdown. It never sees individual transactions.

CRITICAL BOUNDARIES:
- CAN: Turn the aggregate into 3-4 friendly, actionable tips
- CANNOT: Be asked about a month with no data (short-circuited locally)
- CANNOT: Be retried automatically - one request per user click
- NEVER: Partially displays a response. The text is either fully
  present at the expected path or the request counts as failed.
"""

from typing import Any, Optional

import google.generativeai as genai
import structlog

from cashflow.config import AppSettings, GeminiSettings, get_settings
from cashflow.models.report import MonthlyView


logger = structlog.get_logger(__name__)

NO_DATA_MESSAGE = "Add some data for this month to get advice."
FAILURE_MESSAGE = "Couldn't generate advice. Try again later."


class AdviceError(Exception):
    """Advice could not be produced."""

    def __init__(self, message: str = FAILURE_MESSAGE):
        super().__init__(message)


class InsufficientDataError(AdviceError):
    """Both monthly totals are zero - nothing to advise on."""

    def __init__(self, message: str = NO_DATA_MESSAGE):
        super().__init__(message)


def build_advice_prompt(
    view: MonthlyView,
    month_name: str,
    currency_symbol: str = "₹",
    region: str = "India",
) -> str:
    """
    Deterministic prompt for one month.

    Breakdown lines are keyed by display label, so unknown codes
    sharing the fallback label appear once with their summed amount.
    """
    spending_summary = "\n".join(
        f"- {label}: {currency_symbol}{amount:.2f}"
        for label, amount in view.breakdown_by_label().items()
    )
    return (
        f"Financial data for a user in {region} for {month_name}: "
        f"Total Income: {currency_symbol}{view.total_income:.2f}, "
        f"Total Expenses: {currency_symbol}{view.total_expense:.2f}. "
        f"Spending Breakdown:\n{spending_summary}\n"
        "Provide 3-4 clear, encouraging, actionable financial tips "
        "in a modern, friendly tone."
    )


def _extract_text(response: Any) -> str:
    """Text at candidates[0].content.parts[0].text, or AdviceError."""
    try:
        text = response.candidates[0].content.parts[0].text
    except (AttributeError, IndexError, KeyError, TypeError) as e:
        raise AdviceError() from e

    if not isinstance(text, str) or not text.strip():
        raise AdviceError()
    return text.strip()


class AdviceAgent:
    """
    Requests financial advice for a MonthlyView from Gemini.

    A model can be injected (tests pass a fake exposing
    generate_content_async); otherwise one is configured from settings.
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        settings: Optional[GeminiSettings] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._app_settings = app_settings or get_settings().app
        if model is None:
            self._settings = settings or get_settings().gemini
            self._configure_genai()
        else:
            self._settings = settings
            self._model = model

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    @property
    def _request_options(self) -> dict:
        options: dict = {"retry": None}
        if self._settings is not None:
            options["timeout"] = self._settings.request_timeout_seconds
        return options

    async def request_advice(
        self,
        view: MonthlyView,
        month_label: Optional[str] = None,
    ) -> str:
        """
        Generate advice for the month in `view`.

        Args:
            view: The month's aggregate
            month_label: Month name used in the prompt
                (defaults to the view's month name, e.g. 'March')

        Returns:
            The advice text

        Raises:
            InsufficientDataError: If both totals are zero (no request made)
            AdviceError: On any transport failure or malformed response
        """
        if not view.has_data:
            raise InsufficientDataError()

        prompt = build_advice_prompt(
            view,
            month_label or view.month.month_name,
            currency_symbol=self._app_settings.currency_symbol,
            region=self._app_settings.advice_region,
        )

        try:
            response = await self._model.generate_content_async(
                contents=[{"role": "user", "parts": [{"text": prompt}]}],
                request_options=self._request_options,
            )
        except Exception as e:
            logger.error("advice_request_failed", month=view.month.label, error=str(e))
            raise AdviceError() from e

        text = _extract_text(response)
        logger.info("advice_generated", month=view.month.label, length=len(text))
        return text
