"""AI agents package."""

from cashflow.agents.advice_agent import (
    AdviceAgent,
    AdviceError,
    InsufficientDataError,
    build_advice_prompt,
)

__all__ = [
    "AdviceAgent",
    "AdviceError",
    "InsufficientDataError",
    "build_advice_prompt",
]
