"""AI Agents package."""

from moneywise.agents.fallback_tips import generate_fallback_tips
from moneywise.agents.savings_agent import (
    AIServiceError,
    SavingsAdvisorAgent,
    SavingTipsRequest,
    SavingTipsResponse,
)

__all__ = [
    "AIServiceError",
    "SavingsAdvisorAgent",
    "SavingTipsRequest",
    "SavingTipsResponse",
    "generate_fallback_tips",
]
