"""
AI Savings Advisor

DESIGN DECISION: The model only turns a spending-habits description into
advice text. It never sees or writes records, and nothing it returns is
persisted. The answer is markdown, rendered by moneywise.rendering.

BOUNDARIES:
- CAN: Suggest ways to save based on the habits text the user reviewed
- CANNOT: Read the ledger directly
- CANNOT: Change any data

Failures are raised as AIServiceError. Deciding to show fallback tips
instead is the caller's job (see SavingsTipsFlow).
"""

from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import BaseModel, Field

from moneywise.config import GeminiSettings, get_settings


logger = structlog.get_logger(__name__)


SAVING_TIPS_PROMPT = """You are a personal finance advisor. Based on the user's spending habits, provide personalized saving tips.

Spending Habits: {spending_habits}

Provide specific and actionable advice to help the user save money."""


class AIServiceError(Exception):
    """The language model could not produce an answer."""
    pass


class SavingTipsRequest(BaseModel):
    """Input for the savings advisor."""

    spending_habits: str = Field(
        ...,
        description=(
            "A description of the user's spending habits, including "
            "categories and amounts spent"
        ),
    )


class SavingTipsResponse(BaseModel):
    """Advice returned to the UI, as markdown."""

    saving_tips: str = Field(
        ...,
        description="Personalized saving tips based on the spending habits"
    )
    used_fallback: bool = Field(
        default=False,
        description="True when local fallback tips replaced the AI answer"
    )
    model_name: Optional[str] = Field(
        default=None,
        description="Model that produced the tips, if any"
    )


class SavingsAdvisorAgent:
    """
    Gemini-backed savings advisor.

    Args:
        settings: Gemini settings. Loaded from the environment if omitted.
        model: Anything with an async generate_content_async(prompt).
               Built from settings if omitted.
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
    ):
        self._settings = settings
        self._model = model
        if self._model is None:
            self._settings = settings or get_settings().gemini
            self._configure_genai()

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
    def model_name(self) -> str:
        if self._settings is not None:
            return self._settings.model_name
        return getattr(self._model, "model_name", "custom")

    async def get_saving_tips(self, request: SavingTipsRequest) -> SavingTipsResponse:
        """
        Ask the model for saving tips.

        Raises:
            AIServiceError: If the call fails or the model returns nothing
        """
        prompt = SAVING_TIPS_PROMPT.format(spending_habits=request.spending_habits)
        logger.info(
            "saving_tips_requested",
            model_name=self.model_name,
            input_length=len(request.spending_habits),
        )

        try:
            response = await self._model.generate_content_async(prompt)
            text = (response.text or "").strip()
        except Exception as e:
            logger.error("ai_service_failed", model_name=self.model_name, error=str(e))
            raise AIServiceError(f"Gemini request failed: {e}") from e

        if not text:
            logger.error("ai_service_empty_output", model_name=self.model_name)
            raise AIServiceError("Gemini returned no saving tips")

        logger.info("saving_tips_received", output_length=len(text))
        return SavingTipsResponse(
            saving_tips=text,
            used_fallback=False,
            model_name=self.model_name,
        )
