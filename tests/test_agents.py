"""
Tests for the savings advisor and the local fallback tips.

The Gemini model is replaced by small fakes; no API calls are made.
"""

import asyncio

import pytest

from moneywise.agents import (
    AIServiceError,
    SavingsAdvisorAgent,
    SavingTipsRequest,
    generate_fallback_tips,
)
from moneywise.agents.fallback_tips import (
    CLOSING_LINE,
    EVERYDAY_TIPS,
    GENERAL_TIPS,
    matched_categories,
)


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    """Stands in for genai.GenerativeModel."""

    model_name = "fake-model"

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return FakeResponse(self.text)


class TestFallbackTips:
    """Tests for the deterministic local tips."""

    def test_always_has_general_section_and_closing(self):
        """Test the fixed parts of the document."""
        tips = generate_fallback_tips("anything")
        assert tips.startswith("# Smart Saving Tips\n\n")
        assert "## General Recommendations\n" in tips
        assert f"- {GENERAL_TIPS[0]}\n" in tips
        assert tips.endswith(CLOSING_LINE)

    def test_keyword_sections(self):
        """Test categories are matched by keyword, case-insensitively."""
        tips = generate_fallback_tips("I eat at RESTAURANTS and keep streaming Netflix")
        assert "## 🍲 Food Tips" in tips
        assert "## 🎬 Entertainment Tips" in tips
        assert "Everyday Spending" not in tips

    def test_sections_in_fixed_order(self):
        """Test matched sections follow the fixed category order."""
        names = [c.name for c in matched_categories("rent, fuel and food")]
        assert names == ["Food", "Transportation", "Housing"]

    def test_no_match_uses_everyday_tips(self):
        """Test the catch-all section when nothing matches."""
        tips = generate_fallback_tips("nothing specific")
        assert f"## {EVERYDAY_TIPS.emoji} Everyday Spending Tips" in tips

    def test_deterministic(self):
        """Test the same input always gives the same output."""
        habits = "shopping online and electricity bills"
        assert generate_fallback_tips(habits) == generate_fallback_tips(habits)

    def test_empty_input(self):
        """Test empty habits still produce tips."""
        assert "General Recommendations" in generate_fallback_tips("")


class TestSavingsAdvisorAgent:
    """Tests for the Gemini-backed advisor."""

    def test_returns_model_text(self):
        """Test a normal answer is returned, trimmed."""
        model = FakeModel(text="  # Tips\n- Cook at home  ")
        agent = SavingsAdvisorAgent(model=model)

        response = asyncio.run(agent.get_saving_tips(
            SavingTipsRequest(spending_habits="Food: 5000")
        ))

        assert response.saving_tips == "# Tips\n- Cook at home"
        assert response.used_fallback is False
        assert response.model_name == "fake-model"

    def test_prompt_contains_habits(self):
        """Test the habits text is embedded in the prompt."""
        model = FakeModel(text="ok")
        agent = SavingsAdvisorAgent(model=model)
        asyncio.run(agent.get_saving_tips(SavingTipsRequest(spending_habits="Rent: 20000")))

        assert "Spending Habits: Rent: 20000" in model.prompts[0]
        assert "personal finance advisor" in model.prompts[0]

    def test_model_error_is_wrapped(self):
        """Test any model failure becomes AIServiceError."""
        agent = SavingsAdvisorAgent(model=FakeModel(error=RuntimeError("quota exceeded")))
        with pytest.raises(AIServiceError, match="quota exceeded"):
            asyncio.run(agent.get_saving_tips(SavingTipsRequest(spending_habits="x")))

    def test_empty_output_is_an_error(self):
        """Test a blank answer is treated as a failure."""
        agent = SavingsAdvisorAgent(model=FakeModel(text="   "))
        with pytest.raises(AIServiceError):
            asyncio.run(agent.get_saving_tips(SavingTipsRequest(spending_habits="x")))

    def test_missing_text_is_an_error(self):
        """Test a response without text is treated as a failure."""
        agent = SavingsAdvisorAgent(model=FakeModel(text=None))
        with pytest.raises(AIServiceError):
            asyncio.run(agent.get_saving_tips(SavingTipsRequest(spending_habits="x")))
