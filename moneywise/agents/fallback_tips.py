"""
Local fallback saving tips.

Shown when the AI advisor is unavailable. Deterministic: the same
habits text always produces the same markdown document. Category
sections are chosen by plain keyword matching on the habits text.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TipCategory:
    name: str
    emoji: str
    keywords: tuple[str, ...]
    tips: tuple[str, ...]

    def matches(self, habits_lower: str) -> bool:
        return any(keyword in habits_lower for keyword in self.keywords)


GENERAL_TIPS = (
    "Track all your expenses to gain better awareness of your spending patterns",
    "Create a monthly budget and try to stick to it",
    "Consider using the 50/30/20 rule: 50% needs, 30% wants, 20% savings",
    "Look for unnecessary subscriptions and cancel them",
    "Set up automatic transfers to your savings account on payday",
)

# Checked in this order; every matching category gets a section
TIP_CATEGORIES = (
    TipCategory(
        name="Food",
        emoji="🍲",
        keywords=("food", "grocery", "eating", "restaurant", "dining"),
        tips=(
            "Cook more meals at home instead of eating out",
            "Plan meals and make a shopping list before going to the grocery store",
            "Buy in bulk for non-perishable items when they're on sale",
            "Reduce food waste by planning leftovers",
            "Consider meatless meals a few times a week to save money",
        ),
    ),
    TipCategory(
        name="Entertainment",
        emoji="🎬",
        keywords=("entertainment", "movie", "streaming", "subscription"),
        tips=(
            "Share subscription services with family or friends",
            "Look for free or low-cost entertainment options in your community",
            "Consider rotating subscriptions instead of having them all active at once",
            "Use your library for books, movies, and other media",
            "Look for discounts and special offers for activities you enjoy",
        ),
    ),
    TipCategory(
        name="Shopping",
        emoji="🛍️",
        keywords=("shopping", "clothes", "buy", "purchase"),
        tips=(
            "Wait 24-48 hours before making non-essential purchases",
            "Use cashback and reward programs when shopping",
            "Look for sales, especially during seasonal changes",
            "Consider buying second-hand for certain items",
            "Create a wishlist and prioritize purchases instead of impulse buying",
        ),
    ),
    TipCategory(
        name="Transportation",
        emoji="🚗",
        keywords=("transportation", "travel", "car", "fuel", "gas", "petrol"),
        tips=(
            "Use public transportation when possible",
            "Carpool with colleagues or friends",
            "Maintain your vehicle properly to avoid costly repairs",
            "Compare fuel prices at different stations",
            "Consider walking or biking for short distances to save money and improve health",
        ),
    ),
    TipCategory(
        name="Housing",
        emoji="🏠",
        keywords=("rent", "mortgage", "home", "apartment", "house"),
        tips=(
            "Negotiate your rent when renewing your lease",
            "Consider a roommate to split housing costs",
            "Reduce energy costs by using efficient appliances and mindful consumption",
            "DIY simple home repairs and maintenance when possible",
            "Refinance your mortgage if interest rates have dropped significantly",
        ),
    ),
    TipCategory(
        name="Utilities",
        emoji="💡",
        keywords=("utility", "utilities", "electricity", "water", "gas", "bill"),
        tips=(
            "Use programmable thermostats to optimize heating and cooling",
            "Switch to energy-efficient lighting and appliances",
            "Compare providers for better rates on internet and phone services",
            "Fix leaky faucets and toilets to save on water bills",
            "Wash clothes in cold water and hang to dry when possible",
        ),
    ),
)

EVERYDAY_TIPS = TipCategory(
    name="Everyday Spending",
    emoji="🛒",
    keywords=(),
    tips=(
        "Use comparison apps to find the best prices before making purchases",
        "Take advantage of loyalty programs and cashback offers",
        "Challenge yourself with a 'no-spend' day each week",
        "Consider minimalism and focus on experiences rather than material goods",
        "Set specific financial goals to motivate your saving efforts",
    ),
)

CLOSING_LINE = (
    "**Remember:** Small changes in your daily habits can add up to "
    "significant savings over time. The most important step is to start today!"
)


def _section(title: str, tips: tuple[str, ...]) -> str:
    bullets = "".join(f"- {tip}\n" for tip in tips)
    return f"## {title}\n{bullets}\n"


def matched_categories(habits: str) -> list[TipCategory]:
    habits_lower = (habits or "").lower()
    return [category for category in TIP_CATEGORIES if category.matches(habits_lower)]


def generate_fallback_tips(habits: str) -> str:
    """Build the fallback tips markdown for a spending-habits description."""
    parts = [
        "# Smart Saving Tips\n\n",
        "Here are personalized saving tips based on your spending profile:\n\n",
        _section("General Recommendations", GENERAL_TIPS),
    ]

    categories = matched_categories(habits)
    if not categories:
        categories = [EVERYDAY_TIPS]

    for category in categories:
        parts.append(_section(f"{category.emoji} {category.name} Tips", category.tips))

    parts.append(CLOSING_LINE)
    return "".join(parts)
