"""
MoneyWise - Personal Finance Tracker

Record expenses, set category budgets, look at where the money went,
and ask an AI advisor for savings tips.

DESIGN PRINCIPLES:
1. External services own auth, storage and inference
2. Everything local is a pure, testable transformation
3. Collaborators are constructed once and passed in, never global
4. Failures return the UI to an interactive state
"""

__version__ = "1.0.0"
__author__ = "MoneyWise Team"
