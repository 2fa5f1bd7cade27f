"""
Database models package.
"""

from recurwise.models.category import Category
from recurwise.models.transaction import Transaction
from recurwise.models.suggestion import (
    ExpensePlanSuggestion,
    ExpenseType,
    FrequencyType,
    SuggestedPurpose,
    SuggestionSource,
    SuggestionStatus,
)
from recurwise.models.expense_plan import ExpensePlan, PlanFrequency, PlanType

__all__ = [
    "Category",
    "Transaction",
    "ExpensePlanSuggestion",
    "ExpenseType",
    "FrequencyType",
    "SuggestedPurpose",
    "SuggestionSource",
    "SuggestionStatus",
    "ExpensePlan",
    "PlanFrequency",
    "PlanType",
]
