"""
Expense plan suggestion database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Date, Numeric, Text, Integer, JSON, Enum, ForeignKey, Index
from sqlalchemy.orm import relationship
import enum
from recurwise.database import Base


class FrequencyType(str, enum.Enum):
    """Coarse periodicity bucket derived from the average gap between occurrences."""
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    quarterly = "quarterly"
    semiannual = "semiannual"
    annual = "annual"


class ExpenseType(str, enum.Enum):
    """Economic nature of a recurring pattern."""
    subscription = "subscription"
    utility = "utility"
    insurance = "insurance"
    mortgage = "mortgage"
    rent = "rent"
    loan = "loan"
    tax = "tax"
    salary = "salary"
    investment = "investment"
    other_fixed = "other_fixed"
    variable = "variable"


class SuggestionStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    expired = "expired"


class SuggestionSource(str, enum.Enum):
    pattern = "pattern"
    category_average = "category_average"


class SuggestedPurpose(str, enum.Enum):
    sinking_fund = "sinking_fund"
    spending_budget = "spending_budget"


class ExpensePlanSuggestion(Base):
    """Suggested expense plan produced from detected patterns or category averages."""

    __tablename__ = "expense_plan_suggestions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False)

    # Identity
    suggested_name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    # Pattern source data
    merchant_name = Column(String(255), nullable=True)
    representative_description = Column(Text, nullable=False)
    category_id = Column(String(36), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    category_name = Column(String(100), nullable=True)

    # Financial data
    average_amount = Column(Numeric(12, 2), nullable=False)
    monthly_contribution = Column(Numeric(12, 2), nullable=False)
    yearly_total = Column(Numeric(12, 2), nullable=False)

    # Classification
    expense_type = Column(Enum(ExpenseType), nullable=False)
    is_essential = Column(Boolean, default=False, nullable=False)
    frequency_type = Column(Enum(FrequencyType), nullable=False)
    interval_days = Column(Integer, nullable=False)
    suggested_purpose = Column(Enum(SuggestedPurpose), nullable=True)

    # Source and discrepancy against the category average
    suggestion_source = Column(Enum(SuggestionSource), default=SuggestionSource.pattern, nullable=False)
    category_monthly_average = Column(Numeric(12, 2), nullable=True)
    discrepancy_percentage = Column(Numeric(5, 2), nullable=True)
    has_discrepancy_warning = Column(Boolean, default=False, nullable=False)
    discrepancy_message = Column(Text, nullable=True)

    # Confidence (0-100)
    pattern_confidence = Column(Integer, nullable=False)
    classification_confidence = Column(Integer, nullable=False)
    overall_confidence = Column(Integer, nullable=False)
    classification_reasoning = Column(Text, nullable=True)

    # Occurrences
    occurrence_count = Column(Integer, nullable=False)
    first_occurrence = Column(Date, nullable=False)
    last_occurrence = Column(Date, nullable=False)
    next_expected_date = Column(Date, nullable=False)

    # Template recommendation
    suggested_template = Column(String(50), nullable=True)
    template_confidence = Column(Integer, nullable=True)
    template_reasons = Column(JSON, nullable=True)
    template_config = Column(JSON, nullable=True)

    # transaction ids, merchants, span_months, aggregated_pattern_count
    suggestion_metadata = Column(JSON, nullable=True)

    # Workflow
    status = Column(Enum(SuggestionStatus), default=SuggestionStatus.pending, nullable=False)
    approved_expense_plan_id = Column(String(36), ForeignKey("expense_plans.id"), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    category = relationship("Category")
    approved_expense_plan = relationship("ExpensePlan")

    __table_args__ = (
        Index("idx_suggestion_user_status", "user_id", "status"),
        Index("idx_suggestion_user_created", "user_id", "created_at"),
    )
