"""
Expense plan database model.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Date, Numeric, Text, Enum, ForeignKey
from sqlalchemy.orm import relationship
import enum
from recurwise.database import Base
from recurwise.models.suggestion import SuggestedPurpose


class PlanType(str, enum.Enum):
    fixed_monthly = "fixed_monthly"
    yearly_fixed = "yearly_fixed"
    yearly_variable = "yearly_variable"


class PlanFrequency(str, enum.Enum):
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"


class ExpensePlan(Base):
    """Budget plan the user approved, either by hand or from a suggestion."""

    __tablename__ = "expense_plans"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    plan_type = Column(Enum(PlanType), nullable=False)
    purpose = Column(Enum(SuggestedPurpose), default=SuggestedPurpose.sinking_fund, nullable=False)
    is_essential = Column(Boolean, default=False, nullable=False)
    category_id = Column(String(36), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    target_amount = Column(Numeric(12, 2), nullable=False)
    monthly_contribution = Column(Numeric(12, 2), nullable=False)
    frequency = Column(Enum(PlanFrequency), nullable=False)
    next_due_date = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    category = relationship("Category")
