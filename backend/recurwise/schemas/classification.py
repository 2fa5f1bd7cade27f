"""Pydantic schemas for pattern classification."""

from pydantic import BaseModel, Field
from typing import Optional, List

from recurwise.models.suggestion import ExpenseType, FrequencyType


class ClassificationRequest(BaseModel):
    pattern_id: str
    merchant_name: Optional[str] = None
    category_name: Optional[str] = None
    representative_description: str
    average_amount: float
    frequency_type: FrequencyType
    occurrence_count: int


class ClassificationResult(BaseModel):
    pattern_id: str
    expense_type: ExpenseType
    is_essential: bool
    suggested_name: str
    monthly_contribution: float
    confidence: int = Field(ge=0, le=100)
    reasoning: str


class BatchClassificationResult(BaseModel):
    classifications: List[ClassificationResult]
    tokens_used: int = 0
    estimated_cost: float = 0.0
    processing_time_ms: int = 0


class ApiUsageStats(BaseModel):
    daily_api_calls: int
    max_daily_api_calls: int
    remaining_calls: int
    cache_size: int
