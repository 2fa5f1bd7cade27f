"""Pydantic schemas for pattern detection."""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime

from recurwise.models.suggestion import FrequencyType


class TransactionData(BaseModel):
    """Read-only view of a transaction for one analysis run."""
    id: str
    description: str
    merchant_name: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    amount: float
    execution_date: Optional[date] = None
    created_at: datetime

    model_config = {"frozen": True}

    @property
    def occurred_on(self) -> date:
        return self.execution_date or self.created_at.date()


class SimilarityWeights(BaseModel):
    category: float = 0.35
    merchant: float = 0.30
    description: float = 0.25
    amount: float = 0.10


class SimilarityScore(BaseModel):
    category_match: float
    merchant_match: float
    description_match: float
    amount_similarity: float
    total: float


class FrequencyPattern(BaseModel):
    type: FrequencyType
    interval_days: int
    confidence: int = Field(ge=0, le=100)
    next_expected_date: date
    occurrence_count: int


class TransactionGroup(BaseModel):
    id: str
    transactions: List[TransactionData]
    average_amount: float
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    merchant_name: Optional[str] = None
    representative_description: str


class ConfidenceBreakdown(BaseModel):
    similarity: int
    frequency: int
    occurrence_count: int


class PatternConfidence(BaseModel):
    overall: int
    breakdown: ConfidenceBreakdown


class DetectedPattern(BaseModel):
    group: TransactionGroup
    frequency: FrequencyPattern
    confidence: PatternConfidence
    first_occurrence: date
    last_occurrence: date
    next_expected_date: date


class DetectionCriteria(BaseModel):
    user_id: str
    months_to_analyze: int = 12
    min_occurrences: int = 2
    min_confidence: int = 60
    similarity_threshold: int = 60
