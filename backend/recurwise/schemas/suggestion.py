"""Pydantic schemas for category aggregation and expense plan suggestions."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import date, datetime

from recurwise.models.suggestion import (
    ExpenseType,
    FrequencyType,
    SuggestedPurpose,
    SuggestionSource,
    SuggestionStatus,
)
from recurwise.schemas.pattern import DetectedPattern


class CategoryAggregation(BaseModel):
    """Same-category patterns merged into one time-weighted figure."""
    category_id: str
    category_name: Optional[str] = None
    total_amount: float
    transaction_count: int
    first_occurrence: date
    last_occurrence: date
    span_months: float
    weighted_monthly_average: float
    frequency_type: FrequencyType
    merchants: List[str]
    expense_type: ExpenseType
    is_essential: bool
    average_confidence: int
    source_patterns: List[DetectedPattern]
    representative_description: str


class CategoryTotal(BaseModel):
    """Expense spend of one category over an analysis window."""
    category_id: str
    category_name: Optional[str] = None
    total_spent: float
    transaction_count: int
    first_occurrence: date
    last_occurrence: date


class CategoryFallback(BaseModel):
    """Material category spend with no detected pattern."""
    category_id: str
    category_name: Optional[str] = None
    total_spent: float
    transaction_count: int
    monthly_average: float
    first_occurrence: date
    last_occurrence: date
    suggested_purpose: SuggestedPurpose = SuggestedPurpose.spending_budget
    reason: str = "no_pattern_detected"


class DiscrepancyResult(BaseModel):
    has_discrepancy: bool
    pattern_amount: Optional[float] = None
    category_average: Optional[float] = None
    discrepancy_percentage: Optional[float] = None
    message: Optional[str] = None


class TemplateDetection(BaseModel):
    template_id: str
    confidence: int
    reasons: List[str]
    suggested_config: Dict[str, Any] = {}


# Requests

class GenerateSuggestionsRequest(BaseModel):
    months_to_analyze: Optional[int] = Field(None, ge=3, le=24)
    min_occurrences: Optional[int] = Field(None, ge=2, le=12)
    min_confidence: Optional[int] = Field(None, ge=30, le=95)
    similarity_threshold: Optional[int] = Field(None, ge=40, le=90)
    force_regenerate: bool = False


class ApproveSuggestionRequest(BaseModel):
    custom_name: Optional[str] = None
    custom_monthly_contribution: Optional[float] = Field(None, ge=0)
    category_id: Optional[str] = None


class RejectSuggestionRequest(BaseModel):
    reason: Optional[str] = None


class BulkActionRequest(BaseModel):
    suggestion_ids: List[str]
    reason: Optional[str] = None


# Responses

class SuggestionResponse(BaseModel):
    id: str
    suggested_name: str
    description: Optional[str] = None
    merchant_name: Optional[str] = None
    representative_description: str
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    average_amount: float
    monthly_contribution: float
    yearly_total: float
    expense_type: ExpenseType
    is_essential: bool
    frequency_type: FrequencyType
    interval_days: int
    suggested_purpose: Optional[SuggestedPurpose] = None
    suggestion_source: SuggestionSource
    category_monthly_average: Optional[float] = None
    discrepancy_percentage: Optional[float] = None
    has_discrepancy_warning: bool
    discrepancy_message: Optional[str] = None
    pattern_confidence: int
    classification_confidence: int
    overall_confidence: int
    classification_reasoning: Optional[str] = None
    occurrence_count: int
    first_occurrence: date
    last_occurrence: date
    next_expected_date: date
    suggested_template: Optional[str] = None
    template_confidence: Optional[int] = None
    template_reasons: Optional[List[str]] = None
    status: SuggestionStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class SuggestionSummary(BaseModel):
    by_expense_type: Dict[str, int]
    total_monthly_contribution: float
    essential_count: int
    discretionary_count: int


class GenerateSuggestionsResponse(BaseModel):
    suggestions: List[SuggestionResponse]
    total_found: int
    new_suggestions: int
    existing_suggestions: int
    processing_time_ms: int
    summary: SuggestionSummary


class SuggestionListResponse(BaseModel):
    suggestions: List[SuggestionResponse]
    total: int
    pending: int
    approved: int
    rejected: int


class ApprovalResult(BaseModel):
    success: bool
    suggestion_id: str
    expense_plan_id: Optional[str] = None
    message: str


class BulkActionResult(BaseModel):
    processed: int
    successful: int
    failed: int
    results: List[ApprovalResult]
