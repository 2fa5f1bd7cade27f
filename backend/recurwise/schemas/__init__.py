"""
Pydantic schemas package.
"""

from recurwise.schemas.pattern import (
    TransactionData,
    SimilarityWeights,
    SimilarityScore,
    FrequencyPattern,
    TransactionGroup,
    PatternConfidence,
    DetectedPattern,
    DetectionCriteria,
)
from recurwise.schemas.classification import (
    ClassificationRequest,
    ClassificationResult,
    BatchClassificationResult,
    ApiUsageStats,
)
from recurwise.schemas.suggestion import (
    CategoryAggregation,
    CategoryTotal,
    CategoryFallback,
    DiscrepancyResult,
    TemplateDetection,
    GenerateSuggestionsRequest,
    GenerateSuggestionsResponse,
    SuggestionResponse,
    SuggestionListResponse,
    ApprovalResult,
    BulkActionResult,
)

__all__ = [
    "TransactionData",
    "SimilarityWeights",
    "SimilarityScore",
    "FrequencyPattern",
    "TransactionGroup",
    "PatternConfidence",
    "DetectedPattern",
    "DetectionCriteria",
    "ClassificationRequest",
    "ClassificationResult",
    "BatchClassificationResult",
    "ApiUsageStats",
    "CategoryAggregation",
    "CategoryTotal",
    "CategoryFallback",
    "DiscrepancyResult",
    "TemplateDetection",
    "GenerateSuggestionsRequest",
    "GenerateSuggestionsResponse",
    "SuggestionResponse",
    "SuggestionListResponse",
    "ApprovalResult",
    "BulkActionResult",
]
